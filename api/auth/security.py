"""
Password hashing and token helpers.

- passwords: bcrypt
- access tokens: short-lived HS256 JWTs, `sub` = user id
- refresh tokens: opaque random strings; only their sha256 is stored
"""

from __future__ import annotations

import hashlib
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from core import config

DEV_JWT_SECRET = "dev-change-this-secret"


class AuthSecurityError(RuntimeError):
    pass


@dataclass(frozen=True)
class IssuedRefreshToken:
    raw: str
    token_hash: str
    expires_at: datetime


def jwt_secret() -> str:
    # Production deployments must set JWT_SECRET.
    return config.env_str("JWT_SECRET", DEV_JWT_SECRET)


def jwt_algorithm() -> str:
    return config.env_str("JWT_ALG", "HS256")


def access_token_expire_minutes() -> int:
    return config.env_int("ACCESS_TOKEN_EXPIRE_MIN", 15)


def refresh_token_expire_days() -> int:
    return config.env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        # Malformed stored hash.
        return False


def build_access_token(*, user_id: str, email: str) -> str:
    issued_at = int(time.time())
    payload = {
        "sub": user_id,
        "email": email,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + access_token_expire_minutes() * 60,
    }
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, jwt_secret(), algorithms=[jwt_algorithm()])
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    if str(payload.get("type") or "").lower() != "access":
        raise AuthSecurityError("Token is not an access token.")
    if not str(payload.get("sub") or "").strip():
        raise AuthSecurityError("Invalid access token subject.")
    return payload


def hash_refresh_token(raw_refresh_token: str) -> str:
    token = (raw_refresh_token or "").strip().encode("utf-8")
    if not token:
        raise AuthSecurityError("Refresh token is empty.")
    return hashlib.sha256(token).hexdigest()


def new_refresh_token(now: datetime | None = None) -> IssuedRefreshToken:
    now = now or datetime.now(timezone.utc)
    raw = secrets.token_urlsafe(48)
    return IssuedRefreshToken(
        raw=raw,
        token_hash=hash_refresh_token(raw),
        expires_at=now + timedelta(days=refresh_token_expire_days()),
    )
