"""
Account and session logic: register, login, refresh rotation, logout,
profile and password changes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import asyncpg
from fastapi import HTTPException, status

from core.db import Database

from . import repository, schemas, security

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _check_email(email: str) -> str:
    normalized = repository.normalize_email(email)
    local, _, domain = normalized.partition("@")
    if not local or "." not in domain:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address.")
    return normalized


def to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=str(user_row["id"]),
        email=str(user_row["email"]),
        name=str(user_row["name"]),
        is_active=bool(user_row["is_active"]),
        created_at=user_row["created_at"],
    )


async def _issue_tokens(
    database: Database,
    user_row: dict,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    user_id = str(user_row["id"])
    refresh = security.new_refresh_token(_utc_now())
    await repository.insert_refresh_token(
        database,
        user_id=user_id,
        token_hash=refresh.token_hash,
        expires_at=refresh.expires_at,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return schemas.TokenPairResponse(
        access_token=security.build_access_token(user_id=user_id, email=str(user_row["email"])),
        refresh_token=refresh.raw,
    )


async def register(
    database: Database,
    payload: schemas.RegisterRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    email = _check_email(payload.email)
    if await repository.get_user_by_email(database, email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.")

    try:
        user_row = await repository.create_user(
            database,
            email=email,
            name=payload.name,
            password_hash=security.hash_password(payload.password),
        )
    except asyncpg.UniqueViolationError as exc:
        # Lost a race with a concurrent registration.
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.") from exc

    logger.info("user_registered user_id=%s", user_row["id"])
    tokens = await _issue_tokens(database, user_row, user_agent=user_agent, ip_address=ip_address)
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def login(
    database: Database,
    payload: schemas.LoginRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    user_row = await repository.get_user_by_email(database, payload.email)
    if user_row is None or not security.verify_password(payload.password, str(user_row.get("password_hash") or "")):
        raise _unauthorized("Invalid email or password.")

    if not bool(user_row.get("is_active", False)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive.")

    tokens = await _issue_tokens(database, user_row, user_agent=user_agent, ip_address=ip_address)
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def refresh_tokens(
    database: Database,
    payload: schemas.RefreshRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    try:
        incoming_hash = security.hash_refresh_token(payload.refresh_token)
    except security.AuthSecurityError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    token_row = await repository.get_refresh_token_by_hash(database, incoming_hash)
    if token_row is None:
        raise _unauthorized("Invalid refresh token.")
    if token_row.get("revoked_at") is not None:
        raise _unauthorized("Refresh token is revoked.")

    token_id = int(token_row["id"])
    expires_at = token_row.get("expires_at")
    if not isinstance(expires_at, datetime) or expires_at <= _utc_now():
        await repository.revoke_refresh_token(database, token_id=token_id)
        raise _unauthorized("Refresh token is expired.")

    user_row = await repository.get_user_by_id(database, str(token_row["user_id"]))
    if user_row is None or not bool(user_row.get("is_active", False)):
        await repository.revoke_refresh_token(database, token_id=token_id)
        raise _unauthorized("Invalid refresh token owner.")

    replacement = security.new_refresh_token(_utc_now())
    new_row = await repository.rotate_refresh_token(
        database,
        old_token_id=token_id,
        user_id=str(user_row["id"]),
        token_hash=replacement.token_hash,
        expires_at=replacement.expires_at,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    if new_row is None:
        raise _unauthorized("Refresh token is revoked.")

    return schemas.TokenPairResponse(
        access_token=security.build_access_token(user_id=str(user_row["id"]), email=str(user_row["email"])),
        refresh_token=replacement.raw,
    )


async def logout(
    database: Database,
    payload: schemas.LogoutRequest,
    *,
    current_user_id: str,
) -> dict[str, bool]:
    refresh_token = (payload.refresh_token or "").strip()
    if refresh_token:
        revoked = await repository.revoke_refresh_token_by_hash(
            database,
            security.hash_refresh_token(refresh_token),
            user_id=current_user_id,
        )
        return {"revoked": revoked}

    await repository.revoke_all_refresh_tokens(database, current_user_id)
    return {"revoked": True}


async def get_user_from_access_token(database: Database, access_token: str) -> dict:
    try:
        payload = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise _unauthorized(str(exc)) from exc

    user_row = await repository.get_user_by_id(database, str(payload["sub"]).strip())
    if user_row is None:
        raise _unauthorized("User not found.")
    if not bool(user_row.get("is_active", False)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive.")
    return user_row


async def update_profile(
    database: Database,
    user_row: dict,
    payload: schemas.ProfileUpdateRequest,
) -> schemas.UserResponse:
    user_id = str(user_row["id"])
    email = None
    if payload.email is not None:
        email = _check_email(payload.email)
        existing = await repository.get_user_by_email(database, email)
        if existing is not None and str(existing["id"]) != user_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use.")

    try:
        updated = await repository.update_profile(database, user_id, name=payload.name, email=email)
    except asyncpg.UniqueViolationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use.") from exc
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return to_user_response(updated)


async def change_password(
    database: Database,
    user_row: dict,
    payload: schemas.PasswordChangeRequest,
) -> None:
    if not security.verify_password(payload.current_password, str(user_row.get("password_hash") or "")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect.")

    user_id = str(user_row["id"])
    async with database.transaction() as tx:
        await repository.update_password_hash(tx, user_id, security.hash_password(payload.new_password))
        # Existing sessions end with the old password.
        await repository.revoke_all_refresh_tokens(tx, user_id)
    logger.info("password_changed user_id=%s", user_id)
