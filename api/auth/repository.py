"""
Account persistence: users and refresh tokens.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core.db import Database, Executor

USER_COLUMNS = "id, email, name, password_hash, is_active, created_at, updated_at"

TOKEN_COLUMNS = (
    "id, user_id, token_hash, expires_at, revoked_at, replaced_by_token_id, "
    "created_at, last_used_at, user_agent, ip_address"
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def create_user(conn: Executor, *, email: str, name: str, password_hash: str) -> dict[str, Any]:
    row = await conn.fetch_one(
        f"""
        INSERT INTO users (email, name, password_hash)
        VALUES ($1, $2, $3)
        RETURNING {USER_COLUMNS}
        """,
        normalize_email(email),
        name.strip(),
        password_hash,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def get_user_by_email(conn: Executor, email: str) -> dict[str, Any] | None:
    return await conn.fetch_one(
        f"""
        SELECT {USER_COLUMNS}
        FROM users
        WHERE lower(email) = $1
        """,
        normalize_email(email),
    )


async def get_user_by_id(conn: Executor, user_id: str) -> dict[str, Any] | None:
    return await conn.fetch_one(
        f"""
        SELECT {USER_COLUMNS}
        FROM users
        WHERE id = $1
        """,
        user_id,
    )


async def update_profile(
    conn: Executor,
    user_id: str,
    *,
    name: str | None = None,
    email: str | None = None,
) -> dict[str, Any] | None:
    return await conn.fetch_one(
        f"""
        UPDATE users
        SET name = COALESCE($2, name),
            email = COALESCE($3, email),
            updated_at = now()
        WHERE id = $1
        RETURNING {USER_COLUMNS}
        """,
        user_id,
        name.strip() if name is not None else None,
        normalize_email(email) if email is not None else None,
    )


async def update_password_hash(conn: Executor, user_id: str, password_hash: str) -> None:
    await conn.execute(
        """
        UPDATE users
        SET password_hash = $2,
            updated_at = now()
        WHERE id = $1
        """,
        user_id,
        password_hash,
    )


async def insert_refresh_token(
    conn: Executor,
    *,
    user_id: str,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    row = await conn.fetch_one(
        f"""
        INSERT INTO refresh_tokens (user_id, token_hash, expires_at, user_agent, ip_address)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {TOKEN_COLUMNS}
        """,
        user_id,
        token_hash,
        expires_at,
        user_agent,
        ip_address,
    )
    if row is None:
        raise RuntimeError("Failed to insert refresh token.")
    return row


async def get_refresh_token_by_hash(conn: Executor, token_hash: str) -> dict[str, Any] | None:
    return await conn.fetch_one(
        f"""
        SELECT {TOKEN_COLUMNS}
        FROM refresh_tokens
        WHERE token_hash = $1
        """,
        token_hash,
    )


async def revoke_refresh_token(conn: Executor, *, token_id: int) -> bool:
    row = await conn.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE id = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_id,
    )
    return row is not None


async def revoke_refresh_token_by_hash(conn: Executor, token_hash: str, *, user_id: str | None = None) -> bool:
    row = await conn.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE token_hash = $1
          AND revoked_at IS NULL
          AND ($2::text IS NULL OR user_id = $2)
        RETURNING id
        """,
        token_hash,
        user_id,
    )
    return row is not None


async def revoke_all_refresh_tokens(conn: Executor, user_id: str) -> None:
    await conn.execute(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE user_id = $1
          AND revoked_at IS NULL
        """,
        user_id,
    )


async def rotate_refresh_token(
    database: Database,
    *,
    old_token_id: int,
    user_id: str,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any] | None:
    """
    Revoke the presented token and issue its replacement atomically.

    Returns None when the old token was revoked concurrently (a replayed
    refresh token loses the race and gets nothing).
    """
    async with database.transaction() as tx:
        claimed = await tx.fetch_one(
            """
            UPDATE refresh_tokens
            SET revoked_at = now(),
                last_used_at = now()
            WHERE id = $1
              AND revoked_at IS NULL
            RETURNING id
            """,
            old_token_id,
        )
        if claimed is None:
            return None

        new_row = await insert_refresh_token(
            tx,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        await tx.execute(
            "UPDATE refresh_tokens SET replaced_by_token_id = $2 WHERE id = $1",
            old_token_id,
            new_row["id"],
        )
        return new_row
