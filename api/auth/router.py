"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from core import responses
from core.db import Database, get_database

from . import dependencies, schemas, service

router = APIRouter(prefix="/auth")


def _client_meta(request: Request) -> dict[str, str | None]:
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: schemas.RegisterRequest,
    request: Request,
    database: Database = Depends(get_database),
) -> dict:
    result = await service.register(database, payload, **_client_meta(request))
    return responses.success(result)


@router.post("/login")
async def login(
    payload: schemas.LoginRequest,
    request: Request,
    database: Database = Depends(get_database),
) -> dict:
    result = await service.login(database, payload, **_client_meta(request))
    return responses.success(result)


@router.post("/refresh")
async def refresh(
    payload: schemas.RefreshRequest,
    request: Request,
    database: Database = Depends(get_database),
) -> dict:
    tokens = await service.refresh_tokens(database, payload, **_client_meta(request))
    return responses.success(tokens)


@router.post("/logout")
async def logout(
    payload: schemas.LogoutRequest,
    current_user: dict = Depends(dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    result = await service.logout(database, payload, current_user_id=str(current_user["id"]))
    return responses.success(result)


@router.get("/me")
async def me(current_user: dict = Depends(dependencies.get_current_user)) -> dict:
    return responses.success(service.to_user_response(current_user))
