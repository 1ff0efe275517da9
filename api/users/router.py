"""
Endpoints for the signed-in user's own account and recipes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from auth import dependencies as auth_dependencies
from auth import schemas as auth_schemas
from auth import service as auth_service
from core import responses
from core.db import Database, get_database
from recipes import filters, reactions, search
from recipes.router import list_params

router = APIRouter(prefix="/users/me")


@router.get("")
async def profile(current_user: dict = Depends(auth_dependencies.get_current_user)) -> dict:
    return responses.success(auth_service.to_user_response(current_user))


@router.patch("")
async def update_profile(
    payload: auth_schemas.ProfileUpdateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    user = await auth_service.update_profile(database, current_user, payload)
    return responses.success(user)


@router.post("/password")
async def change_password(
    payload: auth_schemas.PasswordChangeRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    await auth_service.change_password(database, current_user, payload)
    return responses.success({"changed": True})


@router.get("/recipes")
async def my_recipes(
    pagination: filters.Pagination = Depends(list_params),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    page = await search.list_user_recipes(database, str(current_user["id"]), pagination)
    return responses.success(page.items, pagination=page.pagination())


@router.get("/stats")
async def my_stats(
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return responses.success(await search.recipe_stats(database, owner_id=str(current_user["id"])))


@router.get("/liked")
async def my_liked_recipes(
    pagination: filters.Pagination = Depends(list_params),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    page = await reactions.list_liked_recipes(database, str(current_user["id"]), pagination)
    return responses.success(page.items, pagination=page.pagination())


@router.get("/saved")
async def my_saved_recipes(
    pagination: filters.Pagination = Depends(list_params),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    page = await reactions.list_saved_recipes(database, str(current_user["id"]), pagination)
    return responses.success(page.items, pagination=page.pagination())
