"""
FastAPI router for recipe endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from auth import dependencies as auth_dependencies
from core import responses
from core.db import Database, get_database

from . import filters, reactions, search, writer
from .schemas import MAX_INT, Difficulty, RecipeCreate, RecipePatch

logger = logging.getLogger(__name__)

router = APIRouter()


def list_params(
    page: int = Query(filters.DEFAULT_PAGE, ge=1, le=MAX_INT),
    limit: int = Query(filters.DEFAULT_LIMIT, ge=1, le=filters.MAX_LIMIT),
    sort_by: str = Query(filters.DEFAULT_SORT_BY, alias="sortBy"),
    sort_order: str = Query(filters.DEFAULT_SORT_ORDER, alias="sortOrder"),
) -> filters.Pagination:
    return filters.Pagination(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


@router.get("/recipes")
async def list_recipes(
    pagination: filters.Pagination = Depends(list_params),
    search_text: str | None = Query(default=None, alias="search", max_length=200),
    difficulty: Difficulty | None = Query(default=None),
    cuisine_type: str | None = Query(default=None, alias="cuisineType", max_length=100),
    max_prep_time: int | None = Query(default=None, alias="maxPrepTime", ge=0, le=MAX_INT),
    max_cook_time: int | None = Query(default=None, alias="maxCookTime", ge=0, le=MAX_INT),
    owner_id: str | None = Query(default=None, alias="ownerId"),
    database: Database = Depends(get_database),
) -> dict:
    """
    Public recipe listing. All filters are optional and combined with AND.
    """
    page = await search.list_recipes(
        database,
        filters.RecipeFilters(
            owner_id=owner_id,
            difficulty=difficulty,
            cuisine_type=cuisine_type,
            max_prep_time=max_prep_time,
            max_cook_time=max_cook_time,
            search=search_text,
        ),
        pagination,
    )
    return responses.success(page.items, pagination=page.pagination())


@router.get("/recipes/cuisines")
async def list_cuisines(database: Database = Depends(get_database)) -> dict:
    return responses.success(await search.list_cuisine_types(database))


@router.get("/recipes/stats")
async def recipe_stats(database: Database = Depends(get_database)) -> dict:
    return responses.success(await search.recipe_stats(database))


@router.get("/recipes/{recipe_id}")
async def get_recipe(recipe_id: str, database: Database = Depends(get_database)) -> dict:
    recipe = await search.get_recipe_by_id(database, recipe_id)
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found.")
    return responses.success(recipe)


@router.post("/recipes", status_code=status.HTTP_201_CREATED)
async def create_recipe(
    payload: RecipeCreate,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    recipe = await writer.create_recipe(database, str(current_user["id"]), payload)
    logger.info(
        "recipe_created recipe_id=%s user_id=%s ingredients=%s steps=%s",
        recipe.id,
        recipe.owner_id,
        len(recipe.ingredients),
        len(recipe.steps),
    )
    return responses.success(recipe)


@router.patch("/recipes/{recipe_id}")
@router.put("/recipes/{recipe_id}")
async def update_recipe(
    recipe_id: str,
    payload: RecipePatch,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    """
    Partial update; `ingredients` / `steps` replace the whole collection when sent.
    """
    recipe = await writer.update_recipe(database, recipe_id, str(current_user["id"]), payload)
    logger.info(
        "recipe_updated recipe_id=%s user_id=%s fields=%s",
        recipe.id,
        recipe.owner_id,
        sorted(payload.model_fields_set),
    )
    return responses.success(recipe)


@router.delete("/recipes/{recipe_id}")
async def delete_recipe(
    recipe_id: str,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    await writer.delete_recipe(database, recipe_id, str(current_user["id"]))
    logger.info("recipe_deleted recipe_id=%s user_id=%s", recipe_id, current_user["id"])
    return responses.success({"id": recipe_id, "deleted": True})


@router.post("/recipes/{recipe_id}/like")
async def like_recipe(
    recipe_id: str,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    added = await reactions.add_reaction(database, reactions.LIKE, recipe_id, str(current_user["id"]))
    if added:
        logger.info("recipe_liked recipe_id=%s user_id=%s", recipe_id, current_user["id"])
    return responses.success({"id": recipe_id, "liked": True})


@router.delete("/recipes/{recipe_id}/like")
async def unlike_recipe(
    recipe_id: str,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    await reactions.remove_reaction(database, reactions.LIKE, recipe_id, str(current_user["id"]))
    return responses.success({"id": recipe_id, "liked": False})


@router.post("/recipes/{recipe_id}/save")
async def save_recipe(
    recipe_id: str,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    added = await reactions.add_reaction(database, reactions.SAVE, recipe_id, str(current_user["id"]))
    if added:
        logger.info("recipe_saved recipe_id=%s user_id=%s", recipe_id, current_user["id"])
    return responses.success({"id": recipe_id, "saved": True})


@router.delete("/recipes/{recipe_id}/save")
async def unsave_recipe(
    recipe_id: str,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    await reactions.remove_reaction(database, reactions.SAVE, recipe_id, str(current_user["id"]))
    return responses.success({"id": recipe_id, "saved": False})
