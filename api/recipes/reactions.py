"""
Per-user likes and saves.

Both are idempotent: adding a reaction twice or removing one that does not
exist succeeds. Adding requires the recipe to exist; removing does not.
"""

from __future__ import annotations

from core.db import Database

from . import filters, repository, search
from .errors import InvalidRecipeError, RecipeNotFoundError
from .schemas import check_recipe_id

LIKE = "like"
SAVE = "save"


def _require_user(user_id: str) -> str:
    user = (user_id or "").strip()
    if not user:
        raise InvalidRecipeError("user id is required.")
    return user


async def add_reaction(database: Database, kind: str, recipe_id: str, user_id: str) -> bool:
    """
    Returns True when the reaction was new.
    """
    recipe_id = check_recipe_id(recipe_id)
    user = _require_user(user_id)

    async with database.transaction() as tx:
        if not await repository.lock_recipe_key(tx, recipe_id):
            raise RecipeNotFoundError(recipe_id)
        return await repository.add_reaction(tx, kind, user_id=user, recipe_id=recipe_id)


async def remove_reaction(database: Database, kind: str, recipe_id: str, user_id: str) -> bool:
    recipe_id = check_recipe_id(recipe_id)
    user = _require_user(user_id)
    return await repository.remove_reaction(database, kind, user_id=user, recipe_id=recipe_id)


async def list_liked_recipes(
    database: Database,
    user_id: str,
    pagination: filters.Pagination | None = None,
) -> search.RecipePage:
    return await search.list_recipes(database, filters.RecipeFilters(liked_by=_require_user(user_id)), pagination)


async def list_saved_recipes(
    database: Database,
    user_id: str,
    pagination: filters.Pagination | None = None,
) -> search.RecipePage:
    return await search.list_recipes(database, filters.RecipeFilters(saved_by=_require_user(user_id)), pagination)
