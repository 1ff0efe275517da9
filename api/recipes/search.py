"""
Recipe reads: filtered/paginated listing, lookup by id, cuisines, stats.

Reads run as independent statements without a transaction. The count and the
page query may see different snapshots under concurrent writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.db import Executor

from . import assembler, filters, repository
from .schemas import CuisineCount, Recipe, RecipeStats, check_recipe_id


@dataclass(frozen=True)
class RecipePage:
    items: list[Recipe]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return filters.total_pages(self.total_count, self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


async def _hydrate(conn: Executor, headers: list[dict[str, Any]]) -> list[Recipe]:
    recipe_ids = [str(h["id"]) for h in headers]
    ingredient_rows = await repository.fetch_ingredients(conn, recipe_ids)
    step_rows = await repository.fetch_steps(conn, recipe_ids)
    return assembler.recipes_from_rows(headers, ingredient_rows, step_rows)


async def list_recipes(
    conn: Executor,
    recipe_filters: filters.RecipeFilters | None = None,
    pagination: filters.Pagination | None = None,
) -> RecipePage:
    recipe_filters = recipe_filters or filters.RecipeFilters()
    pagination = pagination or filters.Pagination()

    where = filters.recipe_where(recipe_filters)
    order_by = filters.order_by(pagination)
    limit_offset, page_params = filters.limit_offset(where, pagination)

    total = await repository.count_recipes(conn, where)
    headers = await repository.fetch_recipe_page(
        conn,
        where,
        order_by=order_by,
        limit_offset=limit_offset,
        page_params=page_params,
    )
    items = await _hydrate(conn, headers)
    return RecipePage(items=items, total_count=total, page=pagination.page, limit=pagination.limit)


async def list_user_recipes(
    conn: Executor,
    owner_id: str,
    pagination: filters.Pagination | None = None,
) -> RecipePage:
    return await list_recipes(conn, filters.RecipeFilters(owner_id=owner_id), pagination)


async def get_recipe_by_id(conn: Executor, recipe_id: str, owner_id: str | None = None) -> Recipe | None:
    """
    Return the recipe, or None when no row matches.

    With `owner_id` the lookup only matches that owner's recipe.
    """
    recipe_id = check_recipe_id(recipe_id)
    header = await repository.fetch_recipe(conn, recipe_id, owner_id=owner_id)
    if header is None:
        return None
    recipes = await _hydrate(conn, [header])
    return recipes[0]


async def list_cuisine_types(conn: Executor) -> list[str]:
    return await repository.list_cuisine_types(conn)


async def recipe_stats(conn: Executor, owner_id: str | None = None) -> RecipeStats:
    where = filters.recipe_where(filters.RecipeFilters(owner_id=owner_id))
    totals = await repository.recipe_totals(conn, where)
    cuisines = await repository.top_cuisines(conn, where)
    return RecipeStats(
        total_recipes=int(totals["total_recipes"] or 0),
        total_authors=int(totals["total_authors"] or 0),
        avg_cook_time=int(totals["avg_cook_time"] or 0),
        top_cuisines=[
            CuisineCount(cuisine_type=str(row["cuisine_type"]), count=int(row["count"]))
            for row in cuisines
        ],
    )
