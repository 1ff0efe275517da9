"""
Dynamic WHERE / ORDER BY / LIMIT construction for recipe listings.

Conditions are collected as an ordered list of `Predicate` objects, each with
exactly one bound value, and only rendered to SQL at the end. Placeholder
numbers are assigned at render time from the list position, so adding or
skipping a filter can never shift another filter's parameter.

A predicate may reference its placeholder more than once (the free-text search
matches title OR description against the same `$n`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidRecipeError
from .schemas import DIFFICULTY_LEVELS, normalize_cuisine

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = "desc"

SORT_COLUMNS: dict[str, str] = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
    "prepTime": "prep_time_minutes",
    "cookTime": "cook_time_minutes",
}


@dataclass(frozen=True)
class RecipeFilters:
    owner_id: str | None = None
    difficulty: str | None = None
    cuisine_type: str | None = None
    max_prep_time: int | None = None
    max_cook_time: int | None = None
    liked_by: str | None = None
    saved_by: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class Pagination:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidRecipeError("page must be >= 1.")
        if self.limit < 1:
            raise InvalidRecipeError("limit must be >= 1.")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def total_pages(total_count: int, limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be >= 1")
    return math.ceil(total_count / limit)


@dataclass(frozen=True)
class Predicate:
    # `{param}` is replaced by the positional placeholder, e.g. "user_id = {param}".
    fragment: str
    value: Any

    def render(self, index: int) -> str:
        return self.fragment.format(param=f"${index}")


@dataclass(frozen=True)
class WhereClause:
    sql: str
    params: tuple[Any, ...] = ()
    start_index: int = 1

    @property
    def next_index(self) -> int:
        return self.start_index + len(self.params)


@dataclass
class WhereBuilder:
    predicates: list[Predicate] = field(default_factory=list)

    def add(self, fragment: str, value: Any) -> WhereBuilder:
        self.predicates.append(Predicate(fragment, value))
        return self

    def add_if(self, fragment: str, value: Any) -> WhereBuilder:
        """
        Add the predicate only when a value was supplied (0 counts as supplied).
        """
        if value is None or value == "":
            return self
        return self.add(fragment, value)

    def build(self, start_index: int = 1) -> WhereClause:
        if not self.predicates:
            return WhereClause(sql="", params=(), start_index=start_index)
        conditions = [p.render(start_index + i) for i, p in enumerate(self.predicates)]
        return WhereClause(
            sql="WHERE " + " AND ".join(conditions),
            params=tuple(p.value for p in self.predicates),
            start_index=start_index,
        )


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def recipe_where(filters: RecipeFilters) -> WhereClause:
    if filters.difficulty and filters.difficulty not in DIFFICULTY_LEVELS:
        raise InvalidRecipeError(f"Unknown difficulty '{filters.difficulty}'.")

    builder = WhereBuilder()
    builder.add_if("user_id = {param}", filters.owner_id)
    builder.add_if("difficulty_level = {param}", filters.difficulty)
    builder.add_if("cuisine_type = {param}", normalize_cuisine(filters.cuisine_type))
    builder.add_if("prep_time_minutes <= {param}", filters.max_prep_time)
    builder.add_if("cook_time_minutes <= {param}", filters.max_cook_time)
    builder.add_if("id IN (SELECT recipe_id FROM recipe_likes WHERE user_id = {param})", filters.liked_by)
    builder.add_if("id IN (SELECT recipe_id FROM recipe_saves WHERE user_id = {param})", filters.saved_by)

    # Search stays last; both branches share one placeholder.
    term = (filters.search or "").strip()
    if term:
        builder.add(
            "(title ILIKE {param} OR description ILIKE {param})",
            f"%{escape_like(term)}%",
        )
    return builder.build()


def order_by(pagination: Pagination) -> str:
    column = SORT_COLUMNS.get(pagination.sort_by)
    if column is None:
        raise InvalidRecipeError(
            f"Unsupported sort field '{pagination.sort_by}'. Allowed: {sorted(SORT_COLUMNS)}"
        )
    direction = (pagination.sort_order or "").strip().upper()
    if direction not in {"ASC", "DESC"}:
        raise InvalidRecipeError("sortOrder must be 'asc' or 'desc'.")
    # id breaks ties so pages never overlap.
    return f"ORDER BY {column} {direction}, id {direction}"


def limit_offset(where: WhereClause, pagination: Pagination) -> tuple[str, tuple[int, int]]:
    n = where.next_index
    return f"LIMIT ${n} OFFSET ${n + 1}", (pagination.limit, pagination.offset)
