"""
Row -> aggregate mapping. No I/O.

Child row lists must already be ordered (ingredients by order_index, id;
steps by step_number, id); order is preserved as given.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable

from .schemas import Ingredient, Recipe, Step


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _opt_float(value: Any) -> float | None:
    # numeric columns come back as Decimal.
    return None if value is None else float(value)


def ingredient_from_row(row: dict[str, Any]) -> Ingredient:
    return Ingredient(
        id=str(row["id"]),
        recipe_id=str(row["recipe_id"]),
        name=str(row["name"]),
        amount=_opt_float(row.get("amount")),
        unit=_opt_str(row.get("unit")),
        notes=_opt_str(row.get("notes")),
        order_index=int(row["order_index"]),
    )


def step_from_row(row: dict[str, Any]) -> Step:
    return Step(
        id=str(row["id"]),
        recipe_id=str(row["recipe_id"]),
        step_number=int(row["step_number"]),
        instruction=str(row["instruction"]),
        time_minutes=_opt_int(row.get("time_minutes")),
        temperature=_opt_str(row.get("temperature")),
    )


def recipe_from_rows(
    header: dict[str, Any],
    ingredient_rows: Iterable[dict[str, Any]] = (),
    step_rows: Iterable[dict[str, Any]] = (),
) -> Recipe:
    return Recipe(
        id=str(header["id"]),
        owner_id=str(header["user_id"]),
        title=str(header["title"]),
        description=_opt_str(header.get("description")),
        prep_time_minutes=int(header["prep_time_minutes"]),
        cook_time_minutes=int(header["cook_time_minutes"]),
        servings=int(header["servings"]),
        difficulty=header.get("difficulty_level"),
        cuisine_type=_opt_str(header.get("cuisine_type")),
        created_at=header["created_at"],
        updated_at=header["updated_at"],
        ingredients=[ingredient_from_row(r) for r in ingredient_rows],
        steps=[step_from_row(r) for r in step_rows],
    )


def group_by_recipe(rows: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        grouped[str(row["recipe_id"])].append(row)
    return grouped


def recipes_from_rows(
    headers: list[dict[str, Any]],
    ingredient_rows: Iterable[dict[str, Any]],
    step_rows: Iterable[dict[str, Any]],
) -> list[Recipe]:
    """
    Assemble a page of recipes from batched child rows, keeping header order.
    """
    ingredients = group_by_recipe(ingredient_rows)
    steps = group_by_recipe(step_rows)
    return [
        recipe_from_rows(
            header,
            ingredients.get(str(header["id"]), []),
            steps.get(str(header["id"]), []),
        )
        for header in headers
    ]
