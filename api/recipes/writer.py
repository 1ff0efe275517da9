"""
Recipe aggregate writer.

Create, update and delete a recipe together with its ingredients and steps as
one unit of work. Each operation:
- validates its input completely before opening a transaction
- runs every statement on one connection inside `database.transaction()`
- lets any exception escape unchanged; leaving the context rolls back and
  releases the connection

Ownership for update/delete is read-and-compare-then-act: the header row is
locked with SELECT ... FOR UPDATE and its stored owner compared with the
caller before anything is changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.db import Database, Transaction

from . import assembler, repository, search
from .errors import InvalidRecipeError, RecipeForbiddenError, RecipeNotFoundError
from .schemas import IngredientIn, Recipe, RecipeCreate, RecipePatch, StepIn, check_recipe_id, normalize_cuisine

# patch attribute -> recipes column
PATCH_COLUMNS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "prep_time": "prep_time_minutes",
    "cook_time": "cook_time_minutes",
    "servings": "servings",
    "difficulty": "difficulty_level",
    "cuisine_type": "cuisine_type",
}

NOT_NULL_COLUMNS = frozenset({"title", "prep_time_minutes", "cook_time_minutes", "servings"})


@dataclass(frozen=True)
class _IngredientRow:
    name: str
    amount: float | None
    unit: str | None
    notes: str | None
    order_index: int


@dataclass(frozen=True)
class _StepRow:
    step_number: int
    instruction: str
    time_minutes: int | None
    temperature: str | None


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _require_owner(owner_id: str) -> str:
    owner = (owner_id or "").strip()
    if not owner:
        raise InvalidRecipeError("owner id is required.")
    return owner


def _prepare_ingredients(items: list[IngredientIn]) -> list[_IngredientRow]:
    rows: list[_IngredientRow] = []
    seen: set[int] = set()
    for position, item in enumerate(items):
        name = (item.name or "").strip()
        if not name:
            raise InvalidRecipeError(f"Ingredient #{position + 1} needs a name.")
        order_index = position if item.order_index is None else item.order_index
        if order_index in seen:
            raise InvalidRecipeError(f"Duplicate ingredient orderIndex {order_index}.")
        seen.add(order_index)
        rows.append(
            _IngredientRow(
                name=name,
                amount=item.amount,
                unit=_clean_optional(item.unit),
                notes=_clean_optional(item.notes),
                order_index=order_index,
            )
        )
    return rows


def _prepare_steps(items: list[StepIn]) -> list[_StepRow]:
    rows: list[_StepRow] = []
    for position, item in enumerate(items):
        instruction = (item.instruction or "").strip()
        if not instruction:
            raise InvalidRecipeError(f"Step #{position + 1} needs an instruction.")
        rows.append(
            _StepRow(
                step_number=position + 1 if item.step_number is None else item.step_number,
                instruction=instruction,
                time_minutes=item.time_minutes,
                temperature=_clean_optional(item.temperature),
            )
        )
    return rows


def _header_fields(data: RecipeCreate) -> dict[str, Any]:
    title = (data.title or "").strip()
    if not title:
        raise InvalidRecipeError("title is required.")
    return {
        "title": title,
        "description": _clean_optional(data.description),
        "prep_time_minutes": data.prep_time,
        "cook_time_minutes": data.cook_time,
        "servings": data.servings,
        "difficulty_level": data.difficulty,
        "cuisine_type": normalize_cuisine(data.cuisine_type),
    }


def _header_changes(patch: RecipePatch) -> dict[str, Any]:
    """
    Column changes for the fields the caller actually sent.
    """
    changes: dict[str, Any] = {}
    for attr, column in PATCH_COLUMNS.items():
        if attr not in patch.model_fields_set:
            continue
        value = getattr(patch, attr)
        if column == "title" and value is not None:
            value = value.strip()
        elif column == "description":
            value = _clean_optional(value)
        elif column == "cuisine_type":
            value = normalize_cuisine(value)
        if column in NOT_NULL_COLUMNS and value in (None, ""):
            raise InvalidRecipeError(f"{attr} cannot be empty.")
        changes[column] = value
    return changes


def _replacement(patch: RecipePatch, attr: str) -> list[Any] | None:
    """
    None when the collection was not sent; the new list otherwise.
    """
    if attr not in patch.model_fields_set:
        return None
    items = getattr(patch, attr)
    if items is None:
        raise InvalidRecipeError(f"{attr} must be a list; send [] to remove all.")
    return items


async def _insert_ingredients(tx: Transaction, recipe_id: str, rows: list[_IngredientRow]) -> list[dict[str, Any]]:
    inserted = []
    for row in rows:
        inserted.append(
            await repository.insert_ingredient(
                tx,
                recipe_id,
                name=row.name,
                amount=row.amount,
                unit=row.unit,
                notes=row.notes,
                order_index=row.order_index,
            )
        )
    return inserted


async def _insert_steps(tx: Transaction, recipe_id: str, rows: list[_StepRow]) -> list[dict[str, Any]]:
    inserted = []
    for row in rows:
        inserted.append(
            await repository.insert_step(
                tx,
                recipe_id,
                step_number=row.step_number,
                instruction=row.instruction,
                time_minutes=row.time_minutes,
                temperature=row.temperature,
            )
        )
    return inserted


async def _lock_owned(tx: Transaction, recipe_id: str, owner_id: str) -> None:
    stored_owner = await repository.lock_recipe_owner(tx, recipe_id)
    if stored_owner is None:
        raise RecipeNotFoundError(recipe_id)
    if stored_owner != owner_id:
        raise RecipeForbiddenError(recipe_id)


async def create_recipe(database: Database, owner_id: str, data: RecipeCreate) -> Recipe:
    owner = _require_owner(owner_id)
    fields = _header_fields(data)
    ingredients = _prepare_ingredients(data.ingredients or [])
    steps = _prepare_steps(data.steps or [])
    if not ingredients:
        raise InvalidRecipeError("At least one ingredient is required.")
    if not steps:
        raise InvalidRecipeError("At least one step is required.")

    async with database.transaction() as tx:
        header = await repository.insert_recipe(tx, owner_id=owner, fields=fields)
        recipe_id = str(header["id"])
        ingredient_rows = await _insert_ingredients(tx, recipe_id, ingredients)
        step_rows = await _insert_steps(tx, recipe_id, steps)

    return assembler.recipe_from_rows(header, ingredient_rows, step_rows)


async def update_recipe(database: Database, recipe_id: str, owner_id: str, patch: RecipePatch) -> Recipe:
    recipe_id = check_recipe_id(recipe_id)
    owner = _require_owner(owner_id)
    changes = _header_changes(patch)

    new_ingredients = _replacement(patch, "ingredients")
    new_steps = _replacement(patch, "steps")
    ingredients = _prepare_ingredients(new_ingredients) if new_ingredients is not None else None
    steps = _prepare_steps(new_steps) if new_steps is not None else None

    async with database.transaction() as tx:
        await _lock_owned(tx, recipe_id, owner)
        await repository.update_recipe_fields(tx, recipe_id, owner_id=owner, changes=changes)
        if ingredients is not None:
            await repository.delete_ingredients(tx, recipe_id)
            await _insert_ingredients(tx, recipe_id, ingredients)
        if steps is not None:
            await repository.delete_steps(tx, recipe_id)
            await _insert_steps(tx, recipe_id, steps)

    recipe = await search.get_recipe_by_id(database, recipe_id)
    if recipe is None:
        # Deleted by someone else between commit and re-read.
        raise RecipeNotFoundError(recipe_id)
    return recipe


async def delete_recipe(database: Database, recipe_id: str, owner_id: str) -> None:
    recipe_id = check_recipe_id(recipe_id)
    owner = _require_owner(owner_id)

    async with database.transaction() as tx:
        await _lock_owned(tx, recipe_id, owner)
        await repository.delete_ingredients(tx, recipe_id)
        await repository.delete_steps(tx, recipe_id)
        deleted = await repository.delete_recipe(tx, recipe_id, owner_id=owner)
        if deleted != 1:
            # Raising inside the block rolls back the child deletes too.
            raise RecipeNotFoundError(recipe_id)
