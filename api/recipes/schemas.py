"""
Recipe schemas.

Request bodies and aggregate models. Python attributes are snake_case; JSON
uses camelCase aliases (`prepTime`, `orderIndex`, ...). Both spellings are
accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from core.schemas import CamelModel

from .errors import InvalidRecipeError

Difficulty = Literal["easy", "medium", "hard"]

DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium", "hard")

# integer columns are int4; amount is numeric(12,3).
MAX_INT = 2**31 - 1
MAX_AMOUNT = 999_999_999.999


class IngredientIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: float | None = Field(default=None, ge=0, le=MAX_AMOUNT)
    unit: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)
    # Defaults to the position in the submitted list.
    order_index: int | None = Field(default=None, ge=0, le=MAX_INT)


class StepIn(CamelModel):
    instruction: str = Field(..., min_length=1, max_length=5000)
    # Defaults to position + 1.
    step_number: int | None = Field(default=None, ge=1, le=MAX_INT)
    time_minutes: int | None = Field(default=None, ge=0, le=MAX_INT)
    temperature: str | None = Field(default=None, max_length=50)


class RecipeCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    prep_time: int = Field(..., ge=0, le=MAX_INT)
    cook_time: int = Field(..., ge=0, le=MAX_INT)
    servings: int = Field(..., ge=1, le=MAX_INT)
    difficulty: Difficulty | None = None
    cuisine_type: str | None = Field(default=None, max_length=100)
    ingredients: list[IngredientIn] = Field(..., min_length=1)
    steps: list[StepIn] = Field(..., min_length=1)


class RecipePatch(CamelModel):
    """
    Partial update. Only fields present in the request body are applied;
    `ingredients` / `steps`, when present, replace the whole collection.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    prep_time: int | None = Field(default=None, ge=0, le=MAX_INT)
    cook_time: int | None = Field(default=None, ge=0, le=MAX_INT)
    servings: int | None = Field(default=None, ge=1, le=MAX_INT)
    difficulty: Difficulty | None = None
    cuisine_type: str | None = Field(default=None, max_length=100)
    ingredients: list[IngredientIn] | None = None
    steps: list[StepIn] | None = None


class Ingredient(CamelModel):
    id: str
    recipe_id: str
    name: str
    amount: float | None = None
    unit: str | None = None
    notes: str | None = None
    order_index: int


class Step(CamelModel):
    id: str
    recipe_id: str
    step_number: int
    instruction: str
    time_minutes: int | None = None
    temperature: str | None = None


class Recipe(CamelModel):
    id: str
    owner_id: str
    title: str
    description: str | None = None
    prep_time_minutes: int
    cook_time_minutes: int
    servings: int
    difficulty: Difficulty | None = None
    cuisine_type: str | None = None
    created_at: datetime
    updated_at: datetime
    ingredients: list[Ingredient] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)


class CuisineCount(CamelModel):
    cuisine_type: str
    count: int


class RecipeStats(CamelModel):
    total_recipes: int
    total_authors: int
    avg_cook_time: int
    top_cuisines: list[CuisineCount] = Field(default_factory=list)


def normalize_cuisine(value: str | None) -> str | None:
    """
    Cuisine types are stored and compared trimmed and lower-cased.
    """
    if value is None:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


def check_recipe_id(value: str) -> str:
    """
    Recipe ids are UUID text. Reject anything else before it reaches SQL.
    """
    raw = (value or "").strip()
    try:
        return str(UUID(raw))
    except ValueError as exc:
        raise InvalidRecipeError("Invalid recipe id.") from exc
