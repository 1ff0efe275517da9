"""
Recipe error taxonomy.

These carry no HTTP details; `main.py` maps them to status codes.
"""

from __future__ import annotations


class RecipeError(Exception):
    pass


class InvalidRecipeError(RecipeError, ValueError):
    pass


class RecipeNotFoundError(RecipeError, LookupError):
    def __init__(self, recipe_id: str) -> None:
        super().__init__("Recipe not found.")
        self.recipe_id = recipe_id


class RecipeForbiddenError(RecipeError, PermissionError):
    def __init__(self, recipe_id: str) -> None:
        super().__init__("You do not own this recipe.")
        self.recipe_id = recipe_id
