"""
Tests for the recipe aggregate writer against the in-memory store.

Covers defaulting of orderIndex / stepNumber, replace-all child updates,
ownership, and all-or-nothing behaviour when a statement fails mid-sequence.
"""

import copy

import pytest

from conftest import OTHER_ID, OWNER_ID
from fakes import FakeStoreError
from recipes import repository, search, writer
from recipes.errors import InvalidRecipeError, RecipeForbiddenError, RecipeNotFoundError
from recipes.schemas import RecipeCreate, RecipePatch

MISSING_ID = "99999999-9999-4999-8999-999999999999"


def create_body(**overrides) -> RecipeCreate:
    body = {
        "title": "Boiled egg",
        "prepTime": 1,
        "cookTime": 9,
        "servings": 1,
        "ingredients": [{"name": "Egg"}],
        "steps": [{"instruction": "Boil"}],
    }
    body.update(overrides)
    return RecipeCreate.model_validate(body)


def patch_body(**fields) -> RecipePatch:
    return RecipePatch.model_validate(fields)


class TestCreate:
    @pytest.mark.asyncio
    async def test_defaults_order_index_and_step_number(self, store):
        recipe = await writer.create_recipe(store, OWNER_ID, create_body())

        assert recipe.owner_id == OWNER_ID
        assert [i.order_index for i in recipe.ingredients] == [0]
        assert [s.step_number for s in recipe.steps] == [1]
        assert store.commits == 1
        assert store.open_transactions == 0

    @pytest.mark.asyncio
    async def test_positions_and_explicit_values(self, store, recipe_payload):
        recipe_payload["ingredients"][1]["orderIndex"] = 7
        recipe_payload["steps"][0]["stepNumber"] = 5
        recipe = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        assert [(i.name, i.order_index) for i in recipe.ingredients] == [("Egg", 0), ("Salt", 7)]
        assert [s.step_number for s in recipe.steps] == [5, 2]
        assert recipe.ingredients[1].amount == 0.5
        assert recipe.steps[1].temperature == "medium"
        assert recipe.cuisine_type == "french"

    @pytest.mark.asyncio
    async def test_returned_aggregate_matches_stored_one(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        fetched = await search.get_recipe_by_id(store, created.id)
        assert fetched == created

    @pytest.mark.asyncio
    async def test_duplicate_order_index_rejected_before_any_statement(self, store):
        body = create_body(ingredients=[{"name": "Egg", "orderIndex": 1}, {"name": "Salt", "orderIndex": 1}])
        with pytest.raises(InvalidRecipeError, match="Duplicate"):
            await writer.create_recipe(store, OWNER_ID, body)
        assert store.statements == []

    @pytest.mark.asyncio
    async def test_blank_names_rejected_before_any_statement(self, store):
        with pytest.raises(InvalidRecipeError):
            await writer.create_recipe(store, OWNER_ID, create_body(title="   "))
        with pytest.raises(InvalidRecipeError):
            await writer.create_recipe(store, OWNER_ID, create_body(steps=[{"instruction": "  "}]))
        assert store.statements == []

    @pytest.mark.asyncio
    async def test_missing_owner_rejected(self, store):
        with pytest.raises(InvalidRecipeError):
            await writer.create_recipe(store, "", create_body())

    @pytest.mark.asyncio
    async def test_failure_on_second_ingredient_leaves_nothing(self, store, recipe_payload):
        store.fail_on(repository.INSERT_INGREDIENT, nth=2)

        with pytest.raises(FakeStoreError):
            await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        assert store.recipes == {}
        assert store.ingredients == {}
        assert store.steps == {}
        assert store.rollbacks == 1
        assert store.commits == 0
        assert store.open_transactions == 0

    @pytest.mark.asyncio
    async def test_failure_on_last_step_leaves_nothing(self, store, recipe_payload):
        store.fail_on(repository.INSERT_STEP, nth=2)

        with pytest.raises(FakeStoreError):
            await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        assert store.recipes == {}
        assert store.ingredients == {}


class TestUpdate:
    @pytest.mark.asyncio
    async def test_replace_ingredients_not_merge(self, store):
        created = await writer.create_recipe(store, OWNER_ID, create_body())

        updated = await writer.update_recipe(
            store,
            created.id,
            OWNER_ID,
            patch_body(ingredients=[{"name": "Egg"}, {"name": "Salt"}]),
        )

        assert [(i.name, i.order_index) for i in updated.ingredients] == [("Egg", 0), ("Salt", 1)]
        assert len(store.ingredients_of(created.id)) == 2
        assert updated.steps == created.steps

    @pytest.mark.asyncio
    async def test_header_only_patch_leaves_children_untouched(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        ingredients_before = copy.deepcopy(store.ingredients_of(created.id))
        steps_before = copy.deepcopy(store.steps_of(created.id))

        updated = await writer.update_recipe(store, created.id, OWNER_ID, patch_body(title="Fluffy omelette"))

        assert updated.title == "Fluffy omelette"
        assert updated.description == created.description
        assert updated.servings == created.servings
        assert updated.updated_at > created.updated_at
        assert store.ingredients_of(created.id) == ingredients_before
        assert store.steps_of(created.id) == steps_before
        assert repository.DELETE_INGREDIENTS not in store.statements

    @pytest.mark.asyncio
    async def test_empty_list_removes_all_steps(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        updated = await writer.update_recipe(store, created.id, OWNER_ID, patch_body(steps=[]))

        assert updated.steps == []
        assert len(updated.ingredients) == 2

    @pytest.mark.asyncio
    async def test_null_collection_rejected(self, store):
        created = await writer.create_recipe(store, OWNER_ID, create_body())
        with pytest.raises(InvalidRecipeError):
            await writer.update_recipe(store, created.id, OWNER_ID, patch_body(ingredients=None))

    @pytest.mark.asyncio
    async def test_null_for_required_field_rejected(self, store):
        created = await writer.create_recipe(store, OWNER_ID, create_body())
        with pytest.raises(InvalidRecipeError):
            await writer.update_recipe(store, created.id, OWNER_ID, patch_body(servings=None))

    @pytest.mark.asyncio
    async def test_description_can_be_cleared(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        updated = await writer.update_recipe(store, created.id, OWNER_ID, patch_body(description=None))
        assert updated.description is None

    @pytest.mark.asyncio
    async def test_not_found(self, store):
        with pytest.raises(RecipeNotFoundError):
            await writer.update_recipe(store, MISSING_ID, OWNER_ID, patch_body(title="x"))
        assert store.rollbacks == 1

    @pytest.mark.asyncio
    async def test_other_owner_forbidden_and_nothing_changes(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        before = copy.deepcopy((store.recipes, store.ingredients, store.steps))

        with pytest.raises(RecipeForbiddenError):
            await writer.update_recipe(store, created.id, OTHER_ID, patch_body(title="Mine now", steps=[]))

        assert (store.recipes, store.ingredients, store.steps) == before

    @pytest.mark.asyncio
    async def test_failure_during_reinsert_restores_old_children(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        before = copy.deepcopy((store.recipes, store.ingredients, store.steps))
        store.fail_on(repository.INSERT_INGREDIENT, nth=2)

        with pytest.raises(FakeStoreError):
            await writer.update_recipe(
                store,
                created.id,
                OWNER_ID,
                patch_body(title="Changed", ingredients=[{"name": "A"}, {"name": "B"}]),
            )

        assert (store.recipes, store.ingredients, store.steps) == before

    @pytest.mark.asyncio
    async def test_invalid_id_rejected(self, store):
        with pytest.raises(InvalidRecipeError):
            await writer.update_recipe(store, "not-a-uuid", OWNER_ID, patch_body(title="x"))
        assert store.statements == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_header_and_children(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        await writer.delete_recipe(store, created.id, OWNER_ID)

        assert created.id not in store.recipes
        assert store.ingredients_of(created.id) == []
        assert store.steps_of(created.id) == []
        assert await search.get_recipe_by_id(store, created.id) is None

    @pytest.mark.asyncio
    async def test_delete_by_other_owner_forbidden(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))

        with pytest.raises(RecipeForbiddenError):
            await writer.delete_recipe(store, created.id, OTHER_ID)

        assert len(store.ingredients_of(created.id)) == 2

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        with pytest.raises(RecipeNotFoundError):
            await writer.delete_recipe(store, MISSING_ID, OWNER_ID)

    @pytest.mark.asyncio
    async def test_header_delete_failure_keeps_children(self, store, recipe_payload):
        created = await writer.create_recipe(store, OWNER_ID, RecipeCreate.model_validate(recipe_payload))
        store.fail_on(repository.DELETE_RECIPE)

        with pytest.raises(FakeStoreError):
            await writer.delete_recipe(store, created.id, OWNER_ID)

        assert len(store.ingredients_of(created.id)) == 2
        assert len(store.steps_of(created.id)) == 2
        assert created.id in store.recipes
