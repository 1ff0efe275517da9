"""
End-to-end checks against a real PostgreSQL.

Skipped unless TEST_DATABASE_URL points at a disposable database; the schema
is dropped and recreated from db/migrations for every test.
"""

import os
from pathlib import Path

import asyncpg
import pytest
import pytest_asyncio

from auth import repository as auth_repository
from core.db import Database
from recipes import reactions, repository, search, writer
from recipes.filters import Pagination, RecipeFilters
from recipes.schemas import RecipeCreate, RecipePatch

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "")
MIGRATION = Path(__file__).resolve().parents[1] / "db" / "migrations" / "20260101000000_init.sql"

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set")


def migration_sections() -> tuple[str, str]:
    text = MIGRATION.read_text(encoding="utf-8")
    up, _, down = text.partition("-- migrate:down")
    return up.replace("-- migrate:up", ""), down


@pytest_asyncio.fixture
async def database():
    up, down = migration_sections()
    pool = await asyncpg.create_pool(dsn=TEST_DATABASE_URL, min_size=1, max_size=2)
    try:
        await pool.execute(down)
        await pool.execute(up)
        yield Database(pool)
        await pool.execute(down)
    finally:
        await pool.close()


@pytest_asyncio.fixture
async def owner_id(database) -> str:
    user = await auth_repository.create_user(
        database, email="cook@example.com", name="Cook", password_hash="x"
    )
    return str(user["id"])


def body(title: str, *, difficulty: str = "easy", prep: int = 10) -> RecipeCreate:
    return RecipeCreate.model_validate(
        {
            "title": title,
            "prepTime": prep,
            "cookTime": 15,
            "servings": 2,
            "difficulty": difficulty,
            "ingredients": [{"name": "Egg", "amount": 1}, {"name": "Salt", "amount": 0.25}],
            "steps": [{"instruction": "Mix"}, {"instruction": "Cook"}],
        }
    )


async def row_count(database: Database, table: str) -> int:
    return int(await database.fetch_val(f"SELECT count(*) FROM {table}"))


@pytest.mark.asyncio
async def test_create_then_read_round_trip(database, owner_id):
    created = await writer.create_recipe(database, owner_id, body("Omelette"))
    fetched = await search.get_recipe_by_id(database, created.id)

    assert fetched == created
    assert [i.amount for i in fetched.ingredients] == [1.0, 0.25]
    assert await search.get_recipe_by_id(database, created.id) == fetched


@pytest.mark.asyncio
async def test_failed_step_insert_rolls_back_header(database, owner_id, monkeypatch):
    # The header and both ingredients are written before the first step fails.
    monkeypatch.setattr(
        repository,
        "INSERT_STEP",
        repository.INSERT_STEP.replace("INSERT INTO recipe_steps", "INSERT INTO recipe_steps_missing"),
    )
    with pytest.raises(asyncpg.UndefinedTableError):
        await writer.create_recipe(database, owner_id, body("Broken"))

    assert await row_count(database, "recipes") == 0
    assert await row_count(database, "recipe_ingredients") == 0
    assert await row_count(database, "recipe_steps") == 0


@pytest.mark.asyncio
async def test_replace_children_and_delete(database, owner_id):
    created = await writer.create_recipe(database, owner_id, body("Soup"))

    updated = await writer.update_recipe(
        database,
        created.id,
        owner_id,
        RecipePatch.model_validate({"ingredients": [{"name": "Water"}]}),
    )
    assert [i.name for i in updated.ingredients] == ["Water"]
    assert await row_count(database, "recipe_ingredients") == 1
    assert len(updated.steps) == 2

    await writer.delete_recipe(database, created.id, owner_id)
    assert await row_count(database, "recipe_ingredients") == 0
    assert await row_count(database, "recipe_steps") == 0
    assert await search.get_recipe_by_id(database, created.id) is None


@pytest.mark.asyncio
async def test_filter_composition_and_default_order(database, owner_id):
    first = await writer.create_recipe(database, owner_id, body("Quick easy", prep=10))
    await writer.create_recipe(database, owner_id, body("Slow easy", prep=45))
    await writer.create_recipe(database, owner_id, body("Quick hard", difficulty="hard", prep=5))
    last = await writer.create_recipe(database, owner_id, body("Another quick easy", prep=20))

    page = await search.list_recipes(database, RecipeFilters(difficulty="easy", max_prep_time=20))
    assert {r.title for r in page.items} == {"Quick easy", "Another quick easy"}
    assert page.total_count == 2

    everything = await search.list_recipes(database, pagination=Pagination(limit=2))
    assert everything.total_count == 4
    assert everything.total_pages == 2
    assert everything.items[0].id == last.id
    assert first.id not in {r.id for r in everything.items}

    found = await search.list_recipes(database, RecipeFilters(search="ANOTHER"))
    assert [r.id for r in found.items] == [last.id]


@pytest.mark.asyncio
async def test_likes_are_idempotent_and_follow_the_recipe(database, owner_id):
    created = await writer.create_recipe(database, owner_id, body("Stew"))

    assert await reactions.add_reaction(database, reactions.LIKE, created.id, owner_id) is True
    assert await reactions.add_reaction(database, reactions.LIKE, created.id, owner_id) is False
    assert await reactions.add_reaction(database, reactions.SAVE, created.id, owner_id) is True
    assert await row_count(database, "recipe_likes") == 1

    liked = await reactions.list_liked_recipes(database, owner_id)
    assert [r.id for r in liked.items] == [created.id]

    await writer.delete_recipe(database, created.id, owner_id)
    assert await row_count(database, "recipe_likes") == 0
    assert await row_count(database, "recipe_saves") == 0
    assert await reactions.remove_reaction(database, reactions.LIKE, created.id, owner_id) is False
