"""
Shared pytest fixtures.

No PostgreSQL is needed: recipe writes run against `fakes.FakeStore`, and the
HTTP tests override `get_database` / `get_current_user` on the FastAPI app.
"""

import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Must be set before the app modules read them.
os.environ.setdefault("JWT_SECRET", "test-secret-not-real")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fakes import FakeStore  # noqa: E402

OWNER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_ID = "22222222-2222-4222-8222-222222222222"


def make_user(user_id: str = OWNER_ID, email: str = "cook@example.com") -> dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "name": "Test Cook",
        "password_hash": "",
        "is_active": True,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def recipe_payload() -> dict[str, Any]:
    """
    A valid create body in the JSON (camelCase) shape.
    """
    return {
        "title": "Omelette",
        "description": "Quick breakfast",
        "prepTime": 5,
        "cookTime": 5,
        "servings": 1,
        "difficulty": "easy",
        "cuisineType": "French",
        "ingredients": [
            {"name": "Egg", "amount": 2, "unit": "pc"},
            {"name": "Salt", "amount": 0.5, "unit": "tsp"},
        ],
        "steps": [
            {"instruction": "Beat eggs"},
            {"instruction": "Cook", "timeMinutes": 3, "temperature": "medium"},
        ],
    }


@pytest.fixture
def current_user() -> dict[str, Any]:
    return make_user()


@pytest_asyncio.fixture
async def test_client(store: FakeStore, current_user: dict[str, Any]) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against the app with the database and signed-in user replaced.

    Tests switch users by mutating `current_user` in place.
    """
    from auth import dependencies as auth_dependencies
    from core.db import get_database
    from main import app

    app.dependency_overrides[get_database] = lambda: store
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: current_user
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
