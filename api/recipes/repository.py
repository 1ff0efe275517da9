"""
Recipe persistence (raw SQL).

Every function takes an executor as its first argument: either the pooled
`core.db.Database` or a `core.db.Transaction`. Writers pass the transaction so
all statements of one operation share a connection.

Tables:
- recipes(id, user_id, title, description, prep_time_minutes, cook_time_minutes,
          servings, difficulty_level, cuisine_type, created_at, updated_at)
- recipe_ingredients(id, recipe_id, name, amount, unit, notes, order_index)
- recipe_steps(id, recipe_id, step_number, instruction, time_minutes, temperature)
- recipe_likes(user_id, recipe_id, created_at), recipe_saves(user_id, recipe_id, created_at)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from core.db import Executor, affected_rows

from .filters import WhereClause

RECIPE_COLUMNS = (
    "id, user_id, title, description, prep_time_minutes, cook_time_minutes, "
    "servings, difficulty_level, cuisine_type, created_at, updated_at"
)
INGREDIENT_COLUMNS = "id, recipe_id, name, amount, unit, notes, order_index"
STEP_COLUMNS = "id, recipe_id, step_number, instruction, time_minutes, temperature"

# Columns a partial update may touch.
UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "prep_time_minutes",
        "cook_time_minutes",
        "servings",
        "difficulty_level",
        "cuisine_type",
    }
)

INSERT_RECIPE = f"""
    INSERT INTO recipes (
      user_id, title, description, prep_time_minutes, cook_time_minutes,
      servings, difficulty_level, cuisine_type
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    RETURNING {RECIPE_COLUMNS}
"""

INSERT_INGREDIENT = f"""
    INSERT INTO recipe_ingredients (recipe_id, name, amount, unit, notes, order_index)
    VALUES ($1, $2, $3, $4, $5, $6)
    RETURNING {INGREDIENT_COLUMNS}
"""

INSERT_STEP = f"""
    INSERT INTO recipe_steps (recipe_id, step_number, instruction, time_minutes, temperature)
    VALUES ($1, $2, $3, $4, $5)
    RETURNING {STEP_COLUMNS}
"""

LOCK_RECIPE_OWNER = """
    SELECT user_id
    FROM recipes
    WHERE id = $1
    FOR UPDATE
"""

DELETE_INGREDIENTS = "DELETE FROM recipe_ingredients WHERE recipe_id = $1"

DELETE_STEPS = "DELETE FROM recipe_steps WHERE recipe_id = $1"

DELETE_RECIPE = """
    DELETE FROM recipes
    WHERE id = $1
      AND user_id = $2
"""

SELECT_RECIPE = f"""
    SELECT {RECIPE_COLUMNS}
    FROM recipes
    WHERE id = $1
"""

SELECT_OWNED_RECIPE = f"""
    SELECT {RECIPE_COLUMNS}
    FROM recipes
    WHERE id = $1
      AND user_id = $2
"""

SELECT_INGREDIENTS = f"""
    SELECT {INGREDIENT_COLUMNS}
    FROM recipe_ingredients
    WHERE recipe_id = ANY($1::text[])
    ORDER BY recipe_id, order_index, id
"""

SELECT_STEPS = f"""
    SELECT {STEP_COLUMNS}
    FROM recipe_steps
    WHERE recipe_id = ANY($1::text[])
    ORDER BY recipe_id, step_number, id
"""

SELECT_CUISINE_TYPES = """
    SELECT DISTINCT cuisine_type
    FROM recipes
    WHERE cuisine_type IS NOT NULL
    ORDER BY cuisine_type
"""

# Blocks a concurrent delete of the recipe without blocking header updates.
LOCK_RECIPE_KEY = """
    SELECT id
    FROM recipes
    WHERE id = $1
    FOR KEY SHARE
"""

INSERT_LIKE = """
    INSERT INTO recipe_likes (user_id, recipe_id)
    VALUES ($1, $2)
    ON CONFLICT (user_id, recipe_id) DO NOTHING
"""

DELETE_LIKE = "DELETE FROM recipe_likes WHERE user_id = $1 AND recipe_id = $2"

INSERT_SAVE = """
    INSERT INTO recipe_saves (user_id, recipe_id)
    VALUES ($1, $2)
    ON CONFLICT (user_id, recipe_id) DO NOTHING
"""

DELETE_SAVE = "DELETE FROM recipe_saves WHERE user_id = $1 AND recipe_id = $2"

# reaction kind -> (insert, delete)
REACTION_STATEMENTS: dict[str, tuple[str, str]] = {
    "like": (INSERT_LIKE, DELETE_LIKE),
    "save": (INSERT_SAVE, DELETE_SAVE),
}


def _numeric_arg(value: float | None) -> Decimal | None:
    """
    asyncpg encodes `numeric` from Decimal; go through str to keep 0.1 as 0.1.
    """
    if value is None:
        return None
    return Decimal(str(value))


async def insert_recipe(conn: Executor, *, owner_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    row = await conn.fetch_one(
        INSERT_RECIPE,
        owner_id,
        fields["title"],
        fields.get("description"),
        fields["prep_time_minutes"],
        fields["cook_time_minutes"],
        fields["servings"],
        fields.get("difficulty_level"),
        fields.get("cuisine_type"),
    )
    if row is None:
        raise RuntimeError("Failed to insert recipe.")
    return row


async def insert_ingredient(
    conn: Executor,
    recipe_id: str,
    *,
    name: str,
    amount: float | None,
    unit: str | None,
    notes: str | None,
    order_index: int,
) -> dict[str, Any]:
    row = await conn.fetch_one(
        INSERT_INGREDIENT,
        recipe_id,
        name,
        _numeric_arg(amount),
        unit,
        notes,
        order_index,
    )
    if row is None:
        raise RuntimeError("Failed to insert ingredient.")
    return row


async def insert_step(
    conn: Executor,
    recipe_id: str,
    *,
    step_number: int,
    instruction: str,
    time_minutes: int | None,
    temperature: str | None,
) -> dict[str, Any]:
    row = await conn.fetch_one(
        INSERT_STEP,
        recipe_id,
        step_number,
        instruction,
        time_minutes,
        temperature,
    )
    if row is None:
        raise RuntimeError("Failed to insert step.")
    return row


async def lock_recipe_owner(conn: Executor, recipe_id: str) -> str | None:
    """
    Row-lock the recipe header for the rest of the transaction.
    Returns the owner id, or None when the recipe does not exist.
    """
    row = await conn.fetch_one(LOCK_RECIPE_OWNER, recipe_id)
    return str(row["user_id"]) if row is not None else None


def build_update(recipe_id: str, owner_id: str, changes: dict[str, Any]) -> tuple[str, tuple[Any, ...]]:
    """
    Build `UPDATE recipes SET ...` for exactly the columns in `changes`.

    $1 is the recipe id, $2 the owner id, changed columns follow in order.
    `updated_at` is always bumped, so an empty `changes` only touches the
    timestamp.
    """
    unknown = set(changes) - UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"Not updatable: {sorted(unknown)}")

    assignments: list[str] = []
    params: list[Any] = [recipe_id, owner_id]
    for column, value in changes.items():
        params.append(value)
        assignments.append(f"{column} = ${len(params)}")
    assignments.append("updated_at = now()")

    sql = f"UPDATE recipes SET {', '.join(assignments)} WHERE id = $1 AND user_id = $2"
    return sql, tuple(params)


async def update_recipe_fields(
    conn: Executor,
    recipe_id: str,
    *,
    owner_id: str,
    changes: dict[str, Any],
) -> int:
    sql, params = build_update(recipe_id, owner_id, changes)
    return affected_rows(await conn.execute(sql, *params))


async def delete_ingredients(conn: Executor, recipe_id: str) -> int:
    return affected_rows(await conn.execute(DELETE_INGREDIENTS, recipe_id))


async def delete_steps(conn: Executor, recipe_id: str) -> int:
    return affected_rows(await conn.execute(DELETE_STEPS, recipe_id))


async def delete_recipe(conn: Executor, recipe_id: str, *, owner_id: str) -> int:
    return affected_rows(await conn.execute(DELETE_RECIPE, recipe_id, owner_id))


async def fetch_recipe(conn: Executor, recipe_id: str, *, owner_id: str | None = None) -> dict[str, Any] | None:
    if owner_id is None:
        return await conn.fetch_one(SELECT_RECIPE, recipe_id)
    return await conn.fetch_one(SELECT_OWNED_RECIPE, recipe_id, owner_id)


async def fetch_ingredients(conn: Executor, recipe_ids: list[str]) -> list[dict[str, Any]]:
    if not recipe_ids:
        return []
    return await conn.fetch_all(SELECT_INGREDIENTS, recipe_ids)


async def fetch_steps(conn: Executor, recipe_ids: list[str]) -> list[dict[str, Any]]:
    if not recipe_ids:
        return []
    return await conn.fetch_all(SELECT_STEPS, recipe_ids)


async def count_recipes(conn: Executor, where: WhereClause) -> int:
    value = await conn.fetch_val(f"SELECT count(*) FROM recipes {where.sql}", *where.params)
    return int(value or 0)


async def fetch_recipe_page(
    conn: Executor,
    where: WhereClause,
    *,
    order_by: str,
    limit_offset: str,
    page_params: tuple[int, int],
) -> list[dict[str, Any]]:
    sql = f"SELECT {RECIPE_COLUMNS} FROM recipes {where.sql} {order_by} {limit_offset}"
    return await conn.fetch_all(sql, *where.params, *page_params)


async def list_cuisine_types(conn: Executor) -> list[str]:
    rows = await conn.fetch_all(SELECT_CUISINE_TYPES)
    return [str(row["cuisine_type"]) for row in rows]


async def recipe_totals(conn: Executor, where: WhereClause) -> dict[str, Any]:
    row = await conn.fetch_one(
        f"""
        SELECT
          count(*) AS total_recipes,
          count(DISTINCT user_id) AS total_authors,
          COALESCE(round(avg(cook_time_minutes)), 0) AS avg_cook_time
        FROM recipes
        {where.sql}
        """,
        *where.params,
    )
    return row or {"total_recipes": 0, "total_authors": 0, "avg_cook_time": 0}


async def top_cuisines(conn: Executor, where: WhereClause, *, limit: int = 5) -> list[dict[str, Any]]:
    conditions = "cuisine_type IS NOT NULL"
    if where.sql:
        conditions = f"{where.sql[len('WHERE '):]} AND {conditions}"
    return await conn.fetch_all(
        f"""
        SELECT cuisine_type, count(*) AS count
        FROM recipes
        WHERE {conditions}
        GROUP BY cuisine_type
        ORDER BY count DESC, cuisine_type ASC
        LIMIT ${where.next_index}
        """,
        *where.params,
        limit,
    )


async def lock_recipe_key(conn: Executor, recipe_id: str) -> bool:
    """
    Key-share lock on the recipe header; False when it does not exist.
    """
    return await conn.fetch_one(LOCK_RECIPE_KEY, recipe_id) is not None


def _reaction_statements(kind: str) -> tuple[str, str]:
    try:
        return REACTION_STATEMENTS[kind]
    except KeyError:
        raise ValueError(f"Unknown reaction: {kind}") from None


async def add_reaction(conn: Executor, kind: str, *, user_id: str, recipe_id: str) -> bool:
    """
    Returns False when the user had already reacted this way.
    """
    insert, _ = _reaction_statements(kind)
    return affected_rows(await conn.execute(insert, user_id, recipe_id)) == 1


async def remove_reaction(conn: Executor, kind: str, *, user_id: str, recipe_id: str) -> bool:
    _, delete = _reaction_statements(kind)
    return affected_rows(await conn.execute(delete, user_id, recipe_id)) == 1
