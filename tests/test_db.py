"""
Tests for the asyncpg wrapper (pool mocked).
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core import db


def mock_pool():
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value={"id": "r1"})
    conn.execute = AsyncMock(return_value="DELETE 2")
    tx_cm = MagicMock()
    tx_cm.__aenter__ = AsyncMock(return_value=None)
    tx_cm.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=tx_cm)

    acquire_cm = MagicMock()
    acquire_cm.__aenter__ = AsyncMock(return_value=conn)
    acquire_cm.__aexit__ = AsyncMock(return_value=False)
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=acquire_cm)
    return pool, conn, tx_cm, acquire_cm


@pytest.mark.parametrize(
    "tag,expected",
    [("DELETE 3", 3), ("UPDATE 0", 0), ("INSERT 0 1", 1), ("", 0), ("CREATE TABLE", 0)],
)
def test_affected_rows(tag, expected):
    assert db.affected_rows(tag) == expected


def test_sslmode_is_dropped_from_url():
    url = db._sanitize_database_url("postgresql://u:p@h:5432/app?sslmode=disable&application_name=api")
    assert url == "postgresql://u:p@h:5432/app?application_name=api"


@pytest.mark.asyncio
async def test_transaction_runs_on_one_connection():
    pool, conn, tx_cm, acquire_cm = mock_pool()
    database = db.Database(pool)

    async with database.transaction() as tx:
        assert await tx.fetch_one("SELECT 1") == {"id": "r1"}
        assert await tx.execute("DELETE FROM x") == "DELETE 2"

    pool.acquire.assert_called_once()
    tx_cm.__aexit__.assert_awaited_once_with(None, None, None)
    acquire_cm.__aexit__.assert_awaited_once()


@pytest.mark.asyncio
async def test_transaction_error_reaches_asyncpg_and_propagates():
    pool, _conn, tx_cm, acquire_cm = mock_pool()
    database = db.Database(pool)
    boom = RuntimeError("boom")

    with pytest.raises(RuntimeError) as exc:
        async with database.transaction():
            raise boom

    assert exc.value is boom
    exc_type, exc_value, _ = tx_cm.__aexit__.await_args.args
    assert exc_type is RuntimeError
    assert exc_value is boom
    acquire_cm.__aexit__.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_in_transaction_returns_work_result():
    pool, _conn, _tx_cm, _acquire_cm = mock_pool()

    async def work(tx):
        return await tx.fetch_one("SELECT 1")

    assert await db.Database(pool).run_in_transaction(work) == {"id": "r1"}


def test_get_database_before_init_fails():
    with pytest.raises(RuntimeError):
        db.get_database()
