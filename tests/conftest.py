import asyncio
import sqlite3

import aiosqlite
import pytest

from lessonflow.db.database import SCHEMA_PATH


async def open_test_db(path=":memory:"):
    """Open an aiosqlite database with the full schema loaded."""
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.executescript(SCHEMA_PATH.read_text())
    await db.commit()
    return db


class BrokenWrites:
    """Connection stand-in whose reads work but whose writes fail like a locked database."""

    def __init__(self, db):
        self._db = db

    async def execute(self, sql, params=()):
        if not sql.lstrip().upper().startswith("SELECT"):
            raise sqlite3.OperationalError("database is locked")
        return await self._db.execute(sql, params)

    async def commit(self):
        await self._db.commit()


class FailingMistakeWrites:
    """Connection whose mistake inserts fail like a locked database."""

    def __init__(self, db):
        self._db = db

    async def execute(self, sql, params=()):
        if "INSERT INTO mistakes" in sql:
            raise sqlite3.OperationalError("database is locked")
        return await self._db.execute(sql, params)

    async def commit(self):
        await self._db.commit()


@pytest.fixture
def run_with_db():
    """Run an async scenario against a fresh in-memory database."""
    def _run(scenario):
        async def _main():
            db = await open_test_db()
            try:
                return await scenario(db)
            finally:
                await db.close()
        return asyncio.run(_main())
    return _run


@pytest.fixture
def schema_db_path(tmp_path):
    """A database file with the schema applied, for tests that open their own connections."""
    path = tmp_path / "lessonflow-test.db"
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA_PATH.read_text())
        conn.commit()
    finally:
        conn.close()
    return path
