"""Tests for startup migrations, the PostgreSQL connection wrapper and the mistake store."""

import asyncio
import logging
import sqlite3
from datetime import datetime

import pytest

from lessonflow.db import database, mistakes, task_progress as store
from lessonflow.db.database import (
    PgConnection,
    ProgressStoreError,
    _convert_placeholders,
    _status_rowcount,
)


@pytest.fixture
def fresh_db_path(tmp_path, monkeypatch):
    path = tmp_path / "fresh.db"
    monkeypatch.setattr(database.settings, "database_path", str(path))
    monkeypatch.setattr(database.settings, "database_url", "")
    monkeypatch.setenv("DATABASE_PATH", str(path))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return path


def _tables(path):
    conn = sqlite3.connect(path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    finally:
        conn.close()
    return {r[0] for r in rows}


class TestStartupMigration:

    def test_creates_schema_on_fresh_database(self, fresh_db_path):
        database._run_alembic_upgrade()
        tables = _tables(fresh_db_path)
        assert {"learning_tasks", "task_progress", "mistakes", "alembic_version"} <= tables

    def test_second_run_is_a_no_op(self, fresh_db_path):
        database._run_alembic_upgrade()
        database._run_alembic_upgrade()
        assert "task_progress" in _tables(fresh_db_path)

    def test_migrated_schema_enforces_one_row_per_key(self, fresh_db_path):
        database._run_alembic_upgrade()
        conn = sqlite3.connect(fresh_db_path)
        try:
            conn.execute("INSERT INTO task_progress (id, task_id, session_id) VALUES ('a', 't1', 's1')")
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("INSERT INTO task_progress (id, task_id, session_id) VALUES ('b', 't1', 's1')")
        finally:
            conn.close()

    def test_keeps_application_log_level(self, fresh_db_path):
        root = logging.getLogger()
        previous = root.level
        root.setLevel(logging.INFO)
        try:
            database._run_alembic_upgrade()
            assert root.level == logging.INFO
        finally:
            root.setLevel(previous)


class DataError(Exception):
    """Same class name asyncpg uses for rejected parameter types."""


class FakeAsyncpgConnection:
    """Records the SQL it is given and replays canned results."""

    def __init__(self, fetchrow_result=None, fetch_result=None, status="UPDATE 0", reject_strings=False):
        self.fetchrow_result = fetchrow_result
        self.fetch_result = fetch_result or []
        self.status = status
        self.reject_strings = reject_strings
        self.calls = []

    def _check(self, args):
        if self.reject_strings and any(isinstance(a, str) and a[4:5] == "-" and "T" in a for a in args):
            raise DataError("invalid input for query argument: expected a datetime")

    async def fetchrow(self, sql, *args):
        self.calls.append(("fetchrow", sql, args))
        self._check(args)
        return self.fetchrow_result

    async def fetch(self, sql, *args):
        self.calls.append(("fetch", sql, args))
        return self.fetch_result

    async def execute(self, sql, *args):
        self.calls.append(("execute", sql, args))
        return self.status


class TestPlaceholders:

    def test_numbers_question_marks_in_order(self):
        sql = "SELECT * FROM task_progress WHERE task_id = ? AND session_id = ?"
        assert _convert_placeholders(sql) == (
            "SELECT * FROM task_progress WHERE task_id = $1 AND session_id = $2"
        )

    def test_skips_question_marks_in_literals(self):
        sql = "UPDATE mistakes SET problem = 'why?' WHERE id = ?"
        assert _convert_placeholders(sql) == "UPDATE mistakes SET problem = 'why?' WHERE id = $1"


class TestStatusRowcount:

    def test_parses_command_tags(self):
        assert _status_rowcount("UPDATE 3") == 3
        assert _status_rowcount("DELETE 0") == 0

    def test_unparseable_tag(self):
        assert _status_rowcount("") == -1
        assert _status_rowcount(None) == -1


class TestPgConnection:

    def test_insert_on_conflict_reports_no_row(self):
        conn = FakeAsyncpgConnection(fetchrow_result=None)
        created = asyncio.run(store.insert_task_progress(PgConnection(conn), "t1", "s1"))
        assert created is False

        kind, sql, args = conn.calls[0]
        assert kind == "fetchrow"
        assert "ON CONFLICT (task_id, session_id) DO NOTHING RETURNING id" in sql
        assert "$8" in sql and "?" not in sql
        assert args[1:3] == ("t1", "s1")

    def test_insert_that_wins_reports_a_row(self):
        conn = FakeAsyncpgConnection(fetchrow_result={"id": "abc"})
        assert asyncio.run(store.insert_task_progress(PgConnection(conn), "t1", "s1")) is True

    def test_update_rowcount_comes_from_status(self):
        conn = FakeAsyncpgConnection(status="UPDATE 1")
        pg = PgConnection(conn)
        assert asyncio.run(store.update_task_progress(pg, "t1", "s1", quiz_passed=True)) == 1

        conn.status = "UPDATE 0"
        assert asyncio.run(store.update_task_progress(pg, "t1", "s1", quiz_passed=True)) == 0
        assert conn.calls[0][0] == "execute"

    def test_rows_come_back_with_iso_timestamps(self):
        record = {
            "id": "abc",
            "task_id": "t1",
            "session_id": "s1",
            "quiz_passed": True,
            "exercises_completed": 2,
            "current_phase": "exercises",
            "created_at": datetime(2026, 3, 20, 12, 0),
            "updated_at": datetime(2026, 3, 20, 12, 5),
        }
        conn = FakeAsyncpgConnection(fetch_result=[record])
        row = asyncio.run(store.get_task_progress(PgConnection(conn), "t1", "s1"))
        assert row["updated_at"] == "2026-03-20T12:05:00"
        assert row["exercises_completed"] == 2
        assert conn.calls[0][1].endswith("task_id = $1 AND session_id = $2")

    def test_timestamp_strings_are_retried_as_datetimes(self):
        conn = FakeAsyncpgConnection(fetchrow_result={"id": "abc"}, reject_strings=True)
        assert asyncio.run(store.insert_task_progress(PgConnection(conn), "t1", "s1")) is True
        assert len(conn.calls) == 2
        retried_args = conn.calls[1][2]
        assert isinstance(retried_args[-1], datetime)
        assert retried_args[-1].tzinfo is None


class TestMistakeStore:

    def test_records_the_mistake_type_column(self, run_with_db):
        async def scenario(db):
            mistake_id = await mistakes.record_mistake(
                db, "session-a", mistake_type="practice", problem="2x = 6", topic="Linear",
                user_answer="2", correct_answer="3",
            )
            saved = await mistakes.get_mistake(db, mistake_id)
            assert saved["type"] == "practice"
            assert saved["user_answer"] == "2"

        run_with_db(scenario)

    def test_unknown_type_is_a_store_error(self, run_with_db):
        async def scenario(db):
            with pytest.raises(ProgressStoreError):
                await mistakes.record_mistake(db, "session-a", mistake_type="homework", problem="p", topic="Linear")

        run_with_db(scenario)
