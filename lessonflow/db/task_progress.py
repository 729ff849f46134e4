"""
task_progress.py - Row store for per-(task, learner session) progress

Provides read/insert/update helpers for the task_progress table. Every
helper is keyed by the composite (task_id, session_id); the table carries a
UNIQUE constraint on that pair so find-or-create never duplicates a row.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import aiosqlite

from lessonflow.db.database import store_call


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ══════════════════════════════════════════════════════════════════════════════
# READS
# ══════════════════════════════════════════════════════════════════════════════

@store_call
async def get_task_progress(
    db: aiosqlite.Connection,
    task_id: str,
    session_id: str
) -> Optional[Dict[str, Any]]:
    """Get the progress row for a task and learner session, or None."""
    cursor = await db.execute(
        "SELECT * FROM task_progress WHERE task_id = ? AND session_id = ?",
        (task_id, session_id)
    )
    row = await cursor.fetchone()
    return _row_to_dict(row)


@store_call
async def list_progress_for_task(db: aiosqlite.Connection, task_id: str) -> List[Dict[str, Any]]:
    """Get every session's progress on a task, most recently updated first."""
    cursor = await db.execute(
        "SELECT * FROM task_progress WHERE task_id = ? ORDER BY updated_at DESC",
        (task_id,)
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(r) for r in rows]


@store_call
async def list_progress_for_session(db: aiosqlite.Connection, session_id: str) -> List[Dict[str, Any]]:
    """Get a learner session's progress across all tasks."""
    cursor = await db.execute(
        "SELECT * FROM task_progress WHERE session_id = ? ORDER BY updated_at DESC",
        (session_id,)
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════════════
# WRITES
# ══════════════════════════════════════════════════════════════════════════════

@store_call
async def insert_task_progress(
    db: aiosqlite.Connection,
    task_id: str,
    session_id: str,
    quiz_passed: bool = False,
    exercises_completed: int = 0,
    current_phase: str = "theory"
) -> bool:
    """Insert a progress row unless one already exists for the key.

    Returns True when this call created the row, False when another writer
    got there first and nothing was inserted.
    """
    now = _now()
    cursor = await db.execute(
        """INSERT INTO task_progress
           (id, task_id, session_id, quiz_passed, exercises_completed, current_phase, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT (task_id, session_id) DO NOTHING""",
        (uuid.uuid4().hex, task_id, session_id, quiz_passed, exercises_completed, current_phase, now, now)
    )
    await db.commit()
    return cursor.rowcount > 0


@store_call
async def update_task_progress(
    db: aiosqlite.Connection,
    task_id: str,
    session_id: str,
    *,
    quiz_passed: Optional[bool] = None,
    exercises_completed: Optional[int] = None,
    current_phase: Optional[str] = None
) -> int:
    """Update the given fields and refresh updated_at. Returns the affected row count."""
    assignments = []
    params: List[Any] = []
    if quiz_passed is not None:
        assignments.append("quiz_passed = ?")
        params.append(quiz_passed)
    if exercises_completed is not None:
        assignments.append("exercises_completed = ?")
        params.append(exercises_completed)
    if current_phase is not None:
        assignments.append("current_phase = ?")
        params.append(current_phase)
    assignments.append("updated_at = ?")
    params.append(_now())

    cursor = await db.execute(
        f"UPDATE task_progress SET {', '.join(assignments)} WHERE task_id = ? AND session_id = ?",
        (*params, task_id, session_id)
    )
    await db.commit()
    return cursor.rowcount


async def find_or_create_task_progress(
    db: aiosqlite.Connection,
    task_id: str,
    session_id: str
) -> Dict[str, Any]:
    """Return the progress row for the key, creating it with defaults if absent."""
    row = await get_task_progress(db, task_id, session_id)
    if row:
        return row
    await insert_task_progress(db, task_id, session_id)
    return await get_task_progress(db, task_id, session_id)


# ══════════════════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ══════════════════════════════════════════════════════════════════════════════

def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    """Convert a task_progress row to a dictionary with a real boolean quiz flag."""
    if row is None:
        return None

    result = dict(row)
    # SQLite hands booleans back as 0/1
    result["quiz_passed"] = bool(result.get("quiz_passed"))
    result["exercises_completed"] = int(result.get("exercises_completed") or 0)
    return result
