"""
learning_tasks.py - Minimal access to scheduled learning tasks

Tasks are planned elsewhere; the exercise flow only needs to look one up,
mark it complete once its exercise quota is met, and find the next one.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any

import aiosqlite

from lessonflow.db.database import store_call


@store_call
async def create_task(
    db: aiosqlite.Connection,
    task_id: str,
    title: str,
    day_number: int = 1,
    scheduled_date: Optional[str] = None,
    description: Optional[str] = None,
    task_type: Optional[str] = None
) -> str:
    await db.execute(
        """INSERT INTO learning_tasks (id, title, description, task_type, day_number, scheduled_date)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (task_id, title, description, task_type, day_number, scheduled_date)
    )
    await db.commit()
    return task_id


@store_call
async def get_task(db: aiosqlite.Connection, task_id: str) -> Optional[Dict[str, Any]]:
    cursor = await db.execute("SELECT * FROM learning_tasks WHERE id = ?", (task_id,))
    row = await cursor.fetchone()
    return _row_to_dict(row)


@store_call
async def mark_task_complete(db: aiosqlite.Connection, task_id: str) -> bool:
    """Flag a task as completed. Returns False if the task is unknown."""
    cursor = await db.execute(
        "UPDATE learning_tasks SET is_completed = ?, completed_at = ? WHERE id = ?",
        (True, datetime.now(timezone.utc).isoformat(), task_id)
    )
    await db.commit()
    return cursor.rowcount > 0


@store_call
async def get_next_incomplete_task(db: aiosqlite.Connection) -> Optional[Dict[str, Any]]:
    """Get the incomplete task with the lowest day number."""
    cursor = await db.execute(
        """SELECT * FROM learning_tasks
           WHERE is_completed = ?
           ORDER BY day_number ASC, created_at ASC
           LIMIT 1""",
        (False,)
    )
    row = await cursor.fetchone()
    return _row_to_dict(row)


def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    result = dict(row)
    result["is_completed"] = bool(result.get("is_completed"))
    return result
