"""
mistakes.py - Row store for recorded learner mistakes

Provides insert/fetch/delete helpers for the mistakes table, scoped by the
learner session that made them.
"""

import json
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import aiosqlite

from lessonflow.db.database import store_call


@store_call
async def record_mistake(
    db: aiosqlite.Connection,
    session_id: str,
    mistake_type: str,
    problem: str,
    topic: str,
    attempts: Optional[int] = None,
    user_answer: Optional[str] = None,
    correct_answer: Optional[str] = None,
    incorrect_steps: Optional[List[int]] = None,
    step_details: Optional[List[Dict[str, Any]]] = None
) -> int:
    """Record a mistake. Returns the new mistake ID."""
    cursor = await db.execute(
        """INSERT INTO mistakes
           (session_id, type, problem, topic, attempts, user_answer, correct_answer,
            incorrect_steps, step_details, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            session_id,
            mistake_type,
            problem,
            topic,
            attempts,
            user_answer,
            correct_answer,
            json.dumps(incorrect_steps) if incorrect_steps else None,
            json.dumps(step_details) if step_details else None,
            datetime.now(timezone.utc).isoformat(),
        )
    )
    await db.commit()
    return cursor.lastrowid


@store_call
async def get_mistake(db: aiosqlite.Connection, mistake_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute("SELECT * FROM mistakes WHERE id = ?", (mistake_id,))
    row = await cursor.fetchone()
    return _row_to_dict(row)


@store_call
async def list_mistakes(
    db: aiosqlite.Connection,
    session_id: str,
    limit: int = 500
) -> List[Dict[str, Any]]:
    """Get a session's mistakes, newest first."""
    cursor = await db.execute(
        "SELECT * FROM mistakes WHERE session_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
        (session_id, limit)
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(r) for r in rows]


@store_call
async def delete_mistake(db: aiosqlite.Connection, mistake_id: int, session_id: str) -> bool:
    """Delete one of the session's mistakes. Returns False if nothing matched."""
    cursor = await db.execute(
        "DELETE FROM mistakes WHERE id = ? AND session_id = ?",
        (mistake_id, session_id)
    )
    await db.commit()
    return cursor.rowcount > 0


@store_call
async def clear_mistakes(db: aiosqlite.Connection, session_id: str) -> int:
    """Delete every mistake recorded for the session. Returns the number removed."""
    cursor = await db.execute("DELETE FROM mistakes WHERE session_id = ?", (session_id,))
    await db.commit()
    return cursor.rowcount


def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    """Convert a mistakes row to a dictionary, decoding the JSON step columns."""
    if row is None:
        return None

    result = dict(row)
    for field, empty in (("incorrect_steps", []), ("step_details", None)):
        value = result.get(field)
        if value:
            try:
                result[field] = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                result[field] = empty
        else:
            result[field] = empty
    return result
