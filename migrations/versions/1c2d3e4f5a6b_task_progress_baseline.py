"""task_progress_baseline

Creates learning_tasks, task_progress and mistakes from
lessonflow/db/schema.sql.

Revision ID: 1c2d3e4f5a6b
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "1c2d3e4f5a6b"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _adapt_sql(sql: str, dialect_name: str) -> str:
    """Adapt DDL for the target database dialect."""
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Create the schema.

    schema.sql uses CREATE TABLE IF NOT EXISTS, so it is safe to run
    against an existing database.
    """
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "lessonflow" / "db" / "schema.sql"
    # Comments go first: they may contain semicolons
    schema_sql = "\n".join(
        line for line in schema_path.read_text().splitlines()
        if not line.strip().startswith("--")
    )
    # op.execute runs one statement at a time
    for statement in schema_sql.split(";"):
        cleaned = statement.strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    for table in ("mistakes", "task_progress", "learning_tasks"):
        op.drop_table(table)
