"""Initial schema - reminder tasks

Revision ID: 001
Revises: None
Create Date: 2025-03-10

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # time is HH:MM (24h) and date is YYYY-MM-DD, so text ordering is chronological
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            time TEXT NOT NULL,
            date TEXT NOT NULL,
            frequency TEXT NOT NULL DEFAULT 'once',
            category TEXT NOT NULL,
            user_id INTEGER NOT NULL,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """))

    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_tasks_user_date_time ON tasks (user_id, date, time)"
    ))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS ix_tasks_user_date_time"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
