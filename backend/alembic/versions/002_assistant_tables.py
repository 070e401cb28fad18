"""Add assistant configuration and context documents

Revision ID: 002
Revises: 001
Create Date: 2025-03-24

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # active_documents is a JSON list of assistant_documents ids
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS assistant_config (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL UNIQUE,
            name TEXT NOT NULL,
            instructions TEXT,
            model TEXT NOT NULL,
            temperature REAL NOT NULL DEFAULT 0.7,
            max_tokens INTEGER NOT NULL DEFAULT 500,
            active_documents TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))

    # content holds text already extracted from the original file
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS assistant_documents (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            file_type TEXT NOT NULL,
            content TEXT,
            created_at TEXT NOT NULL,
            last_used TEXT
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS assistant_documents"))
    conn.execute(text("DROP TABLE IF EXISTS assistant_config"))
