import sqlite3
import json
import os
from datetime import datetime
from typing import Iterable, Optional
from contextlib import contextmanager

from models import (
    Task,
    TaskCreate,
    AssistantConfig,
    AssistantConfigUpdate,
    AssistantDocument,
    DocumentCreate,
    DEFAULT_MODEL,
)
from prompts import DEFAULT_ASSISTANT_INSTRUCTIONS

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
DATABASE_PATH = os.getenv("REMINDERS_DB_PATH", os.path.join(BACKEND_DIR, "reminders.db"))

DEFAULT_USER_ID = 1

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess

    # alembic/env.py reads the same REMINDERS_DB_PATH
    env = dict(os.environ, REMINDERS_DB_PATH=DATABASE_PATH)
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=BACKEND_DIR,
        env=env,
        check=True
    )

def _row_to_task(row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        time=row["time"],
        date=row["date"],
        frequency=row["frequency"],
        category=row["category"],
        user_id=row["user_id"],
        completed=bool(row["completed"]),
        created_at=row["created_at"],
    )

def _row_to_config(row) -> AssistantConfig:
    return AssistantConfig(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        instructions=row["instructions"] or "",
        model=row["model"],
        temperature=row["temperature"],
        max_tokens=row["max_tokens"],
        active_documents=json.loads(row["active_documents"] or "[]"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )

def _row_to_document(row) -> AssistantDocument:
    return AssistantDocument(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        file_type=row["file_type"],
        content=row["content"] or "",
        created_at=row["created_at"],
        last_used=row["last_used"],
    )


# Task operations
def get_tasks(user_id: int = DEFAULT_USER_ID) -> list[Task]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY date, time, id",
            (user_id,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task(task_id: int) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row:
            return _row_to_task(row)
    return None

def create_task_db(task_data: TaskCreate) -> Task:
    """Persist a validated task. This is the sink voice sessions confirm into."""
    created_at = datetime.now().isoformat()
    with get_db() as conn:
        try:
            cursor = conn.execute(
                """INSERT INTO tasks
                   (title, time, date, frequency, category, user_id, completed, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (task_data.title, task_data.time, task_data.date, task_data.frequency,
                 task_data.category, task_data.user_id, int(task_data.completed), created_at)
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Task rejected by storage: {e}") from e
        conn.commit()
        task_id = cursor.lastrowid

    return Task(id=task_id, created_at=created_at, **task_data.model_dump())

def update_task_db(task_id: int, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values; None values are ignored.
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created_at") or new_value is None:
                continue

            # SQLite stores booleans as integers
            if isinstance(new_value, bool):
                new_value = int(new_value)

            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def delete_task_db(task_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0

def get_upcoming_tasks(user_id: int = DEFAULT_USER_ID, now: Optional[datetime] = None) -> list[Task]:
    """Incomplete tasks due now or later, soonest first."""
    now = now or datetime.now()
    current_date = now.strftime("%Y-%m-%d")
    current_time = now.strftime("%H:%M")
    with get_db() as conn:
        rows = conn.execute(
            """SELECT * FROM tasks
               WHERE user_id = ? AND completed = 0
                 AND (date > ? OR (date = ? AND time >= ?))
               ORDER BY date, time""",
            (user_id, current_date, current_date, current_time)
        ).fetchall()
        return [_row_to_task(row) for row in rows]


# Assistant configuration
def get_assistant_config(user_id: int = DEFAULT_USER_ID) -> AssistantConfig:
    """Get the user's assistant config, creating the default one on first use."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assistant_config WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row:
            return _row_to_config(row)

        now = datetime.now().isoformat()
        cursor = conn.execute(
            """INSERT INTO assistant_config
               (user_id, name, instructions, model, temperature, max_tokens, active_documents, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, '[]', ?, ?)""",
            (user_id, "Asistente principal", DEFAULT_ASSISTANT_INSTRUCTIONS, DEFAULT_MODEL, 0.7, 500, now, now)
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM assistant_config WHERE id = ?", (cursor.lastrowid,)
        ).fetchone()
        return _row_to_config(row)

def save_assistant_config(config_data: AssistantConfigUpdate, user_id: int = DEFAULT_USER_ID) -> AssistantConfig:
    existing = get_assistant_config(user_id)
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            """UPDATE assistant_config
               SET name = ?, instructions = ?, model = ?, temperature = ?, max_tokens = ?,
                   active_documents = ?, updated_at = ?
               WHERE id = ?""",
            (config_data.name, config_data.instructions, config_data.model, config_data.temperature,
             config_data.max_tokens, json.dumps(config_data.active_documents), now, existing.id)
        )
        conn.commit()
    return get_assistant_config(user_id)


# Context documents
def get_documents(user_id: int = DEFAULT_USER_ID) -> list[AssistantDocument]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assistant_documents WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,)
        ).fetchall()
        return [_row_to_document(row) for row in rows]

def get_document(document_id: int) -> Optional[AssistantDocument]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assistant_documents WHERE id = ?", (document_id,)
        ).fetchone()
        if row:
            return _row_to_document(row)
    return None

def get_documents_by_ids(document_ids: Iterable[int], user_id: int = DEFAULT_USER_ID) -> list[AssistantDocument]:
    ids = list(document_ids)
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM assistant_documents WHERE user_id = ? AND id IN ({placeholders}) ORDER BY id",
            [user_id, *ids]
        ).fetchall()
        return [_row_to_document(row) for row in rows]

def create_document_db(document: DocumentCreate, user_id: int = DEFAULT_USER_ID) -> AssistantDocument:
    created_at = datetime.now().isoformat()
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO assistant_documents
               (user_id, name, description, file_type, content, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, document.name, document.description, document.file_type, document.content, created_at)
        )
        conn.commit()
        document_id = cursor.lastrowid
    return get_document(document_id)

def delete_document_db(document_id: int) -> bool:
    """Delete a document and remove it from any assistant's active documents."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM assistant_documents WHERE id = ?", (document_id,))
        if cursor.rowcount == 0:
            return False

        rows = conn.execute("SELECT id, active_documents FROM assistant_config").fetchall()
        for row in rows:
            active = json.loads(row["active_documents"] or "[]")
            if document_id in active:
                active = [doc_id for doc_id in active if doc_id != document_id]
                conn.execute(
                    "UPDATE assistant_config SET active_documents = ? WHERE id = ?",
                    (json.dumps(active), row["id"])
                )
        conn.commit()
        return True

def touch_documents(document_ids: Iterable[int]) -> None:
    """Record that documents were just used as assistant context."""
    ids = list(document_ids)
    if not ids:
        return
    now = datetime.now().isoformat()
    placeholders = ", ".join("?" for _ in ids)
    with get_db() as conn:
        conn.execute(
            f"UPDATE assistant_documents SET last_used = ? WHERE id IN ({placeholders})",
            [now, *ids]
        )
        conn.commit()
