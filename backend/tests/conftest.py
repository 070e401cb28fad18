"""
Shared pytest fixtures for backend tests.
Uses a temporary SQLite database per test and fake AI clients.
"""
import pytest
import sqlite3
import sys
import os
from types import SimpleNamespace

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from ai_service import AIService


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            time TEXT NOT NULL,
            date TEXT NOT NULL,
            frequency TEXT NOT NULL DEFAULT 'once',
            category TEXT NOT NULL,
            user_id INTEGER NOT NULL,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE assistant_config (
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
        );

        CREATE TABLE assistant_documents (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            file_type TEXT NOT NULL,
            content TEXT,
            created_at TEXT NOT NULL,
            last_used TEXT
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


class FakeMessages:
    """Stands in for anthropic.AsyncAnthropic().messages."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else "{}"
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


@pytest.fixture
def fake_ai():
    """
    Factory for an AIService wired to a fake client.
    fake_ai(reply, ...) returns (service, messages); replies are used in order
    and an Exception reply is raised instead of returned.
    """
    def make(*replies, timeout=5.0):
        messages = FakeMessages(replies)
        service = AIService(api_key="test-key", model="test-model", timeout=timeout,
                            client=SimpleNamespace(messages=messages))
        return service, messages
    return make


@pytest.fixture
def offline_ai():
    """AIService with no API key: every call takes the fallback path."""
    return AIService(api_key="")


@pytest.fixture
def app_client(test_db, monkeypatch, offline_ai):
    """
    Create a test client for the FastAPI app.
    Skips alembic and starts with the AI disabled; tests swap main.ai_service as needed.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "ai_service", offline_ai)

    with TestClient(main.app) as client:
        yield client
