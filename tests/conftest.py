"""
Pytest configuration and shared fixtures for SQL Studio tests.
"""

import sqlite3

import pytest
from fastapi.testclient import TestClient

from sqlstudio.adapters.factory import Dispatcher
from sqlstudio.adapters.sqlite_adapter import SQLiteAdapter
from sqlstudio.core.config import Settings
from sqlstudio.main import create_app

FIXTURE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT
);

CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id)
);

INSERT INTO users (id, name) VALUES (1, 'alice'), (2, 'bob'), (3, 'carol');

INSERT INTO orders (id, user_id) VALUES (1, 1), (2, 1), (3, 2), (4, 3), (5, 3);
"""

# Never terminates on its own
ENDLESS_QUERY = (
    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) "
    "SELECT count(*) FROM c"
)


@pytest.fixture
def endless_query():
    return ENDLESS_QUERY


@pytest.fixture
def sqlite_db(tmp_path):
    """SQLite file with users(id, name) x3 and orders(id, user_id) x5."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(FIXTURE_SCHEMA)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def make_client(sqlite_db):
    """Build a started TestClient over the fixture database."""
    clients = []

    def _make(query_timeout: float = 5.0, base_path: str = "") -> TestClient:
        settings = Settings(engine="sqlite", target=str(sqlite_db), base_path=base_path, query_timeout=query_timeout)
        adapter = SQLiteAdapter({"database": str(sqlite_db)}, query_timeout=query_timeout)
        app = create_app(settings=settings, dispatcher=Dispatcher(adapter))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    """Create a test client for the app over the fixture database."""
    return make_client()
