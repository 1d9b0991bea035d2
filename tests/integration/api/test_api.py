"""
Integration tests for the studio HTTP API over a real SQLite file.
"""

import pytest
from fastapi.testclient import TestClient

from sqlstudio.adapters.exceptions import CatalogQueryError, ConnectionError
from sqlstudio.adapters.factory import Dispatcher
from sqlstudio.adapters.sqlite_adapter import SQLiteAdapter
from sqlstudio.core.config import Settings
from sqlstudio.main import create_app


class TestTables:
    def test_tables(self, client):
        response = client.get("/api/tables")
        assert response.status_code == 200
        assert response.json() == {
            "tables": [{"name": "users", "count": 3}, {"name": "orders", "count": 5}]
        }

    def test_table_detail(self, client):
        response = client.get("/api/tables/users")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "users"
        assert body["row_count"] == 3
        assert body["column_count"] == 2
        assert body["index_count"] == 1
        assert body["sql"].startswith("CREATE TABLE users")

    def test_missing_table(self, client):
        response = client.get("/api/tables/ghosts")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "ERR_2001"
        assert error["details"] == {"table": "ghosts"}

    def test_table_data(self, client):
        response = client.get("/api/tables/orders/data", params={"page": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["columns"] == ["id", "user_id"]
        assert body["rows"][0] == [1, 1]
        assert len(body["rows"]) == 5

    def test_table_data_defaults_to_first_page(self, client):
        assert client.get("/api/tables/users/data").json()["rows"][0] == [1, "alice"]

    def test_page_past_the_end(self, client):
        assert client.get("/api/tables/users/data?page=9").json()["rows"] == []

    def test_page_zero_is_rejected(self, client):
        response = client.get("/api/tables/users/data?page=0")
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "ERR_3001"
        assert error["details"]["errors"][0]["loc"] == ["query", "page"]
        assert error["request_id"]

    def test_missing_table_data(self, client):
        response = client.get("/api/tables/ghosts/data")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ERR_2001"


class TestOverview:
    def test_overview(self, client, sqlite_db):
        response = client.get("/api/overview")
        assert response.status_code == 200
        body = response.json()
        assert body["file_name"] == sqlite_db.name
        assert body["tables"] == 2
        assert body["row_counts"] == [{"name": "orders", "count": 5}, {"name": "users", "count": 3}]
        assert body["db_size"].endswith("KB")

    def test_autocomplete(self, client):
        response = client.get("/api/autocomplete")
        assert response.status_code == 200
        assert response.json() == {"tables": [
            {"table_name": "users", "columns": ["id", "name"]},
            {"table_name": "orders", "columns": ["id", "user_id"]},
        ]}

    def test_erd(self, client):
        body = client.get("/api/erd").json()
        assert {t["name"] for t in body["tables"]} == {"users", "orders"}
        assert body["relationships"] == [{
            "from_table": "orders",
            "from_column": "user_id",
            "to_table": "users",
            "to_column": "id",
        }]

    def test_metadata(self, client):
        body = client.get("/api/metadata").json()
        assert body["engine"] == "sqlite"
        assert body["can_shutdown"] is False
        assert body["version"]


class TestQuery:
    def test_query(self, client):
        response = client.post("/api/query", json={"query": "select count(*) from users"})
        assert response.status_code == 200
        assert response.json() == {"columns": ["count(*)"], "rows": [[3]]}

    def test_blob_and_null(self, client):
        response = client.post("/api/query", json={"query": "SELECT x'00ff' AS b, NULL AS n"})
        assert response.json()["rows"] == [[[0, 255], None]]

    def test_bad_sql(self, client):
        response = client.post("/api/query", json={"query": "SELEC 1"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "ERR_4002"
        assert "syntax error" in error["message"]

    def test_missing_body_field(self, client):
        response = client.post("/api/query", json={})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "ERR_3001"

    def test_timeout(self, make_client, endless_query):
        client = make_client(query_timeout=0.2)
        response = client.post("/api/query", json={"query": endless_query})
        assert response.status_code == 504
        assert response.json()["error"]["code"] == "ERR_4001"

        # The connection is free again once the timed-out query is interrupted
        follow_up = client.post("/api/query", json={"query": "SELECT 1"})
        assert follow_up.json()["rows"] == [[1]]


class TestServing:
    def test_request_id_is_echoed(self, client):
        response = client.get("/api/tables", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    def test_request_id_in_error_body(self, client):
        response = client.get("/api/tables/ghosts", headers={"X-Request-ID": "trace-43"})
        assert response.json()["error"]["request_id"] == "trace-43"

    def test_base_path(self, make_client):
        client = make_client(base_path="/studio")
        assert client.get("/studio/api/tables").status_code == 200
        assert client.get("/api/tables").status_code == 404

    def test_failed_startup_connect(self, tmp_path):
        path = str(tmp_path / "missing.db")
        app = create_app(
            settings=Settings(engine="sqlite", target=path),
            dispatcher=Dispatcher(SQLiteAdapter({"database": path})),
        )
        with pytest.raises(ConnectionError):
            with TestClient(app):
                pass

    def test_failed_startup_listing_disconnects(self, sqlite_db, monkeypatch):
        adapter = SQLiteAdapter({"database": str(sqlite_db)})

        def broken_listing():
            raise CatalogQueryError("sqlite get_tables failed: disk I/O error", engine="sqlite")

        monkeypatch.setattr(adapter, "get_tables", broken_listing)
        app = create_app(
            settings=Settings(engine="sqlite", target=str(sqlite_db)),
            dispatcher=Dispatcher(adapter),
        )
        with pytest.raises(CatalogQueryError):
            with TestClient(app):
                pass
        assert not adapter.is_connected()
        assert adapter._connection is None
