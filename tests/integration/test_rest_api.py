"""Integration tests for the REST API."""

from __future__ import annotations

import inspect

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from mini_rdbms.adapters.inbound.rest_api import create_app
from mini_rdbms.application import DatabaseEngine


@pytest.fixture
def client(engine: DatabaseEngine) -> TestClient:
    return TestClient(create_app(engine))


@pytest.mark.integration
class TestRestApi:
    """Tests for the HTTP surface."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_stats(self, client: TestClient) -> None:
        client.post("/api/query", json={"sql": "CREATE TABLE t (id int)"})

        response = client.get("/stats")

        assert response.status_code == 200
        assert response.json()["databases"] == {"default": {"t": 0}}

    def test_list_and_create_databases(self, client: TestClient) -> None:
        assert client.get("/api/dbs").json() == ["default"]

        created = client.post("/api/dbs/shop")
        assert created.status_code == 201
        assert created.json()["database"] == "shop"
        assert client.get("/api/dbs").json() == ["default", "shop"]

        assert client.post("/api/dbs/shop").status_code == 409

    def test_query_and_fetch(self, client: TestClient) -> None:
        client.post("/api/dbs/shop")
        for sql in (
            "CREATE TABLE items (id int, name string UNIQUE)",
            "INSERT INTO items VALUES (1, 'pen')",
            "INSERT INTO items VALUES (2, 'ink')",
        ):
            response = client.post("/api/query", params={"db": "shop"}, json={"sql": sql})
            assert response.status_code == 200
            assert response.json()["success"] is True

        selected = client.post(
            "/api/query", params={"db": "shop"}, json={"sql": "SELECT * FROM items WHERE id = 2"}
        ).json()
        assert selected["columns"] == ["id", "name"]
        assert selected["rows"] == [{"id": 2, "name": "ink"}]

        assert client.get("/api/dbs/shop/tables").json() == ["items"]
        assert client.get("/api/dbs/shop/tables/items").json() == [
            {"id": 1, "name": "pen"},
            {"id": 2, "name": "ink"},
        ]

    def test_failed_command(self, client: TestClient) -> None:
        response = client.post("/api/query", json={"sql": "SELECT * FROM ghosts"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_kind"] == "TableNotFound"

    def test_unknown_database(self, client: TestClient) -> None:
        query = client.post("/api/query", params={"db": "nope"}, json={"sql": "SELECT * FROM t"})

        assert query.status_code == 404
        assert client.get("/api/dbs/nope/tables").status_code == 404
        assert client.get("/api/dbs/default/tables/ghosts").status_code == 404

    def test_engine_stopped(self, engine: DatabaseEngine, client: TestClient) -> None:
        engine.stop()

        assert client.get("/health").json()["status"] == "unhealthy"
        assert client.get("/api/dbs").status_code == 503

    def test_handlers_run_in_thread_pool(self, engine: DatabaseEngine) -> None:
        """Engine calls block, so no route handler may be a coroutine."""
        app = create_app(engine)
        routes = [r for r in app.routes if isinstance(r, APIRoute)]

        assert routes
        assert not any(inspect.iscoroutinefunction(r.endpoint) for r in routes)
