"""Tests for app factory and role-based routing."""

from fastapi.testclient import TestClient

from urdigest.api.factory import create_app


class TestPublicRole:
    def test_health_available(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "urdigest", "role": "public"}

    def test_tasks_not_mounted(self):
        client = TestClient(create_app(role="public"))
        assert client.get("/tasks/health").status_code == 404
        assert client.post("/tasks/enrichment/run-pending").status_code == 404

    def test_correlation_id_generated(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.headers["X-Correlation-ID"]

    def test_correlation_id_echoed(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "sched-run-42"})
        assert response.headers["X-Correlation-ID"] == "sched-run-42"

    def test_unusable_correlation_id_replaced(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "a b\"c"})
        cid = response.headers["X-Correlation-ID"]
        assert cid != 'a b"c'
        assert len(cid) == 36


class TestWorkerRole:
    def test_health_on_every_role(self):
        client = TestClient(create_app(role="worker"))
        assert client.get("/health").json()["role"] == "worker"
        assert client.get("/tasks/health").json() == {"status": "ok", "subsystem": "tasks"}

    def test_role_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_ROLE", "worker")
        client = TestClient(create_app())
        assert client.get("/tasks/health").status_code == 200

    def test_default_role_is_public(self, monkeypatch):
        monkeypatch.delenv("APP_ROLE", raising=False)
        client = TestClient(create_app())
        assert client.get("/tasks/health").status_code == 404
