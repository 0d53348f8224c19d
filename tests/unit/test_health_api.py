"""
Tests for shared/api/health.py

Covers 3 endpoints: read_root, get_model_config, database_health.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import Settings
from shared.api.health import router


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Build a test app with the health router."""
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


# ===========================================================================
# read_root
# ===========================================================================

class TestReadRoot:

    def test_health_check(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "Syllabind Chat Backend"
        assert data["version"] == "1.0.0"


# ===========================================================================
# get_model_config
# ===========================================================================

class TestGetModelConfig:

    @patch("shared.api.health.get_settings")
    def test_reports_model_settings(self, mock_get_settings, client):
        mock_get_settings.return_value = Settings(
            _env_file=None,
            llm_model="claude-test",
            llm_max_tokens=1000,
            llm_requests_per_minute=20,
            max_tool_iterations=3,
        )

        resp = client.get("/config/model")

        assert resp.status_code == 200
        assert resp.json() == {
            "provider": "anthropic",
            "model_id": "claude-test",
            "max_tokens": 1000,
            "requests_per_minute": 20,
            "max_tool_iterations": 3,
        }


# ===========================================================================
# database_health
# ===========================================================================

class TestDatabaseHealth:

    @patch("shared.api.health.get_db_manager")
    def test_healthy(self, mock_get_db_manager, client):
        mock_get_db_manager.return_value = MagicMock(health_check=MagicMock(return_value=True))

        resp = client.get("/health/db")
        assert resp.json() == {"status": "ok", "database": "connected"}

    @patch("shared.api.health.get_db_manager")
    def test_unhealthy(self, mock_get_db_manager, client):
        mock_get_db_manager.return_value = MagicMock(health_check=MagicMock(return_value=False))

        resp = client.get("/health/db")
        assert resp.json() == {"status": "error", "database": "connection_failed"}

    @patch("shared.api.health.get_db_manager")
    def test_exception(self, mock_get_db_manager, client):
        mock_get_db_manager.side_effect = RuntimeError("no route to host")

        resp = client.get("/health/db")
        data = resp.json()
        assert data["status"] == "error"
        assert "no route to host" in data["database"]
