"""Unit tests for database.py — DatabaseManager."""

import pytest
from unittest.mock import MagicMock, patch

import database
from database import DatabaseManager, get_db_manager, reset_db_manager
from shared.models.entities import Syllabus


class TestDatabaseManager:
    def test_mask_password(self):
        masked = DatabaseManager._mask_password("postgresql://syllabind:secret@db:5432/syllabind")
        assert masked == "postgresql://syllabind:****@db:5432/syllabind"
        assert DatabaseManager._mask_password("sqlite:///:memory:") == "sqlite:///:memory:"

    def test_health_check(self, db_manager):
        assert db_manager.health_check() is True

    def test_session_scope_rolls_back(self, db_manager):
        with pytest.raises(RuntimeError):
            with db_manager.session_scope() as session:
                session.add(Syllabus(title="Half written", audience_level="Beginner", duration_weeks=2))
                session.flush()
                raise RuntimeError("boom")

        with db_manager.session_scope() as session:
            assert session.query(Syllabus).count() == 0


class TestGlobalManager:
    def test_get_and_reset(self, monkeypatch):
        monkeypatch.setattr(database, "_db_manager", None)
        manager = get_db_manager()

        assert get_db_manager() is manager
        with patch.object(manager, "close") as close:
            reset_db_manager()
        close.assert_called_once()
        assert database._db_manager is None
