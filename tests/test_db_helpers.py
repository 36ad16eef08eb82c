"""
Tests for the dialect-aware database helpers

Tests cover:
- Row locking only on PostgreSQL
- insert_ignore_conflict / insert_or_get on SQLite
"""

from unittest.mock import MagicMock


def mock_session(dialect):
    db = MagicMock()
    db.get_bind.return_value.dialect.name = dialect
    return db


class TestRowLock:

    def test_postgres_uses_for_update(self):
        from staysync.models import AuthCredential
        from staysync.utils.db_helpers import acquire_row_lock

        db = mock_session("postgresql")
        acquire_row_lock(db, AuthCredential, AuthCredential.id == 1)

        db.query.return_value.filter.return_value.with_for_update.assert_called_once_with(nowait=False)

    def test_sqlite_plain_read(self):
        from staysync.models import AuthCredential
        from staysync.utils.db_helpers import acquire_row_lock

        db = mock_session("sqlite")
        acquire_row_lock(db, AuthCredential, AuthCredential.id == 1)

        db.query.return_value.filter.return_value.with_for_update.assert_not_called()
        db.query.return_value.filter.return_value.first.assert_called_once()

    def test_dialect_detection(self):
        from staysync.utils.db_helpers import is_postgres, is_sqlite

        assert is_postgres(mock_session("postgresql"))
        assert not is_postgres(mock_session("sqlite"))
        assert is_sqlite(mock_session("sqlite"))


class TestInsertOrGet:

    def test_insert_ignore_conflict_reports_winner(self, db):
        from staysync.models import Property
        from staysync.utils.db_helpers import insert_ignore_conflict

        values = {"name": "Property P1"}
        assert insert_ignore_conflict(db, Property, {"external_id": "P1"}, values) is True
        assert insert_ignore_conflict(db, Property, {"external_id": "P1"}, values) is False
        assert db.query(Property).count() == 1

    def test_python_defaults_applied(self, db):
        from staysync.models import Property
        from staysync.utils.db_helpers import insert_or_get

        prop, created = insert_or_get(db, Property, {"external_id": "P1"}, {"name": "Property P1"})

        assert created is True
        assert len(prop.id) == 36
        assert prop.is_active is True
        assert prop.requires_setup is False
        assert prop.created_at is not None

    def test_existing_row_returned(self, db):
        from staysync.models import Property
        from staysync.utils.db_helpers import insert_or_get

        first, _ = insert_or_get(db, Property, {"external_id": "P1"}, {"name": "A"})
        second, created = insert_or_get(db, Property, {"external_id": "P1"}, {"name": "B"})

        assert created is False
        assert second.id == first.id
        assert second.name == "A"
