"""
Unit tests for VersionLedger.

Tests cover:
- DDL generation per dialect
- Table creation and existence checks
- Insert, delete, count and lookup
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from schema_ledger.migrations.ledger import VersionLedger


class TestLedgerDDL:
    """Test generated DDL."""

    def test_sqlite_ddl(self):
        """Table with a single version column and a unique index."""
        create_table, create_index = VersionLedger().ddl(sqlite.dialect())

        assert create_table.startswith('CREATE TABLE schema_migration')
        assert 'version VARCHAR(14) NOT NULL' in create_table
        assert create_index == (
            'CREATE UNIQUE INDEX schema_migration_version_idx '
            'ON schema_migration (version)'
        )

    def test_custom_table_name(self):
        """Table and index names follow the configured table name."""
        create_table, create_index = VersionLedger('app_versions').ddl(postgresql.dialect())

        assert create_table.startswith('CREATE TABLE app_versions')
        assert 'app_versions_version_idx' in create_index


class TestLedgerOperations:
    """Test ledger reads and writes against SQLite."""

    @pytest.fixture
    def ledger(self):
        return VersionLedger()

    def test_exists_and_create(self, connection, ledger):
        """exists() flips after create()."""
        with connection.connect() as conn:
            assert not ledger.exists(conn)

        with connection.transaction() as tx:
            ledger.create(tx)

        with connection.connect() as conn:
            assert ledger.exists(conn)
            columns = [c['name'] for c in inspect(conn).get_columns('schema_migration')]
            indexes = inspect(conn).get_indexes('schema_migration')

        assert columns == ['version']
        assert indexes[0]['name'] == 'schema_migration_version_idx'
        assert indexes[0]['unique']

    def test_insert_has_count_delete(self, connection, ledger):
        """Rows are inserted, found, counted and deleted."""
        with connection.transaction() as tx:
            ledger.create(tx)
            ledger.insert(tx, '1')
            ledger.insert(tx, '2')

        with connection.connect() as conn:
            assert ledger.has(conn, '1')
            assert not ledger.has(conn, '3')
            assert ledger.count(conn) == 2
            assert ledger.versions(conn) == {'1', '2'}

        with connection.transaction() as tx:
            ledger.delete(tx, '1')

        with connection.connect() as conn:
            assert not ledger.has(conn, '1')
            assert ledger.count(conn) == 1

    def test_duplicate_version_rejected(self, connection, ledger):
        """The unique index rejects a second row for one version."""
        with connection.transaction() as tx:
            ledger.create(tx)
            ledger.insert(tx, '1')

        with pytest.raises(IntegrityError):
            with connection.transaction() as tx:
                ledger.insert(tx, '1')
