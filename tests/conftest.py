"""
Global pytest configuration and fixtures for schema-ledger tests

Provides:
- File-backed SQLite connection per test
- Migration factory
- Progress recorder
- Ledger inspection helpers
"""

import pytest
from sqlalchemy import inspect

from schema_ledger.connection import Connection
from schema_ledger.migrations.ledger import VersionLedger
from schema_ledger.migrations.migration import DialectScope, Direction, Migration
from schema_ledger.migrations.migration_executor import sql_runner


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def database_url(tmp_path):
    """SQLAlchemy URL of an empty SQLite database file"""
    return f"sqlite:///{tmp_path / 'migrations_test.db'}"


@pytest.fixture
def connection(database_url):
    """Open Connection to a fresh SQLite database"""
    conn = Connection(database_url)
    conn.open()
    yield conn
    conn.close()


@pytest.fixture
def ledger_versions(connection):
    """Return the set of versions currently in the ledger"""
    def _versions(table_name='schema_migration'):
        with connection.connect() as conn:
            if not inspect(conn).has_table(table_name):
                return set()
            return VersionLedger(table_name).versions(conn)
    return _versions


@pytest.fixture
def table_names(connection):
    """Return the set of table names currently in the database"""
    def _names():
        with connection.connect() as conn:
            return set(inspect(conn).get_table_names())
    return _names


# ============================================================================
# Migration Fixtures
# ============================================================================

@pytest.fixture
def make_migration():
    """Factory for Migration records.

    Example:
        m = make_migration('1', 'create_users', sql='CREATE TABLE users (id INTEGER);')
    """
    def _create(version, name, direction=Direction.UP, sql='', runner=None,
                dialect=None):
        return Migration(
            version=version,
            name=name,
            direction=Direction(direction),
            runner=runner or sql_runner(sql),
            dialect_scope=DialectScope.parse(dialect),
        )
    return _create


@pytest.fixture
def progress():
    """Reporter collecting progress lines in a list"""
    class Recorder(list):
        def __call__(self, line):
            self.append(line)

        @property
        def steps(self):
            """Only the '> name' / '< name' lines"""
            return [line for line in self if line[:2] in ('> ', '< ')]

    return Recorder()
