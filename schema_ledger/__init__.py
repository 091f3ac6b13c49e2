"""
schema-ledger: ordered, versioned schema migrations for relational databases.

Applies each migration at most once, in version order, atomically with
its bookkeeping row in the database's own ledger table.
"""

from schema_ledger.connection import Connection
from schema_ledger.errors import (
    ConnectionFailedError,
    DuplicateMigrationError,
    ExecutionFailureError,
    InconsistentStateError,
    InvalidArgumentError,
    LedgerError,
    LedgerWriteError,
    MigrationBatchError,
    MigrationError,
    MigrationNotFoundError,
    SchemaDumpError,
)
from schema_ledger.migrations import (
    DialectScope,
    Direction,
    Migration,
    MigrationSet,
    Migrator,
    python_runner,
    sql_runner,
)

__version__ = '0.1.0'

__all__ = [
    'Connection',
    'ConnectionFailedError',
    'DialectScope',
    'Direction',
    'DuplicateMigrationError',
    'ExecutionFailureError',
    'InconsistentStateError',
    'InvalidArgumentError',
    'LedgerError',
    'LedgerWriteError',
    'Migration',
    'MigrationBatchError',
    'MigrationError',
    'MigrationNotFoundError',
    'MigrationSet',
    'Migrator',
    'SchemaDumpError',
    'python_runner',
    'sql_runner',
]
