"""
Schema migration engine.

This package provides:
- Migration: Data model for one versioned, one-directional change
- MigrationSet: Ordered migrations for one direction
- VersionLedger: The table recording applied versions
- ExecutionContext: Transactional execution of single steps
- MigrationManager: Discovery of migration files
- Migrator: Up/Down/Reset/Status orchestration
"""

from .ledger import VersionLedger
from .migration import DialectScope, Direction, Migration, MigrationSet
from .migration_executor import (
    ExecutionContext,
    StepResult,
    python_runner,
    sql_file_runner,
    sql_runner,
)
from .migration_manager import MigrationManager
from .migrator import MigrationStatus, Migrator, format_status_table

__all__ = [
    'DialectScope',
    'Direction',
    'ExecutionContext',
    'Migration',
    'MigrationManager',
    'MigrationSet',
    'MigrationStatus',
    'Migrator',
    'StepResult',
    'VersionLedger',
    'format_status_table',
    'python_runner',
    'sql_file_runner',
    'sql_runner',
]
