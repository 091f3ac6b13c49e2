"""
Migration discovery for schema evolution.

This module provides the MigrationManager class which handles:
- Discovery of migration files in a migrations directory
- Parsing of file names into version, name, dialect and direction
- Building executable migration bodies for SQL and Python files

Migration files follow the naming convention:
    <version>_<name>[.<dialect>].<up|down>.<sql|py>

Examples:
    20240101120000_create_users.up.sql
    20240101120000_create_users.down.sql
    20240102090000_add_gin_index.postgres.up.sql
    20240103100000_backfill_emails.up.py

Python migrations define ``migrate(connection)``, which receives the
SQLAlchemy connection of the step's transaction.
"""

import importlib.util
import logging
import re
from pathlib import Path
from typing import Optional

from schema_ledger.errors import DuplicateMigrationError, MigrationError
from schema_ledger.migrations.migration import (
    DialectScope,
    Direction,
    Migration,
    MigrationSet,
)
from schema_ledger.migrations.migration_executor import (
    python_runner,
    sql_file_runner,
)

logger = logging.getLogger(__name__)


def load_python_migration(path: str):
    """
    Load the ``migrate`` callable from a Python migration file.

    Raises:
        MigrationError: If the module cannot be loaded or has no
            callable ``migrate``
    """
    module_name = f"schema_ledger_migration_{Path(path).stem.replace('.', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise MigrationError(f"Cannot load migration module {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    migrate = getattr(module, 'migrate', None)
    if not callable(migrate):
        raise MigrationError(
            f"Python migration {path} must define migrate(connection)"
        )
    return migrate


def _deferred_python_runner(path: str):
    # Import at run time so a broken module fails its own step only.
    def run(conn) -> None:
        python_runner(load_python_migration(path))(conn)
    return run


class MigrationManager:
    """
    Discovers migration files in a directory.

    Does NOT execute migrations (see Migrator).

    Example:
        >>> manager = MigrationManager(Path('./migrations'))
        >>> migrations = manager.discover()
        >>> list(migrations[Direction.UP])
        [<Migration(20240101120000, create_users, up)>]
    """

    # Migration filename pattern: <version>_<name>[.<dialect>].<up|down>.<sql|py>
    MIGRATION_PATTERN = re.compile(
        r'^(\d+)_([^.]+)(?:\.([a-z0-9]+))?\.(up|down)\.(sql|py)$'
    )

    def __init__(self, migrations_dir: Path):
        """
        Initialize migration manager.

        Args:
            migrations_dir: Directory containing migration files
        """
        self.migrations_dir = Path(migrations_dir)

    def parse_filename(self, filename: str) -> Optional[dict]:
        """
        Parse a migration file name.

        Returns:
            Dict with version, name, dialect, direction and kind, or None
            if the name does not follow the convention

        Example:
            >>> manager.parse_filename('001_create_users.postgres.up.sql')
            {'version': '001', 'name': 'create_users', 'dialect': 'postgres',
             'direction': 'up', 'kind': 'sql'}
        """
        match = self.MIGRATION_PATTERN.match(filename)
        if not match:
            return None
        version, name, dialect, direction, kind = match.groups()
        return {
            'version': version,
            'name': name,
            'dialect': dialect,
            'direction': direction,
            'kind': kind,
        }

    def load_migration(self, file_path: Path) -> Migration:
        """
        Build a Migration from a migration file.

        The file body is read when the migration runs, not here.

        Raises:
            ValueError: If the file name does not follow the convention
        """
        info = self.parse_filename(file_path.name)
        if info is None:
            raise ValueError(f"Invalid migration filename: {file_path.name}")

        path = str(file_path.absolute())
        if info['kind'] == 'sql':
            runner = sql_file_runner(path)
        else:
            runner = _deferred_python_runner(path)

        return Migration(
            version=info['version'],
            name=info['name'],
            direction=Direction(info['direction']),
            runner=runner,
            dialect_scope=DialectScope.parse(info['dialect']),
            path=path,
        )

    def discover(self) -> dict[Direction, MigrationSet]:
        """
        Discover all migration files.

        Returns:
            {Direction.UP: MigrationSet, Direction.DOWN: MigrationSet}

        Raises:
            DuplicateMigrationError: If two files share version, direction
                and dialect
        """
        migrations = {
            Direction.UP: MigrationSet(Direction.UP),
            Direction.DOWN: MigrationSet(Direction.DOWN),
        }

        if not self.migrations_dir.is_dir():
            logger.warning(
                "Migrations directory %s does not exist", self.migrations_dir
            )
            return migrations

        seen = {}
        for file_path in sorted(self.migrations_dir.iterdir()):
            if not file_path.is_file():
                continue
            if file_path.suffix not in ('.sql', '.py') or file_path.name.startswith('__'):
                continue

            if self.parse_filename(file_path.name) is None:
                logger.warning(
                    "Skipping invalid migration filename: %s", file_path.name
                )
                continue

            migration = self.load_migration(file_path)
            key = (migration.version, migration.direction, migration.dialect_scope)
            if key in seen:
                raise DuplicateMigrationError(
                    f"Duplicate {migration.direction.value} migration version "
                    f"{migration.version} ({seen[key]} and {file_path.name})",
                    version=migration.version,
                )
            seen[key] = file_path.name

            migrations[migration.direction].add(migration)
            logger.debug("Discovered migration: %r", migration)

        logger.info(
            "Discovered %d up and %d down migrations in %s",
            len(migrations[Direction.UP]),
            len(migrations[Direction.DOWN]),
            self.migrations_dir,
        )
        return migrations
