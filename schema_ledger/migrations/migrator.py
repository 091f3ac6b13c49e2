#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migrator: applies, rolls back and reports versioned schema migrations.

The Migrator does the heavy lifting of a migration run:
- up(): apply pending up migrations in ascending version order
- down(step): roll back the most recently applied versions
- reset(): roll back everything, then apply everything
- status(): report each up migration as Applied or Pending

Each step runs in its own transaction together with its ledger update
(see ExecutionContext), so a failure leaves the ledger in a well-defined
partial state: every version before the failing one applied, the failing
one and everything after it not. Bulk runs stop at the first failure.

Single-writer assumption: no locking is done, so two processes migrating
the same database at once can race on ledger creation and on applying
the same version. Such races surface as errors, they are not resolved.
"""
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from schema_ledger.errors import (
    InconsistentStateError,
    InvalidArgumentError,
    LedgerError,
    MigrationBatchError,
    MigrationError,
    MigrationNotFoundError,
    SchemaDumpError,
)
from schema_ledger.migrations.ledger import VersionLedger
from schema_ledger.migrations.migration import Direction, Migration, MigrationSet
from schema_ledger.migrations.migration_executor import ExecutionContext, StepResult
from schema_ledger.migrations.migration_manager import MigrationManager
from schema_ledger.schema_dump import write_schema_dump

APPLIED = 'Applied'
PENDING = 'Pending'


@dataclass
class MigrationStatus:
    """One row of the status report."""
    version: str
    name: str
    applied: bool

    @property
    def state(self) -> str:
        return APPLIED if self.applied else PENDING


def format_elapsed(seconds: float) -> str:
    """Format a run's duration, switching to minutes above one minute."""
    if seconds > 60:
        return f"{seconds / 60:.4f} minutes"
    return f"{seconds:.4f} seconds"


def format_status_table(rows: Iterable[MigrationStatus], padding: int = 3) -> str:
    """
    Render status rows as an aligned text table.

    Example:
        >>> print(format_status_table([MigrationStatus('1', 'create_users', True)]))
        Version   Name           Status
        1         create_users   Applied
    """
    table = [('Version', 'Name', 'Status')]
    table.extend((row.version, row.name, row.state) for row in rows)
    widths = [max(len(line[i]) for line in table) for i in range(3)]

    lines = []
    for line in table:
        cells = [cell.ljust(width + padding) for cell, width in zip(line, widths)]
        lines.append(''.join(cells).rstrip())
    return '\n'.join(lines) + '\n'


class Migrator:
    """
    Runs migrations against a database and tracks them in the ledger.

    Holds the connection, the up and down migration sets, and an optional
    schema dump directory. No state is kept between calls: every up(),
    down(), reset() and status() reads the ledger afresh.

    Attributes:
        connection: schema_ledger Connection
        migrations: {Direction.UP: MigrationSet, Direction.DOWN: MigrationSet}
        schema_path: Directory receiving schema.sql after each run (optional)
        ledger: VersionLedger for connection.migration_table_name
        reporter: Callable receiving progress lines ('> name', '< name')

    Example:
        connection = Connection('sqlite:///app.db')
        migrator = Migrator.from_path(connection, 'migrations')
        migrator.up()
        migrator.status()
        migrator.down(1)
    """

    def __init__(
        self,
        connection,
        migrations: Optional[Iterable[Migration]] = None,
        schema_path: Optional[str] = None,
        reporter: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize migrator.

        Args:
            connection: schema_ledger Connection instance
            migrations: Up and down migrations, in any order
            schema_path: Directory for the schema dump; None disables it
            reporter: Progress callback (defaults to print)
        """
        self.logger = logging.getLogger(__name__)
        self.connection = connection
        self.schema_path = schema_path
        self.reporter = reporter if reporter is not None else print
        self.migrations = {
            Direction.UP: MigrationSet(Direction.UP),
            Direction.DOWN: MigrationSet(Direction.DOWN),
        }
        for migration in migrations or ():
            self.add(migration)
        self.ledger = VersionLedger(connection.migration_table_name)
        self.context = ExecutionContext(connection)

    @classmethod
    def from_path(
        cls,
        connection,
        migrations_dir,
        schema_path: Optional[str] = None,
        reporter: Optional[Callable[[str], None]] = None,
    ) -> 'Migrator':
        """Build a migrator from the migration files in ``migrations_dir``."""
        discovered = MigrationManager(Path(migrations_dir)).discover()
        migrator = cls(connection, schema_path=schema_path, reporter=reporter)
        migrator.migrations = discovered
        return migrator

    def add(self, migration: Migration) -> None:
        """Register a migration programmatically."""
        self.migrations[migration.direction].add(migration)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def up(
        self,
        *versions: str,
        dry_run: bool = False,
        fail_fast: bool = True,
    ) -> list[StepResult]:
        """
        Apply pending up migrations.

        Args:
            versions: At most one version; when given, only that version
                is applied
            dry_run: Run every step in one transaction that is rolled back
                at the end (preview mode)
            fail_fast: Stop at the first failure (default). With False,
                keep going and raise MigrationBatchError at the end

        Returns:
            Results of the steps applied by this call, in order; empty
            when nothing was pending

        Raises:
            InvalidArgumentError: If more than one version is given
            MigrationNotFoundError: If the given version has no up migration
            MigrationError: If a step fails
        """
        if len(versions) > 1:
            raise InvalidArgumentError(
                "you can't pick more than one version to apply",
                operation='up',
                details={'versions': list(versions)},
            )
        version = versions[0] if versions else None
        return self._exec(
            'up', lambda: self._batch(dry_run, self._up, version, dry_run, fail_fast)
        )

    def down(self, step: int, dry_run: bool = False) -> list[StepResult]:
        """
        Roll back applied migrations, most recent first.

        Args:
            step: How many versions to roll back; 0 or less rolls back all
            dry_run: Run every step in one transaction that is rolled back
                at the end (preview mode)

        Returns:
            Results of the steps rolled back by this call, in order

        Raises:
            InconsistentStateError: If a selected down migration has no
                ledger row
            MigrationError: If a step fails
        """
        return self._exec('down', lambda: self._batch(dry_run, self._down, step, dry_run))

    def reset(self) -> list[StepResult]:
        """
        Roll back every applied migration, then apply all up migrations.

        An error while rolling back stops the reset before anything is
        applied.

        Returns:
            Rollback results followed by apply results
        """
        def run():
            rolled_back = self._down(0, dry_run=False)
            applied = self._up(None, dry_run=False, fail_fast=True)
            return rolled_back + applied
        return self._exec('reset', run)

    def status(self, stream=None) -> list[MigrationStatus]:
        """
        Report every up migration as Applied or Pending.

        Rows follow the up set's ascending version order.

        Args:
            stream: Where to write the table (defaults to stdout)

        Returns:
            Status rows
        """
        self.create_schema_migrations()

        rows = []
        try:
            with self.connection.connect() as conn:
                for migration in self.migrations[Direction.UP]:
                    rows.append(MigrationStatus(
                        version=migration.version,
                        name=migration.name,
                        applied=self.ledger.has(conn, migration.version),
                    ))
        except SQLAlchemyError as e:
            raise LedgerError(
                f"problem reading migration status: {e}", operation='status'
            ) from e

        stream = stream or sys.stdout
        stream.write(format_status_table(rows))
        return rows

    def create_schema_migrations(self) -> bool:
        """
        Create the ledger table unless it already exists.

        Idempotent. The existence check and the creation are not atomic
        together; concurrent first runs from several processes can both
        try to create the table.

        Returns:
            True if the table was created by this call

        Raises:
            ConnectionFailedError: If the database cannot be opened
            LedgerError: If checking for or creating the table fails
        """
        self.connection.open()
        table = self.ledger.table_name

        try:
            with self.connection.connect() as conn:
                if self.ledger.exists(conn):
                    return False
        except SQLAlchemyError as e:
            raise LedgerError(
                f"problem checking for migration table {table}: {e}",
                operation='create',
            ) from e

        try:
            with self.connection.transaction() as tx:
                self.ledger.create(tx)
        except SQLAlchemyError as e:
            raise LedgerError(
                f"could not create migration table {table}: {e}",
                operation='create',
            ) from e
        return True

    def dump_migration_schema(self) -> Optional[Path]:
        """
        Write the schema dump to ``schema_path``; skipped when unset.

        Raises:
            SchemaDumpError: If the dump cannot be written
        """
        if not self.schema_path:
            return None
        return write_schema_dump(self.connection, self.schema_path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _batch(self, dry_run, fn, *args):
        if not dry_run:
            return fn(*args)
        with self.context.preview():
            return fn(*args)

    def _up(self, version, dry_run, fail_fast) -> list[StepResult]:
        ups = self.migrations[Direction.UP]
        ups.sort()

        if version is not None:
            candidates = ups.find(version)
            if not candidates:
                raise MigrationNotFoundError(
                    f'migration "{version}" not found',
                    version=version,
                    operation='up',
                )
        else:
            candidates = list(ups)

        results = []
        errors = []
        for migration in candidates:
            try:
                result = self._apply_one(migration, dry_run)
            except MigrationError as e:
                if fail_fast:
                    raise
                errors.append(e)
                continue
            if result is not None:
                results.append(result)

        if errors:
            raise MigrationBatchError(
                f"{len(errors)} migration(s) failed: "
                + ', '.join(e.version or '?' for e in errors),
                errors=errors,
                operation='up',
            )
        if not results:
            self.logger.info('No pending migrations')
        return results

    def _apply_one(self, migration, dry_run) -> Optional[StepResult]:
        if not self.context.applies(migration):
            return None

        if self._is_applied(migration, 'up'):
            self.logger.debug(
                'Migration %s already applied, skipping', migration.version
            )
            return None

        result = self.context.apply(migration, self.ledger, dry_run=dry_run)
        self.reporter(f"> {migration.name}" + (' (dry run)' if dry_run else ''))
        return result

    def _down(self, step, dry_run) -> list[StepResult]:
        try:
            with self.context.reader() as conn:
                count = self.ledger.count(conn)
        except SQLAlchemyError as e:
            raise LedgerError(
                f"migration down: unable to count existing migrations: {e}",
                operation='down',
            ) from e

        downs = [m for m in self.migrations[Direction.DOWN] if self.context.applies(m)]

        wanted = count if step <= 0 else min(step, count)
        if len(downs) < wanted:
            self.logger.warning(
                'Only %d down migrations available for %d applied versions; '
                'the ledger will keep %d rows without a matching down migration',
                len(downs),
                count,
                wanted - len(downs),
            )

        # cannot roll back more than has been applied
        if len(downs) > count:
            downs = downs[len(downs) - count:]
        if step > 0:
            downs = downs[:step]

        results = []
        for migration in downs:
            if not self._is_applied(migration, 'down'):
                raise InconsistentStateError(
                    f"migration version {migration.version} ({migration.name}) "
                    f"has no row in {self.ledger.table_name}; down migrations "
                    f"and the ledger have diverged",
                    version=migration.version,
                    operation='down',
                )
            results.append(self.context.rollback(migration, self.ledger, dry_run=dry_run))
            self.reporter(f"< {migration.name}" + (' (dry run)' if dry_run else ''))
        return results

    def _is_applied(self, migration, operation) -> bool:
        try:
            with self.context.reader() as conn:
                return self.ledger.has(conn, migration.version)
        except SQLAlchemyError as e:
            raise LedgerError(
                f"problem checking for migration version {migration.version}: {e}",
                version=migration.version,
                operation=operation,
            ) from e

    def _exec(self, operation, fn):
        start_time = time.time()
        try:
            self.create_schema_migrations()
            result = fn()
        except Exception:
            self._report_elapsed(operation, start_time)
            try:
                self.dump_migration_schema()
            except SchemaDumpError as dump_error:
                self.logger.error(
                    'Schema dump after failed %s also failed: %s',
                    operation,
                    dump_error,
                )
            raise

        self._report_elapsed(operation, start_time)
        self.dump_migration_schema()
        return result

    def _report_elapsed(self, operation, start_time) -> None:
        elapsed = format_elapsed(time.time() - start_time)
        self.logger.info('Migration %s finished in %s', operation, elapsed)
        self.reporter(f"\n{elapsed}")
