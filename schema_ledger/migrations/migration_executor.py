#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration execution with transaction management and ledger tracking.

Runs one migration step inside exactly one database transaction that
wraps both the migration body and the ledger insert/delete, so a step is
either fully applied or not visible at all. Supports dry-run mode for
previewing a step without committing it.

A dry run over several steps uses preview(): one outer transaction that
is rolled back at the end, with each step in its own savepoint, so later
steps see the effects of earlier ones.
"""
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable

import sqlparse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from schema_ledger.errors import ExecutionFailureError, LedgerWriteError
from schema_ledger.migrations.ledger import VersionLedger
from schema_ledger.migrations.migration import Direction, Migration


class DryRunRollback(Exception):
    """Raised inside a transaction to roll it back during dry-run mode."""
    pass


def split_sql_statements(sql: str) -> list[str]:
    """Split a SQL script into individual statements.

    Comment-only fragments are dropped. Required for SQLite, which can
    only execute one statement at a time.

    Args:
        sql: SQL string with one or more statements

    Returns:
        List of individual SQL statements
    """
    statements = []
    for statement in sqlparse.split(sql):
        stripped = sqlparse.format(statement, strip_comments=True).strip()
        if stripped and stripped != ';':
            statements.append(statement.strip())
    return statements


def sql_runner(sql: str) -> Callable[[Any], None]:
    """
    Migration body executing a SQL script statement by statement.

    An empty script is a no-op; the migration still counts as applied.

    Example:
        >>> runner = sql_runner("CREATE TABLE users (id INTEGER);")
        >>> runner(tx)
    """
    def run(conn) -> None:
        for stmt in split_sql_statements(sql):
            conn.execute(text(stmt))
    return run


def sql_file_runner(path: str) -> Callable[[Any], None]:
    """Migration body executing the SQL file at ``path``, read at run time."""
    def run(conn) -> None:
        with open(path, encoding='utf-8') as f:
            content = f.read()
        sql_runner(content)(conn)
    return run


def python_runner(func: Callable[[Any], None]) -> Callable[[Any], None]:
    """Migration body calling ``func(connection)``."""
    def run(conn) -> None:
        func(conn)
    run.__name__ = getattr(func, '__name__', 'run')
    return run


@dataclass
class StepResult:
    """
    Result of one migration step.

    Attributes:
        migration: Migration that was executed
        execution_time_ms: Execution time in milliseconds
        dry_run: True if the transaction was rolled back on purpose
    """
    migration: Migration
    execution_time_ms: int
    dry_run: bool = False

    @property
    def version(self) -> str:
        return self.migration.version

    @property
    def name(self) -> str:
        return self.migration.name


class ExecutionContext:
    """
    Executes migration steps with transaction safety.

    Owns transaction demarcation and the dialect filter. Each call to
    apply() or rollback() opens one transaction on the connection (a
    savepoint inside preview()), runs the migration body, updates the
    ledger, and commits; any exception aborts the transaction so neither
    the schema change nor the ledger update is persisted.

    Attributes:
        connection: Connection the steps run on
        logger: Logger for execution tracking

    Example:
        context = ExecutionContext(connection)
        if context.applies(migration):
            result = context.apply(migration, ledger)
    """

    def __init__(self, connection):
        """
        Initialize execution context.

        Args:
            connection: schema_ledger Connection instance
        """
        self.connection = connection
        self.logger = logging.getLogger(__name__)
        self._preview_tx = None

    @property
    def dialect_name(self) -> str:
        return self.connection.dialect_name

    @property
    def in_preview(self) -> bool:
        return self._preview_tx is not None

    @contextmanager
    def preview(self):
        """
        Run a batch of dry-run steps inside one transaction.

        Steps executed inside the block each get a savepoint on the shared
        transaction, which is rolled back when the block exits. Errors
        raised inside the block propagate after the rollback.

        Example:
            with context.preview():
                context.apply(first, ledger, dry_run=True)
                context.apply(second, ledger, dry_run=True)
        """
        if self.in_preview:
            raise RuntimeError('Dry-run preview already active')

        try:
            with self.connection.transaction() as tx:
                self._preview_tx = tx
                yield tx
                raise DryRunRollback('Dry-run mode: rolling back transaction')
        except DryRunRollback:
            self.logger.info('Dry run complete - rolled back')
        finally:
            self._preview_tx = None

    @contextmanager
    def reader(self):
        """Connection for ledger reads; the preview transaction during a dry run."""
        if self._preview_tx is not None:
            yield self._preview_tx
        else:
            with self.connection.connect() as conn:
                yield conn

    @contextmanager
    def _step_transaction(self):
        if self._preview_tx is None:
            with self.connection.transaction() as tx:
                yield tx
        else:
            with self._preview_tx.begin_nested():
                yield self._preview_tx

    def applies(self, migration: Migration) -> bool:
        """
        Whether ``migration`` runs on the active dialect.

        A migration scoped to another dialect is a structural no-op:
        never invoked and never recorded in the ledger.
        """
        if migration.applies_to(self.dialect_name):
            return True
        self.logger.debug(
            'Skipping migration %s (%s): scoped to %s, active dialect is %s',
            migration.version,
            migration.name,
            migration.dialect_scope,
            self.dialect_name,
        )
        return False

    def apply(
        self,
        migration: Migration,
        ledger: VersionLedger,
        dry_run: bool = False,
    ) -> StepResult:
        """
        Run an up migration and record its version, atomically.

        Args:
            migration: Up migration to apply
            ledger: Ledger to insert the version into
            dry_run: If True, execute but roll back (preview mode)

        Returns:
            StepResult with execution time

        Raises:
            ExecutionFailureError: If the migration body fails
            LedgerWriteError: If recording the version fails
        """
        return self._execute(migration, ledger.insert, 'up', dry_run)

    def rollback(
        self,
        migration: Migration,
        ledger: VersionLedger,
        dry_run: bool = False,
    ) -> StepResult:
        """
        Run a down migration and delete its version, atomically.

        Args:
            migration: Down migration to run
            ledger: Ledger to delete the version from
            dry_run: If True, execute but roll back (preview mode)

        Returns:
            StepResult with execution time

        Raises:
            ExecutionFailureError: If the migration body fails
            LedgerWriteError: If deleting the version fails
        """
        return self._execute(migration, ledger.delete, 'down', dry_run)

    def _execute(self, migration, bookkeeping, operation, dry_run) -> StepResult:
        start_time = time.time()
        verb = 'Applying' if migration.direction is Direction.UP else 'Rolling back'
        self.logger.info(
            '%s migration %s (%s)%s',
            verb,
            migration.version,
            migration.name,
            ' (DRY RUN)' if dry_run else '',
        )

        try:
            with self._step_transaction() as tx:
                try:
                    migration.run(tx)
                except Exception as e:
                    raise ExecutionFailureError(
                        f"migration {migration.version} ({migration.name}) "
                        f"failed: {e}",
                        version=migration.version,
                        operation=operation,
                    ) from e

                try:
                    bookkeeping(tx, migration.version)
                except Exception as e:
                    action = 'inserting' if operation == 'up' else 'deleting'
                    raise LedgerWriteError(
                        f"problem {action} migration version "
                        f"{migration.version}: {e}",
                        version=migration.version,
                        operation=operation,
                    ) from e

                if dry_run and not self.in_preview:
                    raise DryRunRollback(
                        'Dry-run mode: rolling back transaction'
                    )
        except DryRunRollback:
            execution_time_ms = int((time.time() - start_time) * 1000)
            self.logger.info(
                'Dry-run complete for %s (%dms) - rolled back',
                migration.version,
                execution_time_ms,
            )
            return StepResult(migration, execution_time_ms, dry_run=True)
        except SQLAlchemyError as e:
            # BEGIN/COMMIT themselves failed
            self.logger.error(
                'Transaction for migration %s failed: %s', migration.version, e
            )
            raise ExecutionFailureError(
                f"transaction for migration {migration.version} failed: {e}",
                version=migration.version,
                operation=operation,
            ) from e
        except (ExecutionFailureError, LedgerWriteError) as e:
            self.logger.error(
                'Failed to %s migration %s (%s): %s',
                'apply' if operation == 'up' else 'roll back',
                migration.version,
                migration.name,
                e,
            )
            raise

        execution_time_ms = int((time.time() - start_time) * 1000)
        if dry_run:
            self.logger.info(
                'Dry-run step complete for %s (%dms) - pending rollback',
                migration.version,
                execution_time_ms,
            )
            return StepResult(migration, execution_time_ms, dry_run=True)

        self.logger.info(
            '%s migration %s (%s) (%dms)',
            'Applied' if operation == 'up' else 'Rolled back',
            migration.version,
            migration.name,
            execution_time_ms,
        )
        return StepResult(migration, execution_time_ms)
