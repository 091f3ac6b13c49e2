"""
Migration-specific exceptions.

This module defines the exception hierarchy for migration operations,
enabling precise error handling at different layers of the application.
Every error carries a stable code, the migration version and the
operation it relates to (when known).
"""

from typing import Any, Optional


class MigrationError(Exception):
    """
    Base exception for migration errors.

    All migration-related exceptions inherit from this base class,
    allowing catch-all error handling when needed.
    """

    code = "MIGRATION_ERROR"

    def __init__(
        self,
        message: str,
        version: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize migration error.

        Args:
            message: Human-readable error message
            version: Migration version the error relates to
            operation: Engine operation that failed (e.g., "up", "down")
            details: Optional dict of additional context
        """
        self.message = message
        self.version = version
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{self.code}] {message}")


class InvalidArgumentError(MigrationError):
    """
    Engine called with arguments it cannot act on.

    Raised when:
    - More than one version is passed to up()
    """

    code = "INVALID_ARGUMENT"


class MigrationNotFoundError(MigrationError):
    """Explicitly requested version has no up migration."""

    code = "NOT_FOUND"


class InconsistentStateError(MigrationError):
    """
    Down migrations and the ledger have diverged.

    Raised when a down migration is selected for rollback but the
    ledger holds no row for its version.
    """

    code = "INCONSISTENT_STATE"


class ExecutionFailureError(MigrationError):
    """
    The migration body itself failed.

    The surrounding transaction is rolled back, so neither the schema
    change nor the ledger update is persisted.
    """

    code = "EXECUTION_FAILURE"


class LedgerWriteError(MigrationError):
    """
    Ledger insert/delete failed after the body ran.

    The whole transaction is aborted even though the schema change
    itself succeeded.
    """

    code = "LEDGER_WRITE_FAILURE"


class LedgerError(MigrationError):
    """
    Ledger could not be read or created.

    Raised when:
    - The existence/count query against the ledger table fails
    - The ledger table cannot be created
    """

    code = "LEDGER_ERROR"


class ConnectionFailedError(MigrationError):
    """
    Database connection failed.

    Raised when:
    - Unable to build an engine from the database URL
    - The connection check query fails
    """

    code = "CONNECTION_ERROR"


class SchemaDumpError(MigrationError):
    """Writing the schema dump failed after the migrations committed."""

    code = "SCHEMA_DUMP_ERROR"


class DuplicateMigrationError(MigrationError):
    """Two migrations share a version within one direction and dialect."""

    code = "DUPLICATE_VERSION"


class MigrationBatchError(MigrationError):
    """
    One or more migrations failed in best-effort mode.

    Only raised when up() runs with fail_fast=False. The individual
    failures are available in ``errors``.
    """

    code = "BATCH_FAILURE"

    def __init__(
        self,
        message: str,
        errors: list[MigrationError],
        operation: Optional[str] = None,
    ) -> None:
        """
        Initialize batch error.

        Args:
            message: Human-readable error message
            errors: The failures collected during the run, in order
            operation: Engine operation that failed
        """
        self.errors = list(errors)
        super().__init__(
            message,
            operation=operation,
            details={'failed_versions': [e.version for e in self.errors]},
        )
