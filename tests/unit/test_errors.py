"""
Unit tests for the migration exception hierarchy.
"""

import pytest

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

pytestmark = pytest.mark.unit


class TestMigrationError:
    """Test base exception"""

    def test_str_includes_code(self):
        error = MigrationError('something broke')
        assert str(error) == '[MIGRATION_ERROR] something broke'
        assert error.message == 'something broke'

    def test_context_defaults(self):
        error = MigrationError('x')
        assert error.version is None
        assert error.operation is None
        assert error.details == {}

    def test_context_fields(self):
        error = ExecutionFailureError(
            'boom', version='3', operation='up', details={'sql': 'SELECT'}
        )
        assert error.version == '3'
        assert error.operation == 'up'
        assert error.details == {'sql': 'SELECT'}

    def test_cause_preserved(self):
        cause = RuntimeError('driver error')
        try:
            try:
                raise cause
            except RuntimeError as e:
                raise LedgerError('wrapped') from e
        except LedgerError as error:
            assert error.__cause__ is cause


class TestErrorCodes:
    """Each error kind carries a distinct code"""

    @pytest.mark.parametrize('error_class,code', [
        (InvalidArgumentError, 'INVALID_ARGUMENT'),
        (MigrationNotFoundError, 'NOT_FOUND'),
        (InconsistentStateError, 'INCONSISTENT_STATE'),
        (ExecutionFailureError, 'EXECUTION_FAILURE'),
        (LedgerWriteError, 'LEDGER_WRITE_FAILURE'),
        (LedgerError, 'LEDGER_ERROR'),
        (ConnectionFailedError, 'CONNECTION_ERROR'),
        (SchemaDumpError, 'SCHEMA_DUMP_ERROR'),
        (DuplicateMigrationError, 'DUPLICATE_VERSION'),
    ])
    def test_code(self, error_class, code):
        error = error_class('message')
        assert error.code == code
        assert str(error).startswith(f'[{code}]')
        assert isinstance(error, MigrationError)


class TestMigrationBatchError:
    """Test best-effort batch failure"""

    def test_collects_errors(self):
        first = ExecutionFailureError('a', version='2')
        second = LedgerWriteError('b', version='5')

        error = MigrationBatchError('2 failed', errors=[first, second], operation='up')

        assert error.errors == [first, second]
        assert error.details == {'failed_versions': ['2', '5']}
        assert error.operation == 'up'
        assert error.code == 'BATCH_FAILURE'
