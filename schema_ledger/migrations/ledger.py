"""
Version ledger: the table recording which migration versions are applied.

One row per applied version. A row for version V means the up migration
for V has been durably committed; no row means it has not been applied
yet or has been rolled back. Rows are written in the same transaction
as the schema change they record.
"""

import logging

from sqlalchemy import (
    Column,
    Index,
    MetaData,
    String,
    Table,
    delete,
    func,
    insert,
    inspect,
    select,
)
from sqlalchemy.schema import CreateIndex, CreateTable

logger = logging.getLogger(__name__)

VERSION_COLUMN_SIZE = 14


class VersionLedger:
    """
    Reads and writes the version ledger table.

    Every method takes the SQLAlchemy connection to run on, so writes
    join whatever transaction the caller has open. Nothing here commits.

    Attributes:
        table_name: Name of the ledger table
        table: SQLAlchemy Table describing the ledger

    Example:
        ledger = VersionLedger('schema_migration')
        with connection.transaction() as tx:
            if not ledger.exists(tx):
                ledger.create(tx)
            ledger.insert(tx, '20240101120000')
    """

    def __init__(self, table_name: str = 'schema_migration'):
        self.table_name = table_name
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column('version', String(VERSION_COLUMN_SIZE), nullable=False),
        )
        self.index = Index(
            f'{table_name}_version_idx',
            self.table.c.version,
            unique=True,
        )

    def exists(self, conn) -> bool:
        """Whether the ledger table is present in the database."""
        return inspect(conn).has_table(self.table_name)

    def ddl(self, dialect) -> list[str]:
        """
        DDL statements creating the ledger, compiled for ``dialect``.

        Args:
            dialect: SQLAlchemy dialect of the target database

        Returns:
            CREATE TABLE and CREATE UNIQUE INDEX statements
        """
        return [
            str(CreateTable(self.table).compile(dialect=dialect)).strip(),
            str(CreateIndex(self.index).compile(dialect=dialect)).strip(),
        ]

    def create(self, conn) -> None:
        """Create the ledger table and its unique version index."""
        for statement in self.ddl(conn.dialect):
            logger.debug('Ledger DDL: %s', statement)
            conn.exec_driver_sql(statement)
        logger.info('Created migration ledger table %s', self.table_name)

    def has(self, conn, version: str) -> bool:
        """Whether a row for ``version`` exists."""
        stmt = (
            select(self.table.c.version)
            .where(self.table.c.version == version)
            .limit(1)
        )
        return conn.execute(stmt).first() is not None

    def count(self, conn) -> int:
        """Number of applied versions."""
        stmt = select(func.count()).select_from(self.table)
        return conn.execute(stmt).scalar_one()

    def versions(self, conn) -> set[str]:
        """All applied versions."""
        return set(conn.execute(select(self.table.c.version)).scalars())

    def insert(self, conn, version: str) -> None:
        """Record ``version`` as applied."""
        conn.execute(insert(self.table).values(version=version))
        logger.debug('Recorded migration version %s', version)

    def delete(self, conn, version: str) -> None:
        """Remove the row for ``version`` (rollback)."""
        conn.execute(delete(self.table).where(self.table.c.version == version))
        logger.debug('Removed migration version %s', version)

    def __repr__(self) -> str:
        return f"<VersionLedger({self.table_name})>"
