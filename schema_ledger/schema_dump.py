"""
Schema dump: write the current database schema as SQL DDL.

The schema is reflected through SQLAlchemy and compiled back to DDL for
the connection's own dialect, so the dump reads like the statements a
fresh database would need.
"""

import logging
from pathlib import Path

from sqlalchemy import MetaData
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable

from schema_ledger.errors import SchemaDumpError

logger = logging.getLogger(__name__)

SCHEMA_FILENAME = 'schema.sql'


def dump_schema(conn) -> str:
    """
    Render the schema reachable through ``conn`` as DDL.

    Tables come out in dependency order, each followed by its indexes.

    Args:
        conn: SQLAlchemy connection

    Returns:
        DDL script, one statement per block, terminated by semicolons
    """
    metadata = MetaData()
    metadata.reflect(bind=conn)

    dialect = conn.dialect
    blocks = []
    for table in metadata.sorted_tables:
        blocks.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ';')
        for index in sorted(table.indexes, key=lambda i: i.name or ''):
            blocks.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ';')
    return '\n\n'.join(blocks) + '\n' if blocks else ''


def write_schema_dump(connection, schema_path) -> Path:
    """
    Write the schema dump to ``<schema_path>/schema.sql``.

    Args:
        connection: schema_ledger Connection
        schema_path: Destination directory (created if missing)

    Returns:
        Path of the written file

    Raises:
        SchemaDumpError: If reflection or writing fails
    """
    target_dir = Path(schema_path)
    target = target_dir / SCHEMA_FILENAME
    try:
        with connection.connect() as conn:
            ddl = dump_schema(conn)
        target_dir.mkdir(parents=True, exist_ok=True)
        target.write_text(ddl, encoding='utf-8')
    except (SQLAlchemyError, OSError) as e:
        raise SchemaDumpError(
            f"could not dump schema to {target}: {e}",
            operation='dump',
        ) from e

    logger.info('Schema dumped to %s', target)
    return target
