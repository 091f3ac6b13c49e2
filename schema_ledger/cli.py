#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Command line interface for running migrations.

Usage:
    schema-ledger --database-url sqlite:///app.db up
    schema-ledger --config migrate.yaml up 20240101120000
    schema-ledger --config migrate.yaml down --step 2
    schema-ledger --config migrate.yaml status
"""
import argparse
import logging
import sys

from schema_ledger.config import (
    ConfigError,
    MigratorConfig,
    configure_logger,
    load_config,
    resolve_log_level,
)
from schema_ledger.connection import Connection
from schema_ledger.errors import MigrationError
from schema_ledger.migrations.migrator import Migrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='schema-ledger',
        description='Apply, roll back and inspect database schema migrations'
    )
    parser.add_argument('--config', help='JSON or YAML configuration file')
    parser.add_argument('--database-url', help='SQLAlchemy URL or SQLite file path')
    parser.add_argument('--path', dest='migrations_path',
                        help='Directory holding migration files')
    parser.add_argument('--schema-path',
                        help='Directory to write schema.sql after each run')
    parser.add_argument('--table', dest='migration_table_name',
                        help='Name of the migration ledger table')
    parser.add_argument('--log-level', help='Logging level (default INFO)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    up = subparsers.add_parser('up', help='Apply pending migrations')
    up.add_argument('version', nargs='*', help='Apply only this version')
    up.add_argument('--dry-run', action='store_true',
                    help='Run each migration and roll it back')

    down = subparsers.add_parser('down', help='Roll back applied migrations')
    down.add_argument('--step', type=int, default=1,
                      help='Number of migrations to roll back (0 = all)')
    down.add_argument('--dry-run', action='store_true',
                      help='Run each rollback and roll it back')

    subparsers.add_parser('reset', help='Roll back everything, then apply everything')
    subparsers.add_parser('status', help='Show applied and pending migrations')
    subparsers.add_parser('create', help='Create the migration ledger table')

    return parser


def resolve_config(args) -> MigratorConfig:
    """Merge the config file (if any) with command line overrides"""
    if args.config:
        config = load_config(args.config)
    else:
        config = MigratorConfig().apply_env()

    for key in ('database_url', 'migrations_path', 'schema_path',
                'migration_table_name', 'log_level'):
        value = getattr(args, key, None)
        if value is not None:
            setattr(config, key, value)

    if not config.database_url:
        raise ConfigError('No database URL configured (use --database-url, '
                          'a config file or DATABASE_URL)')
    return config


def run(args, stdout=None) -> int:
    """Execute the parsed command. Returns the process exit status."""
    stdout = stdout or sys.stdout
    config = resolve_config(args)
    logger = logging.getLogger('schema_ledger')
    if logger.handlers:
        logger.setLevel(resolve_log_level(config.log_level))
    else:
        configure_logger(logger, log_level=config.log_level)

    def reporter(line):
        print(line, file=stdout)

    connection = Connection(config.database_url,
                            migration_table_name=config.migration_table_name)
    try:
        migrator = Migrator.from_path(connection, config.migrations_path,
                                      schema_path=config.schema_path,
                                      reporter=reporter)
        if args.command == 'up':
            migrator.up(*args.version, dry_run=args.dry_run)
        elif args.command == 'down':
            migrator.down(args.step, dry_run=args.dry_run)
        elif args.command == 'reset':
            migrator.reset()
        elif args.command == 'status':
            migrator.status(stream=stdout)
        elif args.command == 'create':
            if migrator.create_schema_migrations():
                print(f'Created table {config.migration_table_name}', file=stdout)
    finally:
        connection.close()
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return run(args)
    except (MigrationError, ConfigError) as e:
        print(f'Error: {e}', file=sys.stderr)
        logging.getLogger(__name__).debug('Command failed', exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
