#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configuration loading and logger setup for schema-ledger"""
import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from schema_ledger.connection import DEFAULT_MIGRATION_TABLE

DEFAULT_LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

# Environment variable overriding the configured database URL
DATABASE_URL_ENV = 'DATABASE_URL'


class ConfigError(ValueError):
    """Configuration file is missing, unreadable or malformed."""
    pass


def resolve_log_level(log_level):
    """Turn a level name or number into a logging level number

    Raises:
        ConfigError: If the name is not a known logging level
    """
    if isinstance(log_level, int):
        return log_level
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ConfigError(f'Unknown log level: {log_level}')
    return level


def configure_logger(logger,
                     log_file=None,
                     log_format=None,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance

    Raises:
        ConfigError: If log_level is an unknown level name
    """
    log_level = resolve_log_level(log_level)

    if isinstance(log_file, (str, Path)):
        handler = logging.FileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


@dataclass
class MigratorConfig:
    """
    Settings for a migration run.

    Attributes:
        database_url: SQLAlchemy URL or SQLite file path
        migrations_path: Directory holding migration files
        schema_path: Directory for schema.sql dumps (None disables dumps)
        migration_table_name: Name of the version ledger table
        log_level: Logging level name
    """
    database_url: Optional[str] = None
    migrations_path: str = 'migrations'
    schema_path: Optional[str] = None
    migration_table_name: str = DEFAULT_MIGRATION_TABLE
    log_level: str = 'INFO'

    @classmethod
    def from_dict(cls, data: dict) -> 'MigratorConfig':
        """Build config from a dict, ignoring unknown keys.

        Raises:
            ConfigError: If data is not a mapping
        """
        if not isinstance(data, dict):
            raise ConfigError('Configuration must be a mapping')
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def apply_env(self, environ=None) -> 'MigratorConfig':
        """Apply environment overrides (DATABASE_URL)."""
        environ = os.environ if environ is None else environ
        if environ.get(DATABASE_URL_ENV):
            self.database_url = environ[DATABASE_URL_ENV]
        return self


def load_config(path) -> MigratorConfig:
    """Load configuration from a JSON or YAML file

    The format is chosen by extension: .yaml/.yml is read as YAML,
    anything else as JSON. Environment overrides are applied.

    Args:
        path: Configuration file path

    Returns:
        MigratorConfig

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, encoding='utf-8') as f:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except OSError as e:
        raise ConfigError(f'Cannot read config file {path}: {e}') from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f'Invalid config file {path}: {e}') from e

    return MigratorConfig.from_dict(data).apply_env()
