"""
Unit tests for configuration loading and logger setup.
"""

import io
import json
import logging

import pytest

from schema_ledger.config import (
    ConfigError,
    MigratorConfig,
    configure_logger,
    load_config,
    resolve_log_level,
)

pytestmark = pytest.mark.unit


class TestMigratorConfig:
    """Test MigratorConfig construction"""

    def test_defaults(self):
        config = MigratorConfig()
        assert config.database_url is None
        assert config.migrations_path == 'migrations'
        assert config.schema_path is None
        assert config.migration_table_name == 'schema_migration'
        assert config.log_level == 'INFO'

    def test_from_dict_ignores_unknown_keys(self):
        config = MigratorConfig.from_dict({
            'database_url': 'sqlite:///app.db',
            'migration_table_name': 'versions',
            'unrelated': True,
        })
        assert config.database_url == 'sqlite:///app.db'
        assert config.migration_table_name == 'versions'

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ConfigError):
            MigratorConfig.from_dict(['not', 'a', 'dict'])

    def test_env_overrides_database_url(self):
        config = MigratorConfig(database_url='sqlite:///file.db')
        config.apply_env({'DATABASE_URL': 'postgresql://db/app'})
        assert config.database_url == 'postgresql://db/app'

    def test_empty_env_keeps_database_url(self):
        config = MigratorConfig(database_url='sqlite:///file.db')
        config.apply_env({'DATABASE_URL': ''})
        assert config.database_url == 'sqlite:///file.db'


class TestLoadConfig:
    """Test reading config files"""

    @pytest.fixture(autouse=True)
    def no_env_url(self, monkeypatch):
        monkeypatch.delenv('DATABASE_URL', raising=False)

    def test_json(self, tmp_path):
        path = tmp_path / 'migrate.json'
        path.write_text(json.dumps({
            'database_url': 'sqlite:///app.db',
            'migrations_path': 'db/migrations',
        }))

        config = load_config(path)

        assert config.database_url == 'sqlite:///app.db'
        assert config.migrations_path == 'db/migrations'

    def test_yaml(self, tmp_path):
        path = tmp_path / 'migrate.yaml'
        path.write_text(
            'database_url: sqlite:///app.db\n'
            'schema_path: db\n'
            'log_level: DEBUG\n'
        )

        config = load_config(path)

        assert config.database_url == 'sqlite:///app.db'
        assert config.schema_path == 'db'
        assert config.log_level == 'DEBUG'

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / 'migrate.yml'
        path.write_text('')

        assert load_config(path) == MigratorConfig()

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv('DATABASE_URL', 'sqlite:///override.db')
        path = tmp_path / 'migrate.json'
        path.write_text(json.dumps({'database_url': 'sqlite:///app.db'}))

        assert load_config(path).database_url == 'sqlite:///override.db'

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match='Cannot read config file'):
            load_config(tmp_path / 'missing.json')

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'migrate.json'
        path.write_text('{not json')

        with pytest.raises(ConfigError, match='Invalid config file'):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'migrate.yaml'
        path.write_text('database_url: [unclosed\n')

        with pytest.raises(ConfigError, match='Invalid config file'):
            load_config(path)


class TestConfigureLogger:
    """Test logger setup"""

    @pytest.fixture
    def logger(self):
        logger = logging.getLogger('schema_ledger.test_config')
        yield logger
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    def test_stream_handler(self, logger):
        stream = io.StringIO()

        configure_logger(logger, log_file=stream, log_format='%(levelname)s %(message)s')
        logger.info('hello')

        assert stream.getvalue() == 'INFO hello\n'

    def test_string_level(self, logger):
        configure_logger(logger, log_file=io.StringIO(), log_level='debug')
        assert logger.level == logging.DEBUG

    def test_unknown_level_rejected(self, logger):
        """An unknown level name fails before any handler is attached."""
        with pytest.raises(ConfigError, match='Unknown log level: LOUD'):
            configure_logger(logger, log_file=io.StringIO(), log_level='LOUD')
        assert logger.handlers == []

    def test_resolve_log_level(self):
        assert resolve_log_level('warning') == logging.WARNING
        assert resolve_log_level(logging.DEBUG) == logging.DEBUG

    def test_logger_by_name(self, logger):
        result = configure_logger('schema_ledger.test_config', log_file=io.StringIO())
        assert result is logger
        assert logger.level == logging.INFO

    def test_file_handler(self, logger, tmp_path):
        log_file = tmp_path / 'migrate.log'

        configure_logger(logger, log_file=str(log_file))
        logger.warning('written')
        for handler in logger.handlers:
            handler.flush()

        assert 'written' in log_file.read_text()
