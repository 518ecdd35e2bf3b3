# tests/test_config.py
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from cryptography.fernet import Fernet

from tablegate import config as config_module
from tablegate.config import (ConfigManager, connect, diagnose_config, encrypt_config_file, encrypt_password,
                              generate_encryption_key, get_setting)
from tablegate.defaults import settings

from conftest import TEST_KEY


@pytest.fixture
def test_config_file():
    """Path to test config file."""
    return Path(__file__).parent / 'test.yml'


@pytest.fixture
def config_manager(test_config_file):
    """Create ConfigManager instance with test config."""
    return ConfigManager(str(test_config_file))


@pytest.fixture
def encrypted_config(tmp_path):
    """A config file whose only connection has an encrypted password."""
    token = Fernet(TEST_KEY.encode()).encrypt(b's3cret').decode()
    path = tmp_path / 'tablegate.yml'
    path.write_text(yaml.safe_dump({'connections': {'secure': {
        'type': 'mysql', 'host': 'h', 'database': 'd', 'user': 'u', 'encrypted_password': token}}}))
    return path


class TestConfigManager:
    """Test ConfigManager class functionality."""

    def test_init_with_valid_config(self, config_manager):
        assert 'connections' in config_manager.config
        assert 'settings' in config_manager.config

    def test_init_with_missing_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager('/nonexistent/path/config.yml')

    def test_settings_applied(self, config_manager):
        """Config settings override defaults, a partial logging block keeps the rest."""
        assert settings['logging']['level'] == 'DEBUG'
        assert settings['logging']['console'] is False
        assert settings['logging']['retention_days'] == 30
        assert settings['upsert_alias'] == 'new'

    def test_get_connection_config(self, config_manager):
        config = config_manager.get_connection_config('shop')
        assert config == {'type': 'mysql', 'host': 'localhost', 'database': 'shop', 'user': 'app',
                          'password': 'testpass'}

    def test_get_connection_config_invalid(self, config_manager):
        with pytest.raises(ValueError, match="Connection 'nonexistent' not found"):
            config_manager.get_connection_config('nonexistent')

    def test_env_password(self, config_manager):
        with patch.dict(os.environ, {'TABLEGATE_TEST_PASSWORD': 'from-env'}):
            assert config_manager.get_connection_config('shop_env')['password'] == 'from-env'

    def test_env_password_missing(self, config_manager):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match='TABLEGATE_TEST_PASSWORD not set'):
                config_manager.get_connection_config('shop_env')

    def test_list_connections(self, config_manager):
        assert config_manager.list_connections() == ['shop', 'shop_env', 'shop_maria', 'shop_pymysql']

    def test_get_setting_dot_notation(self, config_manager):
        assert config_manager.get_setting('logging.level') == 'DEBUG'
        assert config_manager.get_setting('logging.missing', 'x') == 'x'

    def test_encrypted_password(self, encrypted_config):
        mgr = ConfigManager(str(encrypted_config))
        config = mgr.get_connection_config('secure')
        assert config['password'] == 's3cret'
        assert 'encrypted_password' not in config

    def test_wrong_key(self, encrypted_config):
        mgr = ConfigManager(str(encrypted_config))
        with patch.dict(os.environ, {'TABLEGATE_ENCRYPTION_KEY': Fernet.generate_key().decode()}):
            with pytest.raises(ValueError, match='Failed to decrypt'):
                mgr.get_connection_config('secure')

    def test_missing_key(self, encrypted_config):
        mgr = ConfigManager(str(encrypted_config))
        with patch.dict(os.environ, {}, clear=True), patch.object(config_module, 'HAS_KEYRING', False):
            with pytest.raises(ValueError, match='Encryption key not found'):
                mgr.get_connection_config('secure')

    def test_invalid_connection(self, tmp_path):
        path = tmp_path / 'bad.yml'
        path.write_text('connections:\n  broken:\n    host: h\n')
        with pytest.raises(ValueError, match="'type' or 'driver' is required"):
            ConfigManager(str(path))

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / 'bad.yml'
        path.write_text('connections:\n  pg:\n    type: postgres\n    host: h\n')
        with pytest.raises(ValueError, match="unsupported type 'postgres'"):
            ConfigManager(str(path))

    def test_set_setting_saves(self, tmp_path):
        path = tmp_path / 'tablegate.yml'
        path.write_text('settings: {}\nconnections:\n  a:\n    user: u\n    type: mysql\n')
        mgr = ConfigManager(str(path))
        mgr.set_setting('staging_prefix', 'stg')
        saved = yaml.safe_load(path.read_text())
        assert saved['settings']['staging_prefix'] == 'stg'
        assert list(saved['connections']['a']) == ['type', 'user']
        assert settings['staging_prefix'] == 'stg'

    def test_user_drivers_registered(self, tmp_path):
        from tablegate.database import _user_drivers, get_params_for_database
        path = tmp_path / 'tablegate.yml'
        path.write_text(yaml.safe_dump({'drivers': {'custom_mysql': {
            'database_type': 'mysql', 'priority': 1, 'required_params': [['host', 'user']],
            'optional_params': ['flavor'], 'connection_method': 'kwargs'}}}))
        try:
            ConfigManager(str(path))
            assert 'flavor' in get_params_for_database('mysql', 'custom_mysql')
        finally:
            _user_drivers.pop('custom_mysql', None)


class TestModuleFunctions:
    """Test module level helpers."""

    def test_get_setting(self):
        assert get_setting('staging_prefix') == 'temp'

    def test_connect(self):
        with patch('tablegate.config.Database.create') as create:
            db = connect('shop_pymysql')
        create.assert_called_once_with('mysql', driver='pymysql', host='localhost', database='shop',
                                       user='app', password='testpass', charset='utf8mb4')
        assert db.name == 'shop_pymysql'

    def test_connect_password_override(self):
        with patch('tablegate.config.Database.create') as create:
            connect('shop', password='other')
        assert create.call_args.kwargs['password'] == 'other'

    def test_generate_encryption_key(self, capsys):
        key = generate_encryption_key()
        Fernet(key.encode())
        assert 'Key generated' in capsys.readouterr().out

    def test_encrypt_password_with_env_key(self, capsys):
        token = encrypt_password('hunter2')
        assert Fernet(TEST_KEY.encode()).decrypt(token.encode()) == b'hunter2'
        assert token in capsys.readouterr().out

    def test_encrypt_password_explicit_key(self):
        key = Fernet.generate_key().decode()
        token = encrypt_password('hunter2', encryption_key=key)
        assert Fernet(key.encode()).decrypt(token.encode()) == b'hunter2'

    def test_encrypt_config_file(self, tmp_path):
        path = tmp_path / 'tablegate.yml'
        path.write_text(yaml.safe_dump({'connections': {
            'plain': {'type': 'mysql', 'password': 'pw'},
            'env': {'type': 'mysql', 'password': '${DB_PW}'},
        }}))
        assert encrypt_config_file(str(path)) == 1
        saved = yaml.safe_load(path.read_text())
        assert 'password' not in saved['connections']['plain']
        assert Fernet(TEST_KEY.encode()).decrypt(saved['connections']['plain']['encrypted_password'].encode()) == b'pw'
        assert saved['connections']['env']['password'] == '${DB_PW}'

    def test_diagnose_config(self, test_config_file):
        with patch.object(config_module, '_read_keyring_key', return_value=None):
            results = dict((msg, status) for status, msg in diagnose_config(str(test_config_file)))
        assert results[f"Config loaded: {test_config_file}"] == '✓'
        assert results['Env key valid'] == '✓'
        assert results['3 unencrypted passwords!'] == '✗'

    def test_diagnose_missing_config(self):
        results = diagnose_config('/nonexistent/tablegate.yml')
        assert results[0][0] == '✗'
