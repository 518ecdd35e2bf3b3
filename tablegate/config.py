# tablegate/config.py
"""
Configuration management for database connections.
Supports YAML configuration files with optional password encryption and global settings.
"""

import getpass
import logging
import os
import shutil
import sys
from pathlib import Path
from textwrap import dedent
from typing import Any, Dict, List, Optional, Tuple

import yaml
from cryptography.fernet import Fernet, InvalidToken

from .database import Database, get_params_for_database, get_supported_db_types, register_user_drivers
from .defaults import settings

try:
    import keyring
    from keyring.errors import KeyringError
    HAS_KEYRING = True
except ImportError:
    HAS_KEYRING = False

logger = logging.getLogger(__name__)

KEY_ENV_VAR = 'TABLEGATE_ENCRYPTION_KEY'
KEYRING_SERVICE = 'tablegate'
KEYRING_USER = 'encryption_key'


def _ensure_sample_config():
    """Copy sample config to ~/.config if no config exists and sample doesn't exist there."""
    user_config_dir = Path.home() / '.config'
    user_config_file = user_config_dir / 'tablegate.yml'

    if user_config_file.exists():
        return

    sample_config = Path(__file__).parent / 'tablegate_sample.yml'
    sample_target = user_config_dir / 'tablegate_sample.yml'

    if not sample_config.exists() or sample_target.exists():
        return

    try:
        user_config_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy(sample_config, sample_target)
        logger.info(f"Created sample config at {sample_target}")
        print(f"Created sample tablegate config at {sample_target}", file=sys.stderr)
    except OSError as e:
        # Don't fail - just continue without config
        logger.debug(f"Could not create sample config: {e}")


def _read_keyring_key() -> Optional[str]:
    if not HAS_KEYRING:
        return None
    try:
        return keyring.get_password(KEYRING_SERVICE, KEYRING_USER)
    except KeyringError as e:
        logger.warning(f"Keyring access failed: {e}")
        return None


def diagnose_config(config_file: Optional[str] = None) -> List[Tuple[str, str]]:
    """Full config health check using a real ConfigManager instance."""
    results = []

    try:
        mgr = ConfigManager(config_file)
        results.append(('✓', f"Config loaded: {mgr.config_file}"))
    except (FileNotFoundError, ValueError) as e:
        results.append(('✗', f"Config failed: {e}"))
        return results

    results.append(('✓', "keyring ready") if HAS_KEYRING else ('?', "keyring optional"))

    # Keys - safe peek, no decrypt
    env_key = os.getenv(KEY_ENV_VAR)
    keyring_key = _read_keyring_key()

    if env_key:
        results.append(('✓', f"{KEY_ENV_VAR} set"))
        results.append(('✓', "Env key valid") if _valid_fernet(env_key) else ('✗', "Env key invalid"))
    else:
        results.append(('?', "No env key"))

    if keyring_key:
        results.append(('✓', "Keyring key set"))
        results.append(('✓', "Keyring key valid") if _valid_fernet(keyring_key) else ('✗', "Keyring key invalid"))
    elif HAS_KEYRING:
        results.append(('?', "Keyring empty"))

    if env_key and keyring_key:
        results.append(('✓', "Keys match") if env_key == keyring_key else ('✗', "KEYS MISMATCH"))

    connections = mgr.config.get('connections', {})
    enc_count = sum(1 for c in connections.values() if 'encrypted_password' in c)
    results.append(('✓', f"{enc_count} encrypted passwords") if enc_count else ('✓', "No encrypted passwords"))

    uenc_count = sum(
        1 for c in connections.values()
        if 'password' in c and not str(c.get('password', '')).startswith('${')
    )
    results.append(("✗", f"{uenc_count} unencrypted passwords!") if uenc_count else ('✓', "No unencrypted passwords"))
    return results


def _valid_fernet(key: str) -> bool:
    try:
        Fernet(key.encode())
        return True
    except ValueError:
        return False


class ConfigManager:
    """
    Manage tablegate configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # tablegate.yml
        settings:
          upsert_alias: new
          staging_prefix: temp
          logging:
            level: DEBUG

        drivers:              # optional extra DB-API drivers
          my_driver:
            database_type: mysql
            priority: 5
            required_params: [[host, database, user]]
            connection_method: kwargs

        connections:
          shop:
            type: mysql
            host: localhost
            database: shop
            user: app
            encrypted_password: gAAAAABh...

    Configuration Locations
    -----------------------
    1. File specified in config_file parameter
    2. ``./tablegate.yml`` / ``./tablegate.yaml``
    3. ``~/.config/tablegate.yml`` / ``~/.config/tablegate.yaml``

    Notes
    -----
    * Connections require a 'type' (mysql or mariadb) or a 'driver'
    * Encrypted passwords need the key in TABLEGATE_ENCRYPTION_KEY or the system keyring
    * Passwords can reference environment variables with ${VAR_NAME}
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize config manager and load configuration.

        Raises
        ------
        FileNotFoundError
            If no config file found in any search location
        ValueError
            If config file is invalid or malformed
        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._fernet = None

        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        candidates = [
            Path("tablegate.yml"),
            Path("tablegate.yaml"),
            Path.home() / ".config" / "tablegate.yml",
            Path.home() / ".config" / "tablegate.yaml"
        ]

        for candidate in candidates:
            if candidate.exists():
                return candidate

        _ensure_sample_config()
        raise FileNotFoundError(
            "No config file found. Looked in: " +
            ", ".join(str(c) for c in candidates)
        )

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        try:
            with open(self.config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")

        for section in ('settings', 'drivers'):
            if section in config and not isinstance(config[section], dict):
                raise ValueError(f"Invalid config file {self.config_file}: '{section}' must be a dictionary")

        known_types = get_supported_db_types() | {
            info.get('database_type') for info in (config.get('drivers') or {}).values() if isinstance(info, dict)
        }
        for name, conn in (config.get('connections') or {}).items():
            if not isinstance(conn, dict) or ('type' not in conn and 'driver' not in conn):
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' or 'driver' is required")
            if 'type' in conn and conn['type'] not in known_types:
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: "
                                 f"unsupported type '{conn['type']}'")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        """Apply global settings and user drivers from config."""
        config_settings = self.config.get('settings') or {}
        logging_settings = config_settings.get('logging')
        if isinstance(logging_settings, dict):
            # merge so a partial logging section keeps the other defaults
            config_settings = {**config_settings, 'logging': {**settings['logging'], **logging_settings}}
        settings.update(config_settings)

        drivers = self.config.get('drivers') or {}
        if drivers:
            register_user_drivers({
                name: {**info, 'required_params': [set(p) for p in info.get('required_params', [])],
                       'optional_params': set(info.get('optional_params', []))}
                for name, info in drivers.items()
            })
            logger.info(f"Registered user drivers: {', '.join(drivers)}")

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value from the config.

        Args:
            key: Setting key (supports dot notation like 'logging.level')
            default: Default value if key not found

        Example:
            alias = config.get_setting('upsert_alias', 'new')
        """
        value = self.config.get('settings') or {}
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set_setting(self, key: str, value: Any) -> None:
        """Set a setting value (dot notation allowed) and save config."""
        current = self.config.setdefault('settings', {})
        keys = key.split('.')
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value
        self._save_config()
        self._apply_settings()

    def _get_encryption_key(self) -> bytes:
        """Get encryption key from environment variable or keyring."""
        # environment variable takes precedence
        key_str = os.environ.get(KEY_ENV_VAR)
        if key_str:
            logger.debug(f"Using {KEY_ENV_VAR} from environment")
            return key_str.encode()

        key_str = _read_keyring_key()
        if key_str:
            logger.debug("Using encryption key from keyring")
            return key_str.encode()

        if HAS_KEYRING:
            msg = dedent("""\
            Encryption key not found in environment or keyring.
            Run: `tablegate store-key` to generate and store a new encryption key in the keyring.
            """)
        else:
            msg = dedent(f"""\
            Encryption key not found in environment or keyring.
            Run `tablegate generate-key` to generate a new encryption key
            then store it in the {KEY_ENV_VAR} environment variable.""")
        raise ValueError(msg)

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._get_encryption_key())
        return self._fernet

    def decrypt_password(self, encrypted_password: str) -> str:
        """Decrypt an encrypted password."""
        try:
            return self._get_fernet().decrypt(encrypted_password.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Failed to decrypt password: wrong key or corrupted value") from e

    def encrypt_password(self, password: str) -> str:
        """Encrypt a password for storage."""
        return self._get_fernet().encrypt(password.encode()).decode()

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Get configuration for a named connection with the password resolved."""
        connections = self.config.get('connections') or {}

        if name not in connections:
            raise ValueError(
                f"Connection '{name}' not found in config. "
                f"Available connections: {list(connections.keys())}"
            )

        config = connections[name].copy()

        if 'encrypted_password' in config:
            config['password'] = self.decrypt_password(config.pop('encrypted_password'))

        password = config.get('password')
        if isinstance(password, str) and password.startswith('${') and password.endswith('}'):
            env_var = password[2:-1]
            config['password'] = os.environ.get(env_var)
            if config['password'] is None:
                raise ValueError(f"Environment variable {env_var} not set")

        return config

    def list_connections(self) -> list:
        """List all available connection names."""
        return list((self.config.get('connections') or {}).keys())

    def _save_config(self) -> None:
        """Save config with consistent key ordering."""
        ordered_config = {}

        if 'settings' in self.config:
            ordered_config['settings'] = self.config['settings']
        if 'drivers' in self.config:
            ordered_config['drivers'] = self.config['drivers']

        if 'connections' in self.config:
            connection_key_order = ['type', 'driver', 'database', 'user', 'password', 'encrypted_password',
                                    'host', 'port']
            ordered_connections = {}
            for conn_name in sorted(self.config['connections'].keys()):
                connection = self.config['connections'][conn_name]
                ordered_connection = {key: connection[key] for key in connection_key_order if key in connection}
                for key in sorted(set(connection.keys()) - set(connection_key_order)):
                    ordered_connection[key] = connection[key]
                ordered_connections[conn_name] = ordered_connection
            ordered_config['connections'] = ordered_connections

        with open(self.config_file, 'w') as f:
            yaml.safe_dump(ordered_config, f, default_flow_style=False, sort_keys=False)


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def _get_manager(config_file: Optional[str] = None) -> ConfigManager:
    global _config_manager
    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def store_key(key: Optional[str] = None, force: bool = False) -> None:
    """CLI utility to store encryption key in system keyring."""
    if not HAS_KEYRING:
        raise ValueError("Keyring not available. Install keyring package to store key in system keyring.")

    current_key = _read_keyring_key()
    if current_key:
        if force:
            msg = "Encryption key already stored in system keyring. Overwriting!"
            logger.warning(msg)
            print(msg)
        else:
            msg = "Encryption key already stored in system keyring. Use --force to overwrite."
            logger.warning(msg)
            print(msg)
            return

    if key is None:
        key = _generate_encryption_key()
    elif not _valid_fernet(key):
        raise ValueError("Invalid encryption key. Must be 32 url-safe base64-encoded bytes.")

    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_USER, key)
    except KeyringError as e:
        msg = f"Failed to store encryption key in system keyring: {e}"
        logger.error(msg)
        raise ValueError(msg) from e
    msg = "Stored encryption key in system keyring"
    logger.info(msg)
    print(msg)


def _generate_encryption_key() -> str:
    return Fernet.generate_key().decode()


def generate_encryption_key() -> str:
    """
    Generate a random encryption key.

    Store it in the TABLEGATE_ENCRYPTION_KEY environment variable or in the
    keyring with `tablegate store-key [your key]`.

    Returns:
        str: A randomly generated Fernet key.
    """
    key = _generate_encryption_key()
    if HAS_KEYRING:
        msg = "Key generated.  Store in system keyring with `tablegate store-key [your key]`"
    else:
        msg = f"Key generated.  Store in {KEY_ENV_VAR} environment variable"
    print(msg)
    return key


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)


def connect(name: str, password: str = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    Args:
        name: Connection name from config file
        password: Optional password if not stored in config
        config_file: Optional path to config file

    Returns:
        Database connection instance

    Example:
        db = connect('shop')
        TableGateway(db, 'products').bulk_insert(rows)
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password
    info = {key: val for key, val in config.items() if key != 'password'}
    logger.debug(f"Connecting to database {name} with config: {info}")

    db_type = config.pop('type', None) or settings.get('default_db_type', 'mysql')
    driver = config.pop('driver', None)
    if 'password' not in config and 'prompt_password' in config:
        config['password'] = getpass.getpass(f"Password for {name}: ")
    config.pop('prompt_password', None)

    # remove any params that are not allowed for the database type
    allowed_params = get_params_for_database(db_type, driver)
    unknown = set(config) - allowed_params
    if unknown:
        logger.warning(f"Ignoring unknown parameters for {name}: {sorted(unknown)}")
    config = {key: val for key, val in config.items() if key in allowed_params}

    db = Database.create(db_type, driver=driver, **config)
    db.name = name
    return db


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value from configuration.

    Example:
        alias = get_setting('upsert_alias', 'new')
    """
    return _get_manager(config_file).get_setting(key, default)


def encrypt_password(password: str = None, encryption_key: str = None) -> str:
    """
    CLI utility function to encrypt a password.

    Args:
        password: Password to encrypt (if None, prompts for input)
        encryption_key: Optional encryption key. If None, uses TABLEGATE_ENCRYPTION_KEY or the keyring

    Returns:
        str: Encrypted password
    """
    if password is None:
        password = getpass.getpass("Enter password to encrypt: ")

    if encryption_key:
        encrypted = Fernet(encryption_key.encode()).encrypt(password.encode()).decode()
    else:
        temp_config = ConfigManager.__new__(ConfigManager)
        temp_config._fernet = None
        encrypted = temp_config.encrypt_password(password)

    print(encrypted)
    return encrypted


def encrypt_config_file(filename: str) -> int:
    """CLI Utility to encrypt all plain text connection passwords in a config file."""
    temp_config = ConfigManager.__new__(ConfigManager)
    temp_config._fernet = None
    with open(filename) as fp:
        config = yaml.safe_load(fp) or {}

    changes = 0
    for val in (config.get('connections') or {}).values():
        password = val.get('password')
        # ${ENV} references stay as they are
        if password and not str(password).startswith('${'):
            val['encrypted_password'] = temp_config.encrypt_password(str(val.pop('password')))
            changes += 1

    if changes > 0:
        with open(filename, 'w') as fp:
            yaml.safe_dump(config, fp, default_flow_style=False, sort_keys=False)
        print(f"Encrypted {changes} passwords in {filename}")
    else:
        print(f"No passwords to encrypt in {filename}")
    return changes
