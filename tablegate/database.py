# tablegate/database.py
"""
Database connection wrapper that provides a uniform interface
to the MySQL family drivers and the statements the bulk engines need.
"""

import importlib
import importlib.util
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from .bulk.dialect import Dialect, dialect_for
from .cursors import Cursor
from .defaults import settings
from .exceptions import DatabaseError, ValidationError
from .schema import ColumnDef, IndexDef
from .utils import ParamStyle, ParameterType, quote_identifier

logger = logging.getLogger(__name__)

# users can define their own drivers in the config file
_user_drivers = {}

DRIVERS = {
    'pymysql': {
        'database_type': 'mysql',
        'priority': 11,
        'param_map': {},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'charset', 'sql_mode', 'read_default_file',
                            'conv', 'use_unicode', 'connect_timeout', 'read_timeout', 'write_timeout',
                            'bind_address', 'unix_socket', 'autocommit', 'ssl'},
        'connection_method': 'kwargs',
        'default_port': 3306
    },
    'MySQLdb': {  # mysqlclient
        'database_type': 'mysql',
        'priority': 12,
        'param_map': {'database': 'db', 'password': 'passwd'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'charset', 'use_unicode', 'sql_mode', 'read_default_file',
                            'conv', 'connect_timeout', 'compress', 'named_pipe', 'init_command',
                            'read_default_group', 'unix_socket', 'autocommit'},
        'connection_method': 'kwargs',
        'default_port': 3306
    },
    'mysql.connector': {
        'database_type': 'mysql',
        'priority': 13,
        'param_map': {},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'charset', 'collation', 'autocommit', 'time_zone',
                            'sql_mode', 'use_unicode', 'get_warnings', 'raise_on_warnings',
                            'connection_timeout', 'buffered', 'raw', 'consume_results'},
        'connection_method': 'kwargs',
        'default_port': 3306
    },
    'mariadb': {
        'database_type': 'mariadb',
        'priority': 11,
        'param_map': {},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'autocommit', 'connect_timeout', 'read_timeout',
                            'write_timeout', 'unix_socket', 'init_command', 'ssl'},
        'connection_method': 'kwargs',
        'default_port': 3306
    },
}


def register_user_drivers(drivers_config: dict) -> None:
    """Register drivers from config file."""
    _user_drivers.update(drivers_config)


def get_all_drivers() -> dict:
    """Get combined built-in and user drivers."""
    return {**DRIVERS, **_user_drivers}


def _driver_available(driver_name: str) -> bool:
    """find_spec on a dotted name imports the parent package, which may itself be missing."""
    try:
        return importlib.util.find_spec(driver_name) is not None
    except ModuleNotFoundError:
        return False


def get_drivers_for_database(db_type: str, valid_only: bool = True) -> List[str]:
    """
    Gets a list of drivers available for the specified database type.

    Drivers can be filtered to include only those that are currently importable.
    The result is sorted by priority, user drivers winning ties.

    Parameters:
        db_type (str): The type of database for which to retrieve drivers.
        valid_only (bool): Specifies whether to include only importable drivers (default is True).

    Returns:
        List[str]: A sorted list of driver names available for the given database type.
    """
    all_drivers = get_all_drivers()
    available_drivers = []

    for driver_name, info in all_drivers.items():
        if info['database_type'] == db_type:
            if valid_only and not _driver_available(driver_name):
                continue
            available_drivers.append(driver_name)

    def sort_key(driver_name):
        priority = all_drivers[driver_name]['priority']
        # User drivers get slight priority boost for tie-breaking
        if driver_name in _user_drivers:
            priority -= 0.5
        return priority
    available_drivers.sort(key=sort_key)
    return available_drivers


def get_db_type_for_driver(driver_name: str) -> str:
    """Get database type for a driver."""
    return get_all_drivers().get(driver_name, dict()).get('database_type')


def get_params_for_database(db_type: str, driver: str = None) -> set:
    """Get all valid parameters for a database type from DRIVERS metadata."""
    valid_params = set()

    for driver_name, driver_info in get_all_drivers().items():
        if driver_info['database_type'] == db_type:
            if driver and driver_name != driver:
                continue
            for param_set in driver_info['required_params']:
                valid_params.update(param_set)
            valid_params.update(driver_info.get('optional_params', set()))

    return valid_params


def get_supported_db_types() -> set:
    """Get all supported database types."""
    return {driver_info['database_type'] for driver_info in get_all_drivers().values()}


def validate_connection_params(driver_name: str, config_only: bool = False, **params) -> dict:
    """
    Validate connection parameters against driver requirements.

    Args:
        driver_name: Name of the database driver
        config_only: If True, skip password validation for config storage
        **params: Connection parameters

    Returns:
        Dict of validated parameters with extras removed and names mapped for the driver

    Raises:
        ValueError: If the driver is unknown or required parameters are missing
    """
    all_drivers = get_all_drivers()
    if driver_name not in all_drivers:
        raise ValueError(f"Unknown driver: {driver_name}")

    driver_info = all_drivers[driver_name]
    params = {key: value for key, value in params.items() if value is not None}

    validated_params = {}
    if config_only and 'encrypted_password' in params:
        validated_params['encrypted_password'] = params['encrypted_password']

    if 'port' not in params and driver_info.get('default_port'):
        params['port'] = driver_info['default_port']

    # Check required parameters (any one set must be satisfied)
    required_satisfied = False
    for required_set in driver_info['required_params']:
        check_set = required_set - {'password'} if config_only else required_set
        if check_set.issubset(params.keys()):
            required_satisfied = True
            break

    if not required_satisfied:
        raise ValueError(f"Missing required parameters. Need one of: {driver_info['required_params']}")

    param_map = driver_info.get('param_map', {})
    all_valid_params = set()
    for req_set in driver_info['required_params']:
        all_valid_params.update(req_set)
    all_valid_params.update(driver_info.get('optional_params', set()))

    for key, value in params.items():
        if key in all_valid_params:
            validated_params[param_map.get(key, key)] = value

    return validated_params


class Database:
    """
    Database connection wrapper.

    Besides delegating to the driver connection, it is the collaborator the
    bulk engines talk to: it executes statements with typed parameters,
    quotes identifiers, reports the server's upsert dialect, reads table
    metadata from ``information_schema`` and creates and drops temporary
    tables.

    Example
    -------
    ::

        db = tablegate.mysql(user='app', password='secret', database='shop')
        db.list_columns('products')
        db.execute('DELETE FROM products WHERE id = %s', (42,))
    """

    # Attributes stored locally, others delegated to _connection
    _local_attrs = [
        '_connection', 'server_type', 'database_name', 'interface',
        'name', 'placeholder', '_server_version', '_dialect'
    ]

    def __init__(self, connection, interface, database_name: Optional[str] = None):
        """
        Initialize Database wrapper.

        Args:
            connection: Underlying DB-API connection object
            interface: Driver module (pymysql, MySQLdb, mysql.connector, mariadb)
            database_name: Name of the database
        """
        self._connection = connection
        self.interface = interface
        self.database_name = database_name
        self.name = None
        self._server_version = None
        self._dialect = None

        paramstyle = getattr(interface, 'paramstyle', ParamStyle.DEFAULT)
        self.placeholder = ParamStyle.get_placeholder(paramstyle)

        self.server_type = get_db_type_for_driver(interface.__name__) or 'unknown'

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying connection."""
        if key == '__name__':
            return self.name or self.database_name or 'unknown'
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        if self.database_name:
            return f'Database({self.database_name}:{self.server_type})'
        return f'Database({self.server_type})'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def cursor(self, **kwargs) -> Cursor:
        """Create a :class:`~tablegate.cursors.Cursor` on this connection."""
        return Cursor(self, **kwargs)

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions.

        The bulk engines never commit; wrap calls in a transaction to make
        them atomic with the caller's other work.

        Example:
            with db.transaction():
                gateway.bulk_insert(rows)
                gateway.bulk_update(changes, join_columns=['id'])
                # Auto-commit on success, rollback on exception
        """
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise

    def quote_identifier(self, name: str) -> str:
        """Backtick quote a table or column name."""
        return quote_identifier(name)

    def execute(self, sql: str, params: Sequence[Any] = (), types: Optional[Sequence[str]] = None) -> int:
        """
        Execute one statement and return the driver's affected row count.

        Args:
            sql: Statement using this driver's positional placeholder
            params: Flat sequence of bind values
            types: Optional flat sequence of :class:`~tablegate.utils.ParameterType`
                values parallel to ``params``

        Returns:
            ``cursor.rowcount`` exactly as the driver reports it

        Raises:
            DatabaseError: wrapping any driver error, with the original as ``__cause__``
            ValidationError: a value cannot be coerced to its type; nothing is sent
        """
        if types:
            try:
                params = ParameterType.convert_all(params, types)
            except ValidationError as e:
                logger.error(f"Could not bind parameters on {self}: {e}")
                raise
        cursor = self.cursor()
        try:
            cursor.execute(sql, tuple(params) if params else None)
            return cursor.rowcount
        except self.interface.Error as e:
            logger.error(f"Error executing SQL on {self}: {e}")
            raise DatabaseError(str(e), sql=sql, driver_error=e) from e
        finally:
            cursor.close()

    @property
    def server_version(self) -> str:
        """Server version string, read once with ``SELECT VERSION()``."""
        if self._server_version is None:
            cursor = self.cursor()
            try:
                cursor.execute('SELECT VERSION()')
                row = cursor.fetchone()
            except self.interface.Error as e:
                logger.error(f"Could not read server version from {self}: {e}")
                raise DatabaseError(str(e), sql='SELECT VERSION()', driver_error=e) from e
            finally:
                cursor.close()
            self._server_version = str(row[0]) if row else ''
        return self._server_version

    def resolve_dialect(self) -> str:
        """Return the :class:`~tablegate.bulk.dialect.Dialect` for this server, cached per connection."""
        if self._dialect is None:
            if self.server_type in ('mysql', 'mariadb'):
                self._dialect = dialect_for(self.server_type, self.server_version)
            else:
                self._dialect = Dialect.UNSUPPORTED
            logger.debug(f"{self} resolved upsert dialect {self._dialect}")
        return self._dialect

    def _metadata_query(self, sql: str, table: str) -> List[tuple]:
        schema, _, table_name = table.rpartition('.')
        cursor = self.cursor()
        try:
            cursor.execute(sql.format(ph=self.placeholder), (schema or None, table_name))
            return cursor.fetchall()
        except self.interface.Error as e:
            logger.error(f"Could not read metadata for {table}: {e}")
            raise DatabaseError(str(e), sql=sql, driver_error=e) from e
        finally:
            cursor.close()

    def list_columns(self, table: str) -> List[ColumnDef]:
        """
        Live column definitions of ``table`` in ordinal order.

        ``table`` may be qualified with a schema (``shop.products``); otherwise
        the connection's current database is used.
        """
        sql = ("SELECT column_name, column_type, is_nullable, column_default "
               "FROM information_schema.columns "
               "WHERE table_schema = COALESCE({ph}, DATABASE()) AND table_name = {ph} "
               "ORDER BY ordinal_position")
        return [
            ColumnDef(name, native_type, str(nullable).upper() == 'YES', default)
            for name, native_type, nullable, default in self._metadata_query(sql, table)
        ]

    def list_indexes(self, table: str) -> List[IndexDef]:
        """Index definitions of ``table``, columns in index order."""
        sql = ("SELECT index_name, column_name, non_unique "
               "FROM information_schema.statistics "
               "WHERE table_schema = COALESCE({ph}, DATABASE()) AND table_name = {ph} "
               "ORDER BY index_name, seq_in_index")
        indexes: Dict[str, dict] = {}
        for index_name, column_name, non_unique in self._metadata_query(sql, table):
            index = indexes.setdefault(index_name, {'columns': [], 'unique': not int(non_unique)})
            index['columns'].append(column_name)
        return [IndexDef(name, tuple(info['columns']), info['unique']) for name, info in indexes.items()]

    def create_temporary_table(self, table) -> None:
        """
        Create a session scoped temporary table.

        Args:
            table: anything with ``name``, ``columns`` (ColumnDef) and ``indexes`` (IndexDef),
                e.g. a :class:`~tablegate.bulk.staging.StagingTable`
        """
        lines = []
        for column in table.columns:
            null_clause = '' if column.nullable else ' NOT NULL'
            lines.append(f"{self.quote_identifier(column.name)} {column.native_type}{null_clause}")
        for index in table.indexes:
            cols = ', '.join(self.quote_identifier(col) for col in index.columns)
            keyword = 'UNIQUE INDEX' if index.unique else 'INDEX'
            lines.append(f"{keyword} {self.quote_identifier(index.name)} ({cols})")
        body = ',\n    '.join(lines)
        sql = f"CREATE TEMPORARY TABLE {self.quote_identifier(table.name)} (\n    {body}\n)"
        logger.debug(f"Generated create SQL for {table.name}:\n{sql}")
        self.execute(sql)

    def drop_temporary_table(self, name: str, if_exists: bool = False) -> None:
        """Drop a temporary table. ``DROP TEMPORARY`` never touches a permanent table of the same name."""
        exists_clause = 'IF EXISTS ' if if_exists else ''
        sql = f"DROP TEMPORARY TABLE {exists_clause}{self.quote_identifier(name)}"
        logger.debug(f"Dropping temporary table {name}")
        self.execute(sql)

    @classmethod
    def create(cls, db_type: str, driver: str = None, **kwargs) -> 'Database':
        """
        Factory method to create database connections.

        Args:
            db_type: Database type ('mysql' or 'mariadb')
            driver: Preferred driver module name, falls back to the best available one
            **kwargs: Connection parameters

        Returns:
            Database instance
        """
        all_drivers = get_all_drivers()
        db_driver = None
        driver_name = None
        if driver:
            if driver not in all_drivers:
                raise ValueError(f"Unknown driver: {driver}")
            if all_drivers[driver]['database_type'] != db_type:
                raise ValueError(f"Driver '{driver}' is not compatible with database type '{db_type}'")
            try:
                db_driver = importlib.import_module(driver)
                driver_name = driver
            except ImportError:
                logger.warning(f"Driver '{driver}' not available, falling back to default")

        if db_driver is None:
            for candidate in get_drivers_for_database(db_type):
                try:
                    db_driver = importlib.import_module(candidate)
                    driver_name = candidate
                    break
                except ImportError:
                    logger.debug(f"Driver '{candidate}' failed to import")

        if db_driver is None:
            raise ImportError(f"No database driver found for database type '{db_type}'")

        database_name = kwargs.get('database')
        params = validate_connection_params(driver_name, **kwargs)
        logger.debug(f"Connecting to {db_type} database {database_name} with {driver_name}")
        connection = db_driver.connect(**params)
        return cls(connection, db_driver, database_name)


def mysql(user: str, password: Optional[str] = None, database: str = 'mysql',
          host: str = 'localhost', port: int = 3306, driver: str = None, **kwargs) -> Database:
    """Create MySQL connection."""
    return Database.create('mysql', user=user, password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)


def mariadb(user: str, password: Optional[str] = None, database: str = 'mysql',
            host: str = 'localhost', port: int = 3306, driver: str = None, **kwargs) -> Database:
    """
    Create MariaDB connection.

    Uses the ``mariadb`` connector when installed; MariaDB servers also accept
    the MySQL drivers, so ``driver='pymysql'`` works too (the dialect is
    detected from the server version either way).
    """
    db_type = get_db_type_for_driver(driver) if driver else 'mariadb'
    if db_type == 'mariadb' and not get_drivers_for_database('mariadb'):
        db_type = 'mysql'
    return Database.create(db_type, user=user, password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)
