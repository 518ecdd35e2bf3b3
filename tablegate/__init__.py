# tablegate/__init__.py
"""
tablegate - bulk writes for MySQL and MariaDB tables

- One multi-row INSERT per batch, optionally ``ON DUPLICATE KEY UPDATE``
  in the syntax the connected server understands
- Bulk UPDATE of many rows with individual values through a temporary
  staging table and a single join
- YAML-based connection configuration with password encryption
- Logging helpers for scheduled load scripts

Basic usage::

    import tablegate

    tablegate.setup_logging('price_sync')
    with tablegate.connect('shop') as db:
        products = tablegate.TableGateway(db, 'products')
        with db.transaction():
            products.bulk_insert(new_rows, update_on_duplicate_key=True)
            products.bulk_update(changes, join_columns=['sku'])

Direct connections:
    from tablegate.database import mysql

    db = mysql(user='app', password='secret', database='shop')
"""

__version__ = '0.3.0'

from . import config
from .bulk import BulkInsertEngine, BulkUpdateEngine, Dialect
from .config import connect, set_config_file
from .database import Database, mariadb, mysql
from .exceptions import (ColumnMismatch, DatabaseError, InvalidColumns, InvalidJoinColumns,
                         InvalidUpdateColumns, MissingJoinColumns, NoUpdatableColumns,
                         StagingCleanupError, TableGateError, UnsupportedPlatform, ValidationError)
from .gateway import TableGateway
from .logging_utils import cleanup_old_logs, errors_logged, setup_logging
from .utils import ParameterType, batch_iterable

__all__ = [
    'connect',
    'config',
    'set_config_file',
    'Database',
    'mysql',
    'mariadb',
    'TableGateway',
    'BulkInsertEngine',
    'BulkUpdateEngine',
    'Dialect',
    'ParameterType',
    'batch_iterable',
    'TableGateError',
    'ValidationError',
    'ColumnMismatch',
    'MissingJoinColumns',
    'InvalidJoinColumns',
    'NoUpdatableColumns',
    'InvalidUpdateColumns',
    'InvalidColumns',
    'UnsupportedPlatform',
    'DatabaseError',
    'StagingCleanupError',
    'setup_logging',
    'errors_logged',
    'cleanup_old_logs',
]
