# tablegate/bulk/__init__.py
"""
Bulk write engines for MySQL and MariaDB.

- BulkInsertEngine: one multi-row INSERT, optionally an upsert
- BulkUpdateEngine: staging table plus one join UPDATE
"""

from .dialect import Dialect
from .insert import BulkInsertEngine
from .staging import StagingTable, TemporaryTableStager
from .statements import StatementBuilder
from .update import BulkUpdateEngine
from .validation import RowSetValidator

__all__ = [
    'BulkInsertEngine',
    'BulkUpdateEngine',
    'Dialect',
    'RowSetValidator',
    'StagingTable',
    'StatementBuilder',
    'TemporaryTableStager',
]
