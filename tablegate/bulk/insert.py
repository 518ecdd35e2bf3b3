# tablegate/bulk/insert.py
"""Multi-row INSERT and upsert in a single statement."""

import logging
from typing import Iterable, Mapping, Optional, Sequence

from ..defaults import settings
from ..exceptions import UnsupportedPlatform
from .dialect import Dialect
from .statements import StatementBuilder
from .validation import RowSetValidator

logger = logging.getLogger(__name__)


class BulkInsertEngine:
    """
    Insert a batch of rows with one ``INSERT ... VALUES (...), (...)``.

    The upsert dialect is resolved once, when the engine is created. After
    that the engine holds no per-call state and can be shared by any number
    of callers on the same connection.

    Args:
        db: :class:`~tablegate.database.Database` (or anything with the same
            ``execute``, ``quote_identifier``, ``placeholder`` and ``resolve_dialect``)

    Raises:
        UnsupportedPlatform: the server is not MySQL or MariaDB

    Example
    -------
    ::

        engine = BulkInsertEngine(db)
        engine.execute('products', [
            {'id': 1, 'name': 'Widget', 'price': 9.99},
            {'id': 2, 'name': 'Gadget', 'price': 24.50},
        ], update_on_duplicate_key=True, update_columns=['price'])
    """

    def __init__(self, db):
        self.db = db
        self.dialect = db.resolve_dialect()
        if self.dialect == Dialect.UNSUPPORTED:
            msg = f"Bulk insert is only supported for MySQL and MariaDB, not {db.server_type}"
            logger.error(msg)
            raise UnsupportedPlatform(msg)
        self.builder = StatementBuilder(self.dialect, db.quote_identifier, db.placeholder)

    def execute(self, table: str, rows: Iterable[Mapping], column_types: Optional[Mapping[str, str]] = None,
                update_on_duplicate_key: bool = False, update_columns: Optional[Sequence[str]] = None) -> int:
        """
        Insert ``rows`` into ``table``.

        Args:
            table: target table, optionally schema qualified
            rows: mappings that all share the same keys
            column_types: optional column -> ParameterType map
            update_on_duplicate_key: overwrite existing rows on a unique key collision
            update_columns: columns overwritten on collision, default all

        Returns:
            The driver's affected row count. For upserts MySQL counts 1 per
            inserted row, 2 per changed row and 0 per unchanged row.
        """
        rows = list(rows)
        columns = RowSetValidator.column_signature(rows)
        if not columns:
            logger.debug(f"No rows to insert into {table}")
            return 0

        sql, params, types = self.builder.build_insert(
            table, columns, rows, column_types, upsert=update_on_duplicate_key, update_columns=update_columns
        )
        max_placeholders = settings.get('max_placeholders', 65535)
        if len(params) > max_placeholders:
            logger.warning(f"Insert into {table} binds {len(params):,} parameters, over the server limit of "
                           f"{max_placeholders:,}. Split the rows with batch_iterable().")

        affected = self.db.execute(sql, params, types)
        operation = 'upserts' if update_on_duplicate_key else 'inserts'
        logger.info(f"Bulk `{table}` <rows: {len(rows):,}; {operation}: {affected:,}>")
        return affected
