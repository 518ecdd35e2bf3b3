# tablegate/bulk/update.py
"""Bulk UPDATE through a staging table and a single join."""

import logging
from typing import Callable, Iterable, Mapping, Optional, Sequence, Union

from .insert import BulkInsertEngine
from .staging import TemporaryTableStager
from .validation import RowSetValidator

logger = logging.getLogger(__name__)


class BulkUpdateEngine:
    """
    Update many rows, each with its own values, in one UPDATE statement.

    The rows are inserted into a temporary staging table, the target is
    updated with ``UPDATE target INNER JOIN staging ON <join columns> SET
    <other columns>``, and the staging table is dropped again whether or not
    the update succeeded.

    Target rows without a matching staged row are untouched. If the batch
    holds the same join key twice, which staged row wins is up to the
    server.

    Args:
        db: :class:`~tablegate.database.Database`
        insert_engine: engine used to fill the staging table, created from ``db`` if omitted
        id_factory: unique suffix source for staging table names, ``uuid4().hex`` by default

    Example
    -------
    ::

        engine = BulkUpdateEngine(db)
        engine.execute('products', [
            {'id': 1, 'price': 10.99},
            {'id': 2, 'price': 22.00},
        ], join_columns=['id'])
    """

    def __init__(self, db, insert_engine: Optional[BulkInsertEngine] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.db = db
        self.insert_engine = insert_engine or BulkInsertEngine(db)
        self.dialect = self.insert_engine.dialect
        self.builder = self.insert_engine.builder
        self.stager = TemporaryTableStager(db, self.insert_engine, id_factory=id_factory)

    def execute(self, table: str, rows: Iterable[Mapping], join_columns: Union[str, Sequence[str]],
                column_types: Optional[Mapping[str, str]] = None) -> int:
        """
        Update ``table`` from ``rows`` matched on ``join_columns``.

        Returns:
            The driver's affected row count for the UPDATE. MySQL reports
            changed rows only, so rows staged with their current values count 0.

        Raises:
            MissingJoinColumns, InvalidJoinColumns, NoUpdatableColumns, ColumnMismatch:
                before any statement is sent
            InvalidColumns: a row column is not a column of ``table``
            DatabaseError: staging, populating or updating failed
        """
        rows = list(rows)
        columns = RowSetValidator.column_signature(rows)
        if not columns:
            logger.debug(f"No rows to update in {table}")
            return 0
        # a single column may be passed by name
        if isinstance(join_columns, str):
            join_columns = [join_columns] if join_columns else []
        join_columns = list(join_columns or [])
        RowSetValidator.update_columns(columns, join_columns)

        with self.stager.staged(table, columns, join_columns) as staging:
            self.stager.populate(staging, rows, column_types)
            sql = self.builder.build_join_update(table, staging.name, columns, join_columns)
            affected = self.db.execute(sql)

        logger.info(f"Bulk `{table}` <rows: {len(rows):,}; updates: {affected:,}>")
        return affected
