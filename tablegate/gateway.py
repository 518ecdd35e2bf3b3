# tablegate/gateway.py
"""Table gateway: the bulk engines bound to one table name."""

import logging
from typing import Iterable, Mapping, Optional, Sequence, Union

from .bulk import BulkInsertEngine, BulkUpdateEngine

logger = logging.getLogger(__name__)


class TableGateway:
    """
    Bulk writes against a single table.

    Both engines are created up front, so an unsupported server is reported
    when the gateway is built rather than on the first write.

    Example
    -------
    ::

        products = TableGateway(db, 'products')
        with db.transaction():
            products.bulk_insert(new_rows)
            products.bulk_update(price_changes, join_columns=['id'])
    """

    def __init__(self, db, table: str):
        self.db = db
        self.table = table
        self.insert_engine = BulkInsertEngine(db)
        self.update_engine = BulkUpdateEngine(db, insert_engine=self.insert_engine)

    def __repr__(self) -> str:
        return f"TableGateway({self.table!r}, {self.db})"

    def bulk_insert(self, rows: Iterable[Mapping], column_types: Optional[Mapping[str, str]] = None,
                    update_on_duplicate_key: bool = False,
                    update_columns: Optional[Sequence[str]] = None) -> int:
        """See :meth:`tablegate.bulk.BulkInsertEngine.execute`."""
        return self.insert_engine.execute(self.table, rows, column_types,
                                          update_on_duplicate_key=update_on_duplicate_key,
                                          update_columns=update_columns)

    def bulk_update(self, rows: Iterable[Mapping], join_columns: Union[str, Sequence[str]],
                    column_types: Optional[Mapping[str, str]] = None) -> int:
        """See :meth:`tablegate.bulk.BulkUpdateEngine.execute`."""
        return self.update_engine.execute(self.table, rows, join_columns, column_types)
