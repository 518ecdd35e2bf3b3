# tablegate/bulk/staging.py
"""Session scoped staging tables for join based bulk updates."""

import logging
import uuid
from collections import namedtuple
from contextlib import contextmanager
from typing import Callable, Iterator, List, Mapping, Optional, Sequence

from ..defaults import settings
from ..exceptions import DatabaseError, InvalidColumns, StagingCleanupError
from ..schema import IndexDef
from ..utils import unqualified_name

logger = logging.getLogger(__name__)

StagingTable = namedtuple('StagingTable', ['name', 'source_table', 'columns', 'indexes'])
StagingTable.__doc__ = """A temporary table shaped like a subset of ``source_table``."""


def _default_id() -> str:
    return uuid.uuid4().hex


class TemporaryTableStager:
    """
    Creates, fills and drops the temporary table a bulk update joins against.

    The staging table copies the native type and nullability of each staged
    column from the live target table. Defaults and auto increment are not
    copied: every staged row supplies every column. Each join column gets its
    own index so the join does not scan the staging table.

    Args:
        db: :class:`~tablegate.database.Database`
        insert_engine: :class:`~tablegate.bulk.insert.BulkInsertEngine` used to populate
        id_factory: callable returning the unique suffix of staging table names

    Example
    -------
    ::

        stager = TemporaryTableStager(db, BulkInsertEngine(db))
        with stager.staged('products', ['id', 'price'], ['id']) as staging:
            stager.populate(staging, rows)
            db.execute(f"UPDATE ... JOIN {db.quote_identifier(staging.name)} ...")
    """

    def __init__(self, db, insert_engine, id_factory: Optional[Callable[[], str]] = None):
        self.db = db
        self.insert_engine = insert_engine
        self.id_factory = id_factory or _default_id

    def staging_name(self, table: str) -> str:
        """``<prefix>_<table>_<token>``, with the table part cut to fit the identifier limit."""
        prefix = settings.get('staging_prefix', 'temp')
        max_length = settings.get('identifier_max_length', 64)
        token = str(self.id_factory())
        room = max(max_length - len(prefix) - len(token) - 2, 0)
        return f"{prefix}_{unqualified_name(table)[:room]}_{token}"

    def stage(self, table: str, columns: Sequence[str], join_columns: Sequence[str]) -> StagingTable:
        """
        Create the staging table for ``columns`` of ``table``.

        Raises:
            InvalidColumns: ``table`` does not exist or lacks one of ``columns``
            DatabaseError: metadata lookup or CREATE failed
        """
        target_columns = self.db.list_columns(table)
        if not target_columns:
            msg = f"Table {table} does not exist or has no columns"
            logger.error(msg)
            raise InvalidColumns(msg)

        # MySQL column names are case insensitive
        wanted = {col.lower() for col in columns}
        known = {col.name.lower() for col in target_columns}
        missing = [col for col in columns if col.lower() not in known]
        if missing:
            msg = f"Columns {missing} do not exist in table {table}"
            logger.error(msg)
            raise InvalidColumns(msg)

        self._check_target_indexes(table, join_columns)

        staging = StagingTable(
            name=self.staging_name(table),
            source_table=table,
            columns=tuple(col for col in target_columns if col.name.lower() in wanted),
            indexes=tuple(IndexDef(col, (col,), False) for col in join_columns),
        )
        self.db.create_temporary_table(staging)
        logger.debug(f"Created staging table {staging.name} for {table}")
        return staging

    def _check_target_indexes(self, table: str, join_columns: Sequence[str]) -> None:
        leading = {index.columns[0].lower() for index in self.db.list_indexes(table) if index.columns}
        if not leading.intersection(col.lower() for col in join_columns):
            logger.warning(f"No index on {table} starts with any of {list(join_columns)}; "
                           f"the update join will scan {table}")

    def populate(self, staging: StagingTable, rows: List[Mapping],
                 column_types: Optional[Mapping[str, str]] = None) -> int:
        """Insert ``rows`` into the staging table with one multi-row INSERT."""
        count = self.insert_engine.execute(staging.name, rows, column_types)
        logger.debug(f"Staged {count:,} rows in {staging.name}")
        return count

    def release(self, staging: StagingTable, if_exists: bool = True) -> None:
        """Drop the staging table."""
        self.db.drop_temporary_table(staging.name, if_exists=if_exists)
        logger.debug(f"Dropped staging table {staging.name}")

    @contextmanager
    def staged(self, table: str, columns: Sequence[str], join_columns: Sequence[str]) -> Iterator[StagingTable]:
        """
        Stage on enter, release on exit whatever happens inside the block.

        A failed drop while an error is already propagating is logged and the
        original error is re-raised. A failed drop after a successful block
        raises :class:`~tablegate.exceptions.StagingCleanupError`.
        """
        staging = self.stage(table, columns, join_columns)
        try:
            yield staging
        except BaseException:
            try:
                self.release(staging)
            except DatabaseError as e:
                logger.error(f"Failed to drop staging table {staging.name}: {e}")
            raise
        try:
            self.release(staging)
        except DatabaseError as e:
            msg = f"Failed to drop staging table {staging.name}: {e}"
            logger.error(msg)
            raise StagingCleanupError(msg, sql=e.sql, driver_error=e.driver_error) from e
