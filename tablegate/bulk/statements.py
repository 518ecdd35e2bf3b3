# tablegate/bulk/statements.py
"""
SQL text for bulk statements.

The builder never talks to the database. It turns a validated batch into
statement text plus flat parameter and type lists, so the same batch always
renders the same statement.
"""

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from ..defaults import settings
from ..exceptions import InvalidUpdateColumns, ValidationError
from ..utils import ParameterType, quote_identifier, unqualified_name, validate_identifier
from .dialect import Dialect

logger = logging.getLogger(__name__)


class StatementBuilder:
    """
    Render multi-row INSERT / upsert statements and join UPDATEs.

    Args:
        dialect: :class:`~tablegate.bulk.dialect.Dialect` used for the duplicate key clause
        quote: identifier quoting callable, normally ``Database.quote_identifier``
        placeholder: the driver's positional placeholder (``?`` or ``%s``)
        upsert_alias: row alias for ROW_ALIAS upserts, defaults to ``settings['upsert_alias']``

    Example
    -------
    ::
        >>> builder = StatementBuilder(Dialect.ROW_ALIAS, placeholder='?')
        >>> sql, params, types = builder.build_insert('t', ['id', 'name'],
        ...     [{'id': 1, 'name': 'a'}, {'id': 2, 'name': 'b'}], upsert=True)
        >>> sql
        'INSERT INTO `t` (`id`,`name`) VALUES (?,?), (?,?) AS `new` ON DUPLICATE KEY UPDATE `id` = `new`.`id`,`name` = `new`.`name`'
        >>> params
        [1, 'a', 2, 'b']
    """
    TARGET_ALIAS = 't1'
    STAGING_ALIAS = 't2'

    def __init__(self, dialect: str, quote: Callable[[str], str] = quote_identifier,
                 placeholder: str = '?', upsert_alias: Optional[str] = None):
        if dialect not in Dialect.supported():
            raise ValueError(f"Cannot build statements for dialect '{dialect}'")
        self.dialect = dialect
        self.quote = quote
        self.placeholder = placeholder
        self.upsert_alias = upsert_alias or settings.get('upsert_alias', 'new')

    def _quote(self, identifier: str) -> str:
        return self.quote(validate_identifier(identifier))

    def build_insert(self, table: str, columns: Sequence[str], rows: Sequence[Mapping],
                     column_types: Optional[Mapping[str, str]] = None, upsert: bool = False,
                     update_columns: Optional[Sequence[str]] = None
                     ) -> Tuple[str, List[Any], Optional[List[str]]]:
        """
        Build one INSERT for the whole batch.

        Args:
            table: target table, optionally schema qualified
            columns: column signature from :meth:`RowSetValidator.column_signature`
            rows: the batch, every row keyed by exactly ``columns``
            column_types: optional column -> ParameterType map; missing columns bind as STRING
            upsert: append ``ON DUPLICATE KEY UPDATE``
            update_columns: columns the upsert overwrites, defaults to all of ``columns``

        Returns:
            (sql, params, types) where params are flattened row by row in
            column order and types is None when no type map was given

        Raises:
            InvalidUpdateColumns: an update column is not in ``columns``
            ValidationError: the upsert alias collides with the table name
        """
        ParameterType.validate(column_types)
        quoted_cols = ','.join(self._quote(col) for col in columns)
        group = '(' + ','.join([self.placeholder] * len(columns)) + ')'
        values_clause = ', '.join([group] * len(rows))
        sql = f"INSERT INTO {self._quote(table)} ({quoted_cols}) VALUES {values_clause}"

        if upsert:
            sql += self._duplicate_key_clause(table, columns, update_columns)

        params = [row[col] for row in rows for col in columns]
        types = None
        if column_types:
            row_types = [column_types.get(col, ParameterType.STRING) for col in columns]
            types = row_types * len(rows)

        logger.debug(f"Generated insert SQL for {table}: {len(rows)} rows, {len(params)} parameters")
        return sql, params, types

    def _duplicate_key_clause(self, table: str, columns: Sequence[str],
                              update_columns: Optional[Sequence[str]]) -> str:
        if update_columns:
            unknown = [col for col in update_columns if col not in columns]
            if unknown:
                msg = f"Update columns must be a subset of the columns in the rows! Unknown: {unknown}"
                logger.error(msg)
                raise InvalidUpdateColumns(msg)
            targets = list(update_columns)
        else:
            targets = list(columns)

        if self.dialect == Dialect.VALUES_FN:
            assignments = ','.join(f"{self._quote(col)} = VALUES({self._quote(col)})" for col in targets)
            return f" ON DUPLICATE KEY UPDATE {assignments}"

        # Use alias syntax for MySQL 8.0.19+
        if self.upsert_alias.lower() == unqualified_name(table).lower():
            msg = f"Upsert alias '{self.upsert_alias}' must differ from the table name '{table}'"
            logger.error(msg)
            raise ValidationError(msg)
        alias = self._quote(self.upsert_alias)
        assignments = ','.join(f"{self._quote(col)} = {alias}.{self._quote(col)}" for col in targets)
        return f" AS {alias} ON DUPLICATE KEY UPDATE {assignments}"

    def build_join_update(self, table: str, staging_table: str, columns: Sequence[str],
                          join_columns: Sequence[str]) -> str:
        """
        Build the UPDATE that copies staged values onto the target.

        The target is aliased ``t1`` and the staging table ``t2``; rows match
        on every join column and every other signature column is SET.
        """
        t1 = self.quote(self.TARGET_ALIAS)
        t2 = self.quote(self.STAGING_ALIAS)
        on_clause = ' AND '.join(
            f"{t1}.{self._quote(col)}={t2}.{self._quote(col)}" for col in join_columns
        )
        set_clause = ','.join(
            f"{t1}.{self._quote(col)}={t2}.{self._quote(col)}" for col in columns if col not in join_columns
        )
        sql = (f"UPDATE {self._quote(table)} AS {t1} INNER JOIN {self._quote(staging_table)} AS {t2} "
               f"ON {on_clause} SET {set_clause}")
        logger.debug(f"Generated update SQL for {table}:\n{sql}")
        return sql
