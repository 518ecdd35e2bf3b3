# tablegate/bulk/validation.py
"""Preconditions checked on a row batch before any SQL is generated."""

import logging
from typing import List, Mapping, Sequence

from ..exceptions import (ColumnMismatch, InvalidColumns, InvalidJoinColumns,
                          MissingJoinColumns, NoUpdatableColumns)

logger = logging.getLogger(__name__)


class RowSetValidator:
    """
    Checks that a batch is shaped for a single multi-row statement.

    Both methods are pure: they raise a :class:`~tablegate.exceptions.ValidationError`
    subclass or return the column list the statement will use.
    """

    @staticmethod
    def column_signature(rows: Sequence[Mapping]) -> List[str]:
        """
        Return the batch's column names in the first row's key order.

        Every row must carry the same set of keys; order within a row does not
        matter. An empty batch has an empty signature.

        Raises:
            InvalidColumns: the first row has no columns
            ColumnMismatch: a later row's key set differs from the first row's
        """
        if not rows:
            return []
        columns = list(rows[0].keys())
        if not columns:
            msg = "Rows must contain at least one column"
            logger.error(msg)
            raise InvalidColumns(msg)
        expected = set(columns)
        for idx, row in enumerate(rows[1:], start=1):
            keys = set(row.keys())
            if keys != expected:
                missing = sorted(expected - keys)
                extra = sorted(keys - expected)
                msg = f"All rows must have the same columns! Row {idx}: missing {missing}, extra {extra}"
                logger.error(msg)
                raise ColumnMismatch(msg)
        return columns

    @staticmethod
    def update_columns(columns: Sequence[str], join_columns: Sequence[str]) -> List[str]:
        """
        Return the columns a join update will SET, in signature order.

        Raises:
            MissingJoinColumns: no join columns given
            InvalidJoinColumns: a join column is not in the signature
            NoUpdatableColumns: the signature holds only join columns
        """
        if not join_columns:
            msg = "Join columns must be specified for bulk update!"
            logger.error(msg)
            raise MissingJoinColumns(msg)
        unknown = [col for col in join_columns if col not in columns]
        if unknown:
            msg = f"Join columns must be a subset of the columns in the rows! Unknown: {unknown}"
            logger.error(msg)
            raise InvalidJoinColumns(msg)
        set_columns = [col for col in columns if col not in join_columns]
        if not set_columns:
            msg = "Rows must not only contain join columns!"
            logger.error(msg)
            raise NoUpdatableColumns(msg)
        return set_columns
