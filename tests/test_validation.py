# tests/test_validation.py
import pytest

from tablegate.bulk import RowSetValidator
from tablegate.exceptions import (ColumnMismatch, InvalidColumns, InvalidJoinColumns,
                                  MissingJoinColumns, NoUpdatableColumns, ValidationError)


class TestColumnSignature:
    """Test RowSetValidator.column_signature."""

    def test_empty_batch(self):
        """An empty batch has an empty signature."""
        assert RowSetValidator.column_signature([]) == []

    def test_first_row_order_wins(self):
        """Column order comes from the first row, later rows may list keys in any order."""
        rows = [{'id': 1, 'name': 'a'}, {'name': 'b', 'id': 2}]
        assert RowSetValidator.column_signature(rows) == ['id', 'name']

    def test_missing_column(self):
        """A row without one of the columns is rejected."""
        rows = [{'id': 1, 'name': 'a'}, {'id': 2}]
        with pytest.raises(ColumnMismatch, match="Row 1: missing \\['name'\\]"):
            RowSetValidator.column_signature(rows)

    def test_extra_column(self):
        """A row with an extra column is rejected."""
        rows = [{'id': 1}, {'id': 2}, {'id': 3, 'name': 'c'}]
        with pytest.raises(ColumnMismatch, match="Row 2: missing \\[\\], extra \\['name'\\]"):
            RowSetValidator.column_signature(rows)

    def test_first_row_without_columns(self):
        """Rows must carry at least one column."""
        with pytest.raises(InvalidColumns):
            RowSetValidator.column_signature([{}])

    def test_errors_are_value_errors(self):
        """Validation errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            RowSetValidator.column_signature([{'a': 1}, {'b': 2}])
        assert issubclass(ColumnMismatch, ValidationError)


class TestUpdateColumns:
    """Test RowSetValidator.update_columns."""

    def test_returns_non_join_columns_in_order(self):
        """SET columns keep signature order."""
        columns = ['name', 'id', 'price', 'tenant']
        assert RowSetValidator.update_columns(columns, ['tenant', 'id']) == ['name', 'price']

    @pytest.mark.parametrize('join_columns', [[], None])
    def test_missing_join_columns(self, join_columns):
        """Join columns are required."""
        with pytest.raises(MissingJoinColumns):
            RowSetValidator.update_columns(['id', 'name'], join_columns)

    def test_unknown_join_column(self):
        """Join columns must be in the signature."""
        with pytest.raises(InvalidJoinColumns, match='sku'):
            RowSetValidator.update_columns(['id', 'name'], ['sku'])

    def test_only_join_columns(self):
        """Nothing left to SET."""
        with pytest.raises(NoUpdatableColumns):
            RowSetValidator.update_columns(['id', 'sku'], ['sku', 'id'])
