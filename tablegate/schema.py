# tablegate/schema.py
"""Table metadata records returned by :class:`tablegate.database.Database`."""

from collections import namedtuple

ColumnDef = namedtuple('ColumnDef', ['name', 'native_type', 'nullable', 'default'])
ColumnDef.__doc__ = """Live column definition: name, full native type (e.g. ``varchar(50)``), nullability and default."""

IndexDef = namedtuple('IndexDef', ['name', 'columns', 'unique'])
IndexDef.__doc__ = """Index definition: name, tuple of column names in index order, unique flag."""
