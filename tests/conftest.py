# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.

The bulk engines only need a DB-API connection and its driver module, so
most tests run against FakeConnection, which records every statement and
answers the handful of metadata queries Database issues.
"""

import os
import types
from pathlib import Path
from unittest.mock import patch

import pytest

from tablegate.database import Database
from tablegate.defaults import settings

TEST_KEY = '2YvTXI9DHQPy4d6-ZC9NxcypvLMsJ94OBdmoHyjmwbM='


# Set test config file and encryption key for all tests
@pytest.fixture(autouse=True)
def setup_test_config():
    """Automatically set test config file and encryption key for all tests."""
    from tablegate.config import set_config_file

    saved = {**settings, 'logging': dict(settings['logging'])}
    test_config = Path(__file__).parent / 'test.yml'
    set_config_file(str(test_config))

    with patch.dict(os.environ, {'TABLEGATE_ENCRYPTION_KEY': TEST_KEY}):
        yield

    settings.clear()
    settings.update(saved)


class FakeDriverError(Exception):
    """Stands in for a driver's ``Error`` base class."""


class FakeDatabaseError(FakeDriverError):
    """Stands in for a driver's ``DatabaseError``."""


def make_driver(name='pymysql', paramstyle='pyformat'):
    """A module object shaped like a DB-API driver."""
    driver = types.ModuleType(name)
    driver.paramstyle = paramstyle
    driver.Error = FakeDriverError
    driver.DatabaseError = FakeDatabaseError
    return driver


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rowcount = -1
        self.description = None
        self.arraysize = 1
        self._rows = []

    def execute(self, query, args=None):
        self.connection.statements.append((query, args))
        for pattern, error in self.connection.failures:
            if pattern in query:
                raise error
        self._rows = self.connection.rows_for(query, args)
        self.description = [('col', None, None, None, None, None, None)] if self._rows else None
        self.rowcount = self.connection.rowcount_for(query)

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.connection.closed_cursors += 1


class FakeConnection:
    """
    Records statements and serves canned metadata.

    Args:
        version: returned by ``SELECT VERSION()``
        columns: table name -> rows of (column_name, column_type, is_nullable, column_default)
        indexes: table name -> rows of (index_name, column_name, non_unique)
    """

    def __init__(self, version='8.0.36', columns=None, indexes=None):
        self.version = version
        self.columns = columns or {}
        self.indexes = indexes or {}
        self.statements = []
        self.failures = []
        self.rowcounts = []
        self.closed_cursors = 0
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass

    def fail_on(self, pattern, message='boom'):
        """Raise FakeDatabaseError for any statement containing ``pattern``."""
        self.failures.append((pattern, FakeDatabaseError(message)))

    def set_rowcount(self, pattern, count):
        self.rowcounts.append((pattern, count))

    def rows_for(self, query, args):
        if query == 'SELECT VERSION()':
            return [(self.version,)]
        if 'information_schema.columns' in query:
            return list(self.columns.get(args[-1], []))
        if 'information_schema.statistics' in query:
            return list(self.indexes.get(args[-1], []))
        return []

    def rowcount_for(self, query):
        for pattern, count in self.rowcounts:
            if pattern in query:
                return count
        if query.startswith('INSERT'):
            return query.count('), (') + 1
        return 0

    @property
    def writes(self):
        """Statements other than metadata reads."""
        return [(sql, args) for sql, args in self.statements if not sql.startswith('SELECT')]

    @property
    def write_sql(self):
        return [sql for sql, _ in self.writes]


PRODUCT_COLUMNS = [
    ('id', 'int', 'NO', None),
    ('sku', 'varchar(32)', 'NO', None),
    ('name', 'varchar(100)', 'YES', None),
    ('price', 'decimal(10,2)', 'YES', '0.00'),
    ('active', 'tinyint(1)', 'NO', '1'),
]
PRODUCT_INDEXES = [
    ('PRIMARY', 'id', 0),
    ('uq_sku', 'sku', 0),
]


@pytest.fixture
def fake_connection():
    """MySQL 8 connection with a ``products`` table."""
    return FakeConnection(columns={'products': PRODUCT_COLUMNS}, indexes={'products': PRODUCT_INDEXES})


@pytest.fixture
def db(fake_connection):
    """Database wrapper around the fake connection using a pymysql shaped driver."""
    return Database(fake_connection, make_driver(), 'shop')


@pytest.fixture
def qmark_db():
    """MariaDB server through the qmark style mariadb connector."""
    connection = FakeConnection(version='10.11.6-MariaDB-1:10.11.6+maria~ubu2204',
                                columns={'products': PRODUCT_COLUMNS}, indexes={'products': PRODUCT_INDEXES})
    return Database(connection, make_driver('mariadb', 'qmark'), 'shop')


@pytest.fixture
def sample_rows():
    """Three product rows sharing one column set."""
    return [
        {'id': 1, 'name': 'Widget', 'price': 9.99},
        {'id': 2, 'name': 'Gadget', 'price': 24.50},
        {'id': 3, 'name': 'Gizmo', 'price': 3.25},
    ]
