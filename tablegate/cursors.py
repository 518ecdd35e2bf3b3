# tablegate/cursors.py
"""
Cursor wrapper used by :class:`tablegate.database.Database`.
The wrapper delegates to the underlying driver cursor stored in _cursor.
"""

import logging
from typing import Any, Iterator, List, Optional

logger = logging.getLogger(__name__)
__all__ = ['Cursor']


class Cursor:
    """
    Thin cursor that returns query results as plain tuples.

    It wraps a driver specific cursor, logs statements at DEBUG level
    and remembers the last statement for adapters that do not.

    Attributes
    ----------
    connection : Database
        The database connection this cursor belongs to
    paramstyle : str
        Parameter style of the underlying driver ('pyformat', 'qmark', ...)
    placeholder : str
        Positional placeholder for bind parameters ('%s' or '?')

    Example
    -------
    ::

        cursor = db.cursor()
        cursor.execute("SELECT id, name FROM products WHERE id = %s", (42,))
        row = cursor.fetchone()
    """
    # Attributes that live on this class and are not delegated to the underlying cursor
    _local_attrs = ['connection', 'debug', 'placeholder', 'paramstyle', '_cursor', '_statement', '_bind_vars']

    def __init__(self, connection, debug: Optional[bool] = None, **kwargs):
        self.connection = connection
        # follow the logger unless told otherwise
        self.debug = logger.isEnabledFor(logging.DEBUG) if debug is None else debug
        self._statement = None
        self._bind_vars = None
        try:
            self._cursor = self.connection._connection.cursor(**kwargs)
        except AttributeError as e:
            raise TypeError(f'First argument must be a tablegate Database: {e}')

        self.paramstyle = self.connection.interface.paramstyle
        self.placeholder = self.connection.placeholder

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying cursor."""
        if key == 'statement' and not hasattr(self._cursor, 'statement'):
            return self._statement
        if key == 'bind_vars' and not hasattr(self._cursor, 'bind_vars'):
            return self._bind_vars
        return getattr(self._cursor, key)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._cursor, key, value)

    def __iter__(self) -> Iterator:
        return self

    def __next__(self) -> Any:
        row = self.fetchone()
        if row is not None:
            return row
        raise StopIteration

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def execute(self, query: str, bind_vars: Optional[tuple] = None) -> None:
        """
        Execute a statement.

        Statements without bind variables are sent without an argument tuple so
        format style drivers do not try to interpolate a literal ``%``.
        """
        if self.debug:
            logger.debug(f'Query:\n{query}')
            logger.debug(f'Bind vars:\n{bind_vars}')

        self._statement = query
        self._bind_vars = bind_vars

        # some adapters return a cursor instead of the Database API specified None
        if bind_vars:
            _ = self._cursor.execute(query, bind_vars)
        else:
            _ = self._cursor.execute(query)

    def fetchone(self) -> Optional[tuple]:
        row = self._cursor.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> List[tuple]:
        return [tuple(row) for row in self._cursor.fetchall()]
