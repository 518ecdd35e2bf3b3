# tablegate/utils.py
"""
Utility functions for tablegate.
"""

import itertools
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence

from .defaults import settings
from .exceptions import ValidationError


class ParamStyle:
    """
    SQL parameter placeholder styles for different database drivers.

    Bulk statements always bind positionally, so only styles with an
    anonymous positional placeholder are usable:

    - QMARK: Question mark placeholders (?, ?) - mariadb connector
    - FORMAT: Printf-style (%s, %s) - MySQLdb
    - PYFORMAT: Python format (%(name)s) - pymysql, mysql.connector; also %s for positional
    - NUMERIC/NAMED: every placeholder needs its own name or number; not used
      by the MySQL family drivers and rejected by get_placeholder()

    Example
    -------
    ::
        >>> ParamStyle.get_placeholder('qmark')
        '?'
        >>> ParamStyle.get_placeholder('pyformat')
        '%s'
    """
    QMARK = 'qmark'         # id = ?
    NUMERIC = 'numeric'     # id = :1
    NAMED = 'named'         # id = :id  also :1 for positional
    FORMAT = 'format'       # id = %s
    PYFORMAT = 'pyformat'   # id = %(id)s also %s for positional
    DEFAULT = FORMAT

    @classmethod
    def values(cls) -> List[str]:
        return [getattr(cls, attr) for attr in dir(cls) if attr.isupper()]

    @classmethod
    def get_placeholder(cls, paramstyle: str) -> str:
        if paramstyle == cls.QMARK:
            return '?'
        elif paramstyle == cls.FORMAT:
            return '%s'
        elif paramstyle == cls.PYFORMAT:
            # adapters that use pyformat parameters can also use %s for positional parameters
            return '%s'
        elif paramstyle in (cls.NUMERIC, cls.NAMED):
            # one repeated :1 would bind the first value everywhere
            raise ValueError(f"Paramstyle '{paramstyle}' has no anonymous positional placeholder")
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")


class ParameterType:
    """
    Bind types for bulk statement parameters.

    A column type map (column name -> ParameterType) tells
    :meth:`tablegate.database.Database.execute` how to coerce each value
    before it is handed to the driver. Columns missing from the map are
    bound as STRING, which leaves the value as it is and lets the driver
    pick its own representation. ASCII also leaves the value alone but
    rejects non-ASCII text. ``None`` is never coerced.

    Example
    -------
    ::
        >>> ParameterType.convert('42', ParameterType.INTEGER)
        42
        >>> ParameterType.convert(True, ParameterType.BOOLEAN)
        1
        >>> ParameterType.convert(True, ParameterType.STRING)
        True
    """
    INTEGER = 'integer'
    STRING = 'string'
    ASCII = 'ascii'
    BINARY = 'binary'
    BOOLEAN = 'boolean'
    DEFAULT = STRING

    @classmethod
    def values(cls) -> List[str]:
        return [getattr(cls, attr) for attr in dir(cls) if attr.isupper()]

    @classmethod
    def validate(cls, column_types: Optional[Mapping]) -> None:
        """Raise ValidationError if a column type map holds an unknown type."""
        if not column_types:
            return
        valid = cls.values()
        bad = {col: typ for col, typ in column_types.items() if typ not in valid}
        if bad:
            raise ValidationError(f"Unknown parameter types {bad}. Valid types: {sorted(set(valid))}")

    @classmethod
    def convert(cls, value: Any, param_type: str) -> Any:
        """Coerce a single value to the Python type the driver should bind."""
        if value is None:
            return None
        if param_type == cls.INTEGER:
            return int(value)
        elif param_type == cls.BOOLEAN:
            return 1 if value else 0
        elif param_type == cls.BINARY:
            if isinstance(value, str):
                return value.encode('utf-8')
            if isinstance(value, int):
                raise TypeError(f"Cannot bind integer {value} as binary")
            return bytes(value)
        elif param_type == cls.STRING:
            return value
        elif param_type == cls.ASCII:
            if isinstance(value, (str, bytes, bytearray)) and not value.isascii():
                raise ValueError(f"Value is not ASCII: {value!r}")
            return value
        raise ValueError(f"Unknown parameter type: {param_type}")

    @classmethod
    def convert_all(cls, params: Sequence[Any], types: Sequence[str]) -> List[Any]:
        """
        Coerce a flat parameter list against a parallel flat type list.

        Raises:
            ValidationError: a value cannot be bound as its type
        """
        if len(params) != len(types):
            raise ValueError(f"Got {len(params)} parameters but {len(types)} types")
        converted = []
        for idx, (value, param_type) in enumerate(zip(params, types)):
            try:
                converted.append(cls.convert(value, param_type))
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Parameter {idx} ({value!r}) cannot be bound as {param_type}: {e}") from e
        return converted


def validate_identifier(identifier: str, max_length: Optional[int] = None) -> str:
    """
    Validate that an identifier can be used once quoted.
    Returns the identifier if valid, raises ValueError if invalid.
    """
    if max_length is None:
        max_length = settings.get('identifier_max_length', 64)
    if not isinstance(identifier, str):
        raise ValueError(f"Invalid identifier: must be a string, got {type(identifier).__name__}")
    if '.' in identifier:
        parts = identifier.split('.')
        validated_parts = [validate_identifier(part, max_length) for part in parts]
        return '.'.join(validated_parts)

    if not identifier:
        raise ValueError("Invalid identifier: cannot be empty")
    if len(identifier) > max_length:
        raise ValueError(f"Invalid identifier: exceeds max length of {max_length}: {identifier}")
    if '\x00' in identifier:
        raise ValueError(f"Invalid identifier: contains NUL character: {identifier!r}")
    # MySQL silently rejects names that end with a space
    if identifier.endswith(' '):
        raise ValueError(f"Invalid identifier: has trailing spaces: {identifier}")

    return identifier


def quote_identifier(identifier: str) -> str:
    """Quote identifier with backticks, handling qualified names by splitting on dots."""
    if '.' in identifier:
        parts = identifier.split('.')
        quoted_parts = [quote_identifier(part) for part in parts]
        return '.'.join(quoted_parts)

    return '`' + identifier.replace('`', '``') + '`'


def unqualified_name(table: str) -> str:
    """Strip any schema prefix: ``shop.orders`` -> ``orders``."""
    return table.rsplit('.', 1)[-1]


def batch_iterable(iterable: Iterable[Any], batch_size: int) -> Iterable[List[Any]]:
    """
    Batch an iterable into chunks of specified size.

    The bulk engines send each call as one statement, so callers with more
    rows than fit in a single statement split them here first.

    Args:
        iterable: The iterable to batch
        batch_size: Size of each batch

    Yields:
        Lists of items up to batch_size length
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    iterator = iter(iterable)
    while True:
        batch = list(itertools.islice(iterator, batch_size))
        if not batch:
            break
        yield batch
