# tablegate/bulk/dialect.py
"""
Upsert dialects of the MySQL family.

The dialect only changes how ``ON DUPLICATE KEY UPDATE`` refers to the
incoming row. Everything else in a bulk statement is the same on MySQL and
MariaDB.
"""

import logging
import re
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# server types (from the driver registry) that speak MySQL's upsert syntax
MYSQL_FAMILY = ('mysql', 'mariadb')
# first MySQL release that accepts "INSERT ... AS alias"
ROW_ALIAS_MIN_VERSION = (8, 0, 19)


class Dialect:
    """
    How the duplicate key clause refers to the row being inserted.

    - ROW_ALIAS: ``VALUES (...) AS `new` ON DUPLICATE KEY UPDATE `c` = `new`.`c``` (MySQL 8.0.19+)
    - VALUES_FN: ``ON DUPLICATE KEY UPDATE `c` = VALUES(`c`)`` (MariaDB and older MySQL)
    - UNSUPPORTED: anything that is not MySQL or MariaDB
    """
    ROW_ALIAS = 'row_alias'
    VALUES_FN = 'values_fn'
    UNSUPPORTED = 'unsupported'

    @classmethod
    def values(cls):
        return [getattr(cls, attr) for attr in dir(cls) if attr.isupper()]

    @classmethod
    def supported(cls):
        """Dialects the statement builder can render."""
        return (cls.ROW_ALIAS, cls.VALUES_FN)


def parse_version(version: str) -> Optional[Tuple[int, int, int]]:
    """
    Pull ``(major, minor, patch)`` out of a ``SELECT VERSION()`` string.

    Example
    -------
    ::
        >>> parse_version('8.0.36-0ubuntu0.22.04.1')
        (8, 0, 36)
        >>> parse_version('10.11.6-MariaDB-1:10.11.6+maria~ubu2204')
        (10, 11, 6)
    """
    match = re.search(r'(\d+)\.(\d+)(?:\.(\d+))?', version or '')
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)


def is_mariadb(server_type: str, version: str) -> bool:
    """MariaDB identifies itself in the version string even through MySQL drivers."""
    return server_type == 'mariadb' or 'mariadb' in (version or '').lower()


def dialect_for(server_type: str, version: str) -> str:
    """
    Pick the upsert dialect for a server.

    Args:
        server_type: database type from the driver registry ('mysql', 'mariadb', ...)
        version: server version string as returned by ``SELECT VERSION()``

    Returns:
        One of the :class:`Dialect` constants
    """
    if server_type not in MYSQL_FAMILY:
        return Dialect.UNSUPPORTED
    if is_mariadb(server_type, version):
        return Dialect.VALUES_FN
    parsed = parse_version(version)
    if parsed is None:
        logger.warning(f"Could not parse server version '{version}', using VALUES() upsert syntax")
        return Dialect.VALUES_FN
    if parsed >= ROW_ALIAS_MIN_VERSION:
        return Dialect.ROW_ALIAS
    return Dialect.VALUES_FN
