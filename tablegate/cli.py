# tablegate/cli.py
"""Command-line utilities: dependency checkup, key management and statement preview."""

import argparse
import importlib.metadata
import importlib.util
import json
import sys
from typing import List, Optional

from . import config
from .bulk import Dialect, RowSetValidator, StatementBuilder
from .database import get_all_drivers
from .exceptions import ValidationError


def _name_cleanup(name):
    """Cleanup module names for search and display"""
    return name.lower().replace('-', '_')


def _get_optional_deps(extra_name='mysql') -> List[str]:
    """Package names listed in one of tablegate's extras."""
    try:
        reqs = importlib.metadata.requires('tablegate') or []
    except importlib.metadata.PackageNotFoundError:
        return []
    deps = []
    # Parse requirements like: 'PyMySQL>=1.1; extra == "mysql"'
    for req in reqs:
        req = req.replace("'", '"')
        if f'extra == "{extra_name}"' in req:
            pkg = req.split(';')[0].strip()
            deps.append(pkg.split('>=')[0].split('==')[0].split('<')[0].strip())
    return deps


def _module_available(module_name: str) -> bool:
    try:
        return importlib.util.find_spec(module_name) is not None
    except ModuleNotFoundError:
        return False


def checkup():
    """Report installed drivers and config health."""
    installed = {_name_cleanup(d.metadata['Name']): d.version for d in importlib.metadata.distributions()}

    print(f"{'Package':<20} {'Status':<8} {'Version'}")
    print("-" * 40)
    for dep in _get_optional_deps('mysql') + ['keyring']:
        version = installed.get(_name_cleanup(dep))
        status = "✓" if version else "✗"
        print(f"{dep:<20} {status:<8} {version or '-'}")

    print("\nDB Drivers           Priority* Status   Version")
    print("-" * 56)
    by_type = {}
    for name, info in get_all_drivers().items():
        by_type.setdefault(info['database_type'], []).append((info['priority'], name, info))

    dist_names = {'pymysql': 'pymysql', 'MySQLdb': 'mysqlclient', 'mysql.connector': 'mysql_connector_python',
                  'mariadb': 'mariadb'}
    for db_type in sorted(by_type):
        print(f"{db_type}")
        for pri, name, info in sorted(by_type[db_type], key=lambda x: x[0]):
            module_name = info.get('module', name)
            status = "✓" if _module_available(module_name) else "✗"
            version = installed.get(dist_names.get(name, _name_cleanup(module_name)), '--')
            print(f"{'  ' + name:<20} {pri:<9} {status:<8} {version}")

    print("\n* Lower priority = preferred")

    print("\nConfig Health")
    print("-" * 40)
    for status, msg in config.diagnose_config():
        print(f"{status} {msg}")


def preview_insert(rows_file: str, table: str, dialect: str = Dialect.ROW_ALIAS, placeholder: str = '?',
                   upsert: bool = False, update_columns: Optional[List[str]] = None) -> str:
    """
    Render the bulk INSERT for a JSON file of rows without connecting.

    The file must hold a JSON array of objects, one object per row.
    """
    with open(rows_file, encoding='utf-8') as fp:
        rows = json.load(fp)
    if not isinstance(rows, list):
        raise ValidationError(f"{rows_file} must contain a JSON array of row objects")
    columns = RowSetValidator.column_signature(rows)
    if not columns:
        raise ValidationError(f"{rows_file} contains no rows")
    builder = StatementBuilder(dialect, placeholder=placeholder)
    sql, params, _ = builder.build_insert(table, columns, rows, upsert=upsert, update_columns=update_columns)
    print(sql)
    print(f"-- {len(rows)} rows, {len(params)} parameters")
    return sql


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog='tablegate', description='tablegate command-line utilities')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('checkup', help='Check for drivers and configuration issues')

    subparsers.add_parser('generate-key', help='Generate encryption key')

    key_parser = subparsers.add_parser('store-key',
                                       help='Store encryption key in system keyring (generate if not provided)')
    key_parser.add_argument('key', nargs='?', default=None,
                            help='Encryption key to store. If omitted, a new key is generated and stored.')
    key_parser.add_argument('--force', action='store_true',
                            help='Overwrite existing encryption key in system keyring')

    encrypt_parser = subparsers.add_parser('encrypt-config', help='Encrypt passwords in config file')
    encrypt_parser.add_argument('config_file', nargs='?', default='tablegate.yml', help='Config file path')

    pwd_parser = subparsers.add_parser('encrypt-password', help='Encrypt a password')
    pwd_parser.add_argument('password', nargs='?', help='Password to encrypt')

    preview_parser = subparsers.add_parser('preview-insert', help='Print the bulk INSERT for a JSON rows file')
    preview_parser.add_argument('rows_file', help='JSON file holding an array of row objects')
    preview_parser.add_argument('--table', required=True, help='Target table name')
    preview_parser.add_argument('--dialect', choices=list(Dialect.supported()), default=Dialect.ROW_ALIAS,
                                help='Upsert syntax: row_alias (MySQL 8.0.19+) or values_fn (MariaDB, older MySQL)')
    preview_parser.add_argument('--placeholder', choices=['?', '%s'], default='?',
                                help='Positional placeholder of the target driver')
    preview_parser.add_argument('--upsert', action='store_true', help='Add ON DUPLICATE KEY UPDATE')
    preview_parser.add_argument('--update-columns', default=None,
                                help='Comma separated columns to update on duplicate key (default all)')

    args = parser.parse_args(argv)

    try:
        if args.command == 'checkup':
            checkup()
        elif args.command == 'generate-key':
            print(config.generate_encryption_key())
        elif args.command == 'store-key':
            config.store_key(args.key, force=args.force)
        elif args.command == 'encrypt-config':
            config.encrypt_config_file(args.config_file)
        elif args.command == 'encrypt-password':
            config.encrypt_password(args.password)
        elif args.command == 'preview-insert':
            update_columns = [c.strip() for c in args.update_columns.split(',')] if args.update_columns else None
            preview_insert(args.rows_file, args.table, args.dialect, args.placeholder,
                           upsert=args.upsert, update_columns=update_columns)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
