"""
MySQL driver.

`DESCRIBE` supplies the column list, types, nullability and the
`auto_increment` flag; `INFORMATION_SCHEMA` adds key constraints and column
comments for the configured schema.
"""
import logging
import re
from typing import TYPE_CHECKING, Any

import pymysql
import sqlalchemy as sa

from datamgr.drivers.base import DialectDriver, register_driver
from datamgr.types import FOREIGN_KEY, IDENTITY, PRIMARY_KEY, UNIQUE

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

ER_NO_SUCH_TABLE = 1146

_TYPE_LENGTH = re.compile(r'^(?P<type>[^(]+)\((?P<length>[^)]*)\)(?P<rest>.*)$')

_KEYS_SQL = """
SELECT COLUMN_NAME, CONSTRAINT_NAME, REFERENCED_TABLE_NAME
FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = ?
AND TABLE_NAME = ?
"""

_COMMENTS_SQL = """
SELECT COLUMN_NAME, COLUMN_COMMENT
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_SCHEMA = ?
AND TABLE_NAME = ?
"""

_COLUMNS_SQL = """
SELECT COLUMN_NAME
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_SCHEMA = ?
AND TABLE_NAME = ?
ORDER BY ORDINAL_POSITION
"""


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode('utf-8', errors='replace')
    return str(value)


def split_type_length(column_type: str) -> tuple[str, Any]:
    """Split a `DESCRIBE` type such as `varchar(32)` into name and length.

    The length is an int when the parenthesized part is a plain number, the
    raw text otherwise (`decimal(10,2)` -> `'10,2'`), or None when absent.

    >>> split_type_length('varchar(32)')
    ('varchar', 32)
    >>> split_type_length('int unsigned')
    ('int unsigned', None)
    """
    match = _TYPE_LENGTH.match(column_type)
    if not match:
        return column_type, None
    length = match.group('length')
    name = (match.group('type') + match.group('rest')).strip()
    return name, int(length) if length.isdigit() else length


@register_driver('mysql')
class MySQLDriver(DialectDriver):
    """MySQL via PyMySQL.
    """

    paramstyle = 'format'

    @property
    def dialect_name(self) -> str:
        return 'mysql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user', 'dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return (pymysql.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        return sa.URL.create(
            drivername='mysql+pymysql',
            username=config.user,
            password=config.password,
            host=config.host,
            port=config.port,
            database=config.dbname,
            query={'charset': 'utf8mb4'},
        )

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit(True)

    def _list_tables(self) -> list[str]:
        return sorted(_text(name) for name in self._select_column_raw('SHOW TABLES'))

    def _constraints(self, table: str) -> dict[str, str]:
        """Map column -> strongest constraint (PK, then FK, then UNIQUE)."""
        rank = {PRIMARY_KEY: 0, FOREIGN_KEY: 1, UNIQUE: 2}
        found: dict[str, str] = {}
        for row in self._select_raw(_KEYS_SQL, (self.config.dbname, table)):
            column = _text(row['COLUMN_NAME'])
            if _text(row['CONSTRAINT_NAME']) == 'PRIMARY':
                kind = PRIMARY_KEY
            elif row['REFERENCED_TABLE_NAME']:
                kind = FOREIGN_KEY
            else:
                kind = UNIQUE
            if column not in found or rank[kind] < rank[found[column]]:
                found[column] = kind
        return found

    def _describe_rows(self, table: str) -> list[dict]:
        try:
            described = self._select_raw(f'DESCRIBE {self.quote_identifier(table)}')
        except pymysql.err.ProgrammingError as exc:
            if exc.args and exc.args[0] == ER_NO_SUCH_TABLE:
                return []
            raise

        constraints = self._constraints(table)
        comments = {_text(row['COLUMN_NAME']): _text(row['COLUMN_COMMENT'])
                    for row in self._select_raw(_COMMENTS_SQL, (self.config.dbname, table))}

        rows = []
        for row in described:
            column = _text(row['Field'])
            data_type, length = split_type_length(_text(row['Type']))
            constraint = constraints.get(column, '')
            if not constraint and _text(row.get('Key')) == 'UNI':
                constraint = UNIQUE
            rows.append({
                'column_name': column,
                'data_type': data_type,
                'length': length,
                'nullable': _text(row['Null']),
                'constraint_type': constraint,
                'description': comments.get(column, ''),
                'identity_info': IDENTITY if 'auto_increment' in _text(row.get('Extra')).lower() else '',
            })
        return rows

    def _list_columns(self, table: str) -> list[str]:
        return [_text(c) for c in self._select_column_raw(_COLUMNS_SQL, (self.config.dbname, table))]
