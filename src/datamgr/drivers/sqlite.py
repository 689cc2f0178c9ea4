"""
SQLite driver.

`dbname` is the database file path. Metadata comes from the `pragma_*`
table-valued functions. SQLite has no column comments, so descriptions are
always empty; a lone `INTEGER PRIMARY KEY` (rowid alias) is reported as an
identity column.
"""
import logging
import re
import sqlite3
from typing import TYPE_CHECKING, Any

import dateutil.parser
import sqlalchemy as sa

from datamgr.drivers.base import DialectDriver, register_driver

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

_DECLARED_LENGTH = re.compile(r'\(\s*(\d+)\s*(?:,\s*\d+\s*)?\)')

_TABLES_SQL = """
SELECT name FROM sqlite_master
WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
ORDER BY name
"""

_DESCRIBE_SQL = """
SELECT
    p.name AS column_name,
    p.type AS data_type,
    CASE WHEN p."notnull" THEN 'NO' ELSE 'YES' END AS nullable,
    CASE
        WHEN p.pk > 0 THEN 'PRIMARY KEY'
        WHEN EXISTS (
            SELECT 1 FROM pragma_foreign_key_list(?) f WHERE f."from" = p.name
        ) THEN 'FOREIGN KEY'
        WHEN EXISTS (
            SELECT 1 FROM pragma_index_list(?) il
            JOIN pragma_index_info(il.name) ii
            WHERE il."unique" = 1
            AND il.origin <> 'pk'
            AND ii.name = p.name
            AND (SELECT COUNT(*) FROM pragma_index_info(il.name)) = 1
        ) THEN 'UNIQUE'
        ELSE ''
    END AS constraint_type,
    '' AS description,
    CASE
        WHEN p.pk = 1 AND upper(p.type) = 'INTEGER'
            AND (SELECT COUNT(*) FROM pragma_table_info(?) WHERE pk > 0) = 1
        THEN 'IDENTITY'
        ELSE ''
    END AS identity_info
FROM pragma_table_info(?) p
ORDER BY p.cid
"""

_COLUMNS_SQL = 'SELECT name FROM pragma_table_info(?) ORDER BY cid'


def convert_date(val: bytes) -> Any:
    """Convert ISO 8601 date text to a date; unparseable text stays text."""
    text = val.decode()
    try:
        return dateutil.parser.isoparse(text).date()
    except ValueError:
        return text


def convert_datetime(val: bytes) -> Any:
    """Convert ISO 8601 date-time text to a datetime; unparseable text stays text."""
    text = val.decode()
    try:
        return dateutil.parser.isoparse(text)
    except ValueError:
        return text


@register_driver('sqlite')
class SQLiteDriver(DialectDriver):
    """SQLite via the standard library sqlite3 module.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return (sqlite3.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        return sa.URL.create(drivername='sqlite', database=config.dbname)

    def get_engine_kwargs(self, config: 'ConnectionConfig') -> dict[str, Any]:
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        }

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.isolation_level = None

    def configure_connection(self, raw_conn: Any) -> None:
        """Register date converters and enforce foreign keys."""
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)
        raw_conn.execute('PRAGMA foreign_keys = ON')

    def _list_tables(self) -> list[str]:
        return self._select_column_raw(_TABLES_SQL)

    def _describe_rows(self, table: str) -> list[dict]:
        rows = self._select_raw(_DESCRIBE_SQL, (table,) * 4)
        for row in rows:
            match = _DECLARED_LENGTH.search(row['data_type'] or '')
            row['length'] = int(match.group(1)) if match else None
        return rows

    def _list_columns(self, table: str) -> list[str]:
        return self._select_column_raw(_COLUMNS_SQL, (table,))
