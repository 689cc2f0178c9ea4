"""
Oracle driver (python-oracledb thin mode, no Instant Client required).

Catalog queries read the connected user's `USER_*` views; unquoted
identifiers fold to upper case, so table names are upper-cased before
binding. `dbname` is the service name.
"""
import logging
from typing import TYPE_CHECKING, Any

import oracledb
import sqlalchemy as sa

from datamgr.drivers.base import DialectDriver, register_driver

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

# CLOB/NCLOB values come back as str instead of LOB locators
oracledb.defaults.fetch_lobs = False

_TABLES_SQL = 'SELECT table_name FROM user_tables ORDER BY table_name'

_DESCRIBE_SQL = """
SELECT
    col.column_name AS column_name,
    col.data_type AS data_type,
    CASE WHEN col.char_length > 0 THEN col.char_length ELSE col.data_precision END AS length,
    col.nullable AS nullable,
    (
        SELECT DECODE(MIN(DECODE(cons.constraint_type, 'P', 1, 'R', 2, 'U', 3)),
                      1, 'PRIMARY KEY', 2, 'FOREIGN KEY', 3, 'UNIQUE')
        FROM user_constraints cons
        JOIN user_cons_columns cc
            ON cons.constraint_name = cc.constraint_name
        WHERE cons.table_name = col.table_name
        AND cc.table_name = col.table_name
        AND cc.column_name = col.column_name
        AND cons.constraint_type IN ('P', 'R', 'U')
    ) AS constraint_type,
    com.comments AS description,
    CASE WHEN col.identity_column = 'YES' THEN 'IDENTITY' END AS identity_info
FROM user_tab_columns col
LEFT JOIN user_col_comments com
    ON col.table_name = com.table_name
    AND col.column_name = com.column_name
WHERE col.table_name = ?
ORDER BY col.column_id
"""

_COLUMNS_SQL = 'SELECT column_name FROM user_tab_columns WHERE table_name = ? ORDER BY column_id'

# date literals arrive as `YYYY-MM-DD HH:MM:SS`
SESSION_SQL = [
    "ALTER SESSION SET NLS_DATE_FORMAT = 'YYYY-MM-DD HH24:MI:SS'",
    "ALTER SESSION SET NLS_TIMESTAMP_FORMAT = 'YYYY-MM-DD HH24:MI:SS'",
]


@register_driver('oracle')
class OracleDriver(DialectDriver):
    """Oracle via python-oracledb.
    """

    paramstyle = 'numeric'
    ping_sql = 'SELECT 1 FROM DUAL'

    @property
    def dialect_name(self) -> str:
        return 'oracle'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user', 'dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return (oracledb.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        return sa.URL.create(
            drivername='oracle+oracledb',
            username=config.user,
            password=config.password,
            host=config.host,
            port=config.port,
            query={'service_name': config.dbname},
        )

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def configure_connection(self, raw_conn: Any) -> None:
        """Make the session accept canonical date and timestamp literals."""
        cursor = raw_conn.cursor()
        try:
            for statement in SESSION_SQL:
                cursor.execute(statement)
        finally:
            cursor.close()

    def _list_tables(self) -> list[str]:
        return self._select_column_raw(_TABLES_SQL)

    def _describe_rows(self, table: str) -> list[dict]:
        return self._select_raw(_DESCRIBE_SQL, (table.upper(),))

    def _list_columns(self, table: str) -> list[str]:
        return self._select_column_raw(_COLUMNS_SQL, (table.upper(),))
