"""
PostgreSQL driver.

Tables are listed from, and described within, the `public` schema. Table
names are lower-cased before binding since unquoted identifiers fold to
lower case. Column comments come from `pg_catalog.pg_description`; identity
is a `nextval(...)` default or an SQL-standard identity column.
"""
import logging
from typing import TYPE_CHECKING, Any

import psycopg
import sqlalchemy as sa

from datamgr.drivers.base import DialectDriver, register_driver

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

_TABLES_SQL = """
SELECT table_name
FROM information_schema.tables
WHERE table_schema = 'public'
AND table_type = 'BASE TABLE'
ORDER BY table_name
"""

_DESCRIBE_SQL = """
SELECT
    c.column_name AS column_name,
    c.data_type AS data_type,
    c.character_maximum_length AS length,
    c.is_nullable AS nullable,
    COALESCE((
        SELECT tc.constraint_type
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
            ON tc.constraint_name = kcu.constraint_name
            AND tc.table_schema = kcu.table_schema
            AND tc.table_name = kcu.table_name
        WHERE tc.table_schema = c.table_schema
        AND tc.table_name = c.table_name
        AND kcu.column_name = c.column_name
        AND tc.constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY', 'UNIQUE')
        ORDER BY CASE tc.constraint_type
            WHEN 'PRIMARY KEY' THEN 1
            WHEN 'FOREIGN KEY' THEN 2
            ELSE 3
        END
        LIMIT 1
    ), '') AS constraint_type,
    COALESCE(pgd.description, '') AS description,
    CASE
        WHEN c.column_default LIKE 'nextval%' THEN 'IDENTITY'
        WHEN c.is_identity = 'YES' THEN 'IDENTITY'
        ELSE ''
    END AS identity_info
FROM information_schema.columns c
LEFT JOIN pg_catalog.pg_statio_all_tables st
    ON st.schemaname = c.table_schema
    AND st.relname = c.table_name
LEFT JOIN pg_catalog.pg_description pgd
    ON pgd.objoid = st.relid
    AND pgd.objsubid = c.ordinal_position
WHERE c.table_schema = 'public'
AND c.table_name = ?
ORDER BY c.ordinal_position
"""

_COLUMNS_SQL = """
SELECT column_name
FROM information_schema.columns
WHERE table_schema = 'public'
AND table_name = ?
ORDER BY ordinal_position
"""


@register_driver('postgresql')
class PostgresDriver(DialectDriver):
    """PostgreSQL via psycopg 3.
    """

    paramstyle = 'format'

    @property
    def dialect_name(self) -> str:
        return 'postgresql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user', 'dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return (psycopg.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=config.user,
            password=config.password,
            host=config.host,
            port=config.port,
            database=config.dbname,
        )

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def _list_tables(self) -> list[str]:
        return self._select_column_raw(_TABLES_SQL)

    def _describe_rows(self, table: str) -> list[dict]:
        return self._select_raw(_DESCRIBE_SQL, (table.lower(),))

    def _list_columns(self, table: str) -> list[str]:
        return self._select_column_raw(_COLUMNS_SQL, (table.lower(),))
