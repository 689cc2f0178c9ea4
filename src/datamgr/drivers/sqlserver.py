"""
SQL Server driver.

Catalog queries are scoped to the configured database through
`TABLE_CATALOG`. Column comments are the `MS_Description` extended
properties; identity comes from `COLUMNPROPERTY(..., 'IsIdentity')`.

ODBC Driver 18 or newer is expected; set `DATAMGR_ODBC_DRIVER` to use a
different installed driver.
"""
import logging
import os
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from datamgr.drivers.base import DialectDriver, register_driver

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

DEFAULT_ODBC_DRIVER = 'ODBC Driver 18 for SQL Server'

_TABLES_SQL = """
SELECT TABLE_NAME
FROM INFORMATION_SCHEMA.TABLES
WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_CATALOG = ?
ORDER BY TABLE_NAME
"""

_DESCRIBE_SQL = """
SELECT
    c.COLUMN_NAME AS column_name,
    c.DATA_TYPE AS data_type,
    COALESCE(c.CHARACTER_MAXIMUM_LENGTH, c.NUMERIC_PRECISION) AS length,
    c.IS_NULLABLE AS nullable,
    COALESCE((
        SELECT TOP 1 tc.CONSTRAINT_TYPE
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
        JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
            ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
            AND tc.TABLE_SCHEMA = ku.TABLE_SCHEMA
            AND tc.TABLE_NAME = ku.TABLE_NAME
        WHERE ku.TABLE_CATALOG = c.TABLE_CATALOG
        AND ku.TABLE_SCHEMA = c.TABLE_SCHEMA
        AND ku.TABLE_NAME = c.TABLE_NAME
        AND ku.COLUMN_NAME = c.COLUMN_NAME
        AND tc.CONSTRAINT_TYPE IN ('PRIMARY KEY', 'FOREIGN KEY', 'UNIQUE')
        ORDER BY CASE tc.CONSTRAINT_TYPE
            WHEN 'PRIMARY KEY' THEN 1
            WHEN 'FOREIGN KEY' THEN 2
            ELSE 3
        END
    ), '') AS constraint_type,
    COALESCE(CAST(ep.value AS NVARCHAR(4000)), '') AS description,
    CASE
        WHEN COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                            c.COLUMN_NAME, 'IsIdentity') = 1 THEN 'IDENTITY'
        ELSE ''
    END AS identity_info
FROM INFORMATION_SCHEMA.COLUMNS c
LEFT JOIN sys.extended_properties ep
    ON ep.class = 1
    AND ep.name = 'MS_Description'
    AND ep.major_id = OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME))
    AND ep.minor_id = COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                                     c.COLUMN_NAME, 'ColumnId')
WHERE c.TABLE_CATALOG = ? AND c.TABLE_NAME = ?
ORDER BY c.ORDINAL_POSITION
"""

_COLUMNS_SQL = """
SELECT COLUMN_NAME
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_CATALOG = ? AND TABLE_NAME = ?
ORDER BY ORDINAL_POSITION
"""


@register_driver('sqlserver')
class SQLServerDriver(DialectDriver):
    """SQL Server via pyodbc.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlserver'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user', 'dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        # pyodbc links against the unixODBC runtime; import on first use
        import pyodbc
        return (pyodbc.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        return sa.URL.create(
            drivername='mssql+pyodbc',
            username=config.user,
            password=config.password,
            host=config.host,
            port=config.port,
            database=config.dbname,
            query={
                'driver': os.getenv('DATAMGR_ODBC_DRIVER', DEFAULT_ODBC_DRIVER),
                'TrustServerCertificate': 'yes',
            },
        )

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def _list_tables(self) -> list[str]:
        return self._select_column_raw(_TABLES_SQL, (self.config.dbname,))

    def _describe_rows(self, table: str) -> list[dict]:
        return self._select_raw(_DESCRIBE_SQL, (self.config.dbname, table))

    def _list_columns(self, table: str) -> list[str]:
        return self._select_column_raw(_COLUMNS_SQL, (self.config.dbname, table))
