"""
Dameng (DM) driver.

Talks to the server through the vendor's `dmPython` DBAPI module directly;
there is no SQLAlchemy dialect for it. Catalog queries mirror Oracle's
`USER_*` views and upper-case table names before binding. This module is
only imported when `dmPython` is installed.
"""
import logging
from typing import TYPE_CHECKING, Any

import dmPython

from datamgr.drivers.base import DialectDriver, register_driver

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

_TABLES_SQL = 'SELECT TABLE_NAME FROM USER_TABLES ORDER BY TABLE_NAME'

_DESCRIBE_SQL = """
SELECT
    C.COLUMN_NAME AS COLUMN_NAME,
    C.DATA_TYPE AS DATA_TYPE,
    C.DATA_LENGTH AS LENGTH,
    C.NULLABLE AS NULLABLE,
    (
        SELECT DECODE(MIN(DECODE(UC.CONSTRAINT_TYPE, 'P', 1, 'R', 2, 'U', 3)),
                      1, 'PRIMARY KEY', 2, 'FOREIGN KEY', 3, 'UNIQUE')
        FROM USER_CONSTRAINTS UC
        JOIN USER_CONS_COLUMNS CC
            ON CC.CONSTRAINT_NAME = UC.CONSTRAINT_NAME
        WHERE UC.TABLE_NAME = C.TABLE_NAME
        AND CC.COLUMN_NAME = C.COLUMN_NAME
        AND UC.CONSTRAINT_TYPE IN ('P', 'R', 'U')
    ) AS CONSTRAINT_TYPE,
    NVL((
        SELECT COMMENTS FROM USER_COL_COMMENTS
        WHERE TABLE_NAME = C.TABLE_NAME AND COLUMN_NAME = C.COLUMN_NAME
    ), '') AS DESCRIPTION,
    CASE WHEN C.DATA_TYPE LIKE '%IDENTITY%' THEN 'IDENTITY' ELSE '' END AS IDENTITY_INFO
FROM USER_TAB_COLUMNS C
WHERE C.TABLE_NAME = ?
ORDER BY C.COLUMN_ID
"""

_COLUMNS_SQL = 'SELECT COLUMN_NAME FROM USER_TAB_COLUMNS WHERE TABLE_NAME = ? ORDER BY COLUMN_ID'


@register_driver('dameng')
class DamengDriver(DialectDriver):
    """Dameng via dmPython.
    """

    ping_sql = 'SELECT 1 FROM DUAL'

    @property
    def dialect_name(self) -> str:
        return 'dameng'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return (dmPython.Error,)

    def build_connection_url(self, config: 'ConnectionConfig') -> dict[str, Any]:
        """dmPython.connect keyword arguments (no SQLAlchemy URL exists)."""
        params = {
            'user': config.user,
            'password': config.password,
            'server': config.host,
            'port': config.port,
        }
        if config.dbname:
            params['schema'] = config.dbname
        return params

    def _open(self) -> Any:
        return dmPython.connect(**self.build_connection_url(self.config))

    def _close(self) -> None:
        if self.dbapi_connection is not None:
            self.dbapi_connection.close()

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autoCommit = True

    def _list_tables(self) -> list[str]:
        return self._select_column_raw(_TABLES_SQL)

    def _describe_rows(self, table: str) -> list[dict]:
        return self._select_raw(_DESCRIBE_SQL, (table.upper(),))

    def _list_columns(self, table: str) -> list[str]:
        return self._select_column_raw(_COLUMNS_SQL, (table.upper(),))
