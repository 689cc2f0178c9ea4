"""
Multi-dialect data management: one connection abstraction over Dameng,
MySQL, PostgreSQL, SQL Server, Oracle and SQLite, plus bulk CSV/XLSX import
and export.

Operations can be called either on a driver or through the module facades,
which act on the registry's current connection:

    datamgr.connect(ConnectionConfig(type='sqlite', dbname='app.db'))
    datamgr.query('SELECT * FROM t WHERE id = ?', 1)
    datamgr.import_table('t', 'rows.csv', mode='upsert')
"""
__version__ = '0.3.0'

from typing import Any

from datamgr.drivers import DialectDriver
from datamgr.exceptions import AlreadyConnected, ConfigCorrupt, ConnectFailed
from datamgr.exceptions import DataMgrError, ExecuteFailed, FileFormatError
from datamgr.exceptions import FileNotFound, NoDefaultConfig, NotConnected
from datamgr.exceptions import PrimaryKeyColumnMissingInFile, QueryFailed
from datamgr.exceptions import TableNotFound, UnsupportedDialect
from datamgr.exceptions import UnsupportedOnPlatform, UpsertNeedsPrimaryKey
from datamgr.exporter import ExportResult
from datamgr.exporter import export_table as _export_table
from datamgr.importer import ImportResult
from datamgr.importer import import_table as _import_table
from datamgr.options import ConnectionConfig
from datamgr.registry import registry
from datamgr.types import ColumnDescriptor, FileFormat, ImportMode


def connect(config: ConnectionConfig) -> DialectDriver:
    """Connect and install the driver as the current connection.
    """
    return registry.connect(config)


def disconnect() -> None:
    registry.disconnect()


def get_current_connection() -> DialectDriver:
    return registry.get_current_connection()


def get_current_config() -> ConnectionConfig:
    return registry.get_current_config()


def query(sql: str, *args: Any) -> list[dict[str, Any]]:
    """Run a row-returning statement on the current connection.
    """
    return registry.get_current_connection().query_with_params(sql, *args)


def execute(sql: str, *args: Any) -> int:
    """Run a row-count statement on the current connection.
    """
    return registry.get_current_connection().execute_with_params(sql, *args)


def get_tables() -> list[str]:
    return registry.get_current_connection().get_tables()


def describe_table(table: str) -> list[ColumnDescriptor]:
    return registry.get_current_connection().describe_table(table)


def get_table_columns(table: str) -> list[str]:
    return registry.get_current_connection().get_table_columns(table)


def import_table(table: str, path: str, format: str | FileFormat | None = None,
                 mode: str | ImportMode = ImportMode.INSERT) -> ImportResult:
    """Import a CSV/XLSX file into a table of the current connection.
    """
    return _import_table(registry.get_current_connection(), table, path, format=format, mode=mode)


def export_table(table: str, path: str, where: str | None = None,
                 format: str | FileFormat | None = None) -> ExportResult:
    """Export a table of the current connection to CSV/XLSX.
    """
    return _export_table(registry.get_current_connection(), table, path, where=where, format=format)
