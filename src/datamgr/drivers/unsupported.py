"""
Stand-in for a driver whose native client is not installed.
"""
from typing import Any, ClassVar

from datamgr.drivers.base import DialectDriver
from datamgr.exceptions import UnsupportedOnPlatform


class UnsupportedDriver(DialectDriver):
    """Driver that fails every operation with `UnsupportedOnPlatform`.

    The registry checks `available` and never instantiates a stub; building
    one directly still cannot reach a database.
    """

    available: ClassVar[bool] = False
    dialect: ClassVar[str] = 'unsupported'
    requirement: ClassVar[str] = ''

    @classmethod
    def for_dialect(cls, dialect: str, requirement: str) -> type['UnsupportedDriver']:
        """Create a stub class bound to a dialect tag."""
        name = f'Unsupported{dialect.title()}Driver'
        return type(name, (cls,), {'dialect': dialect, 'requirement': requirement})

    @classmethod
    def unsupported_error(cls) -> UnsupportedOnPlatform:
        hint = f' (install the {cls.requirement} client)' if cls.requirement else ''
        return UnsupportedOnPlatform(f'{cls.dialect} is not supported on this platform{hint}')

    @property
    def dialect_name(self) -> str:
        return self.dialect

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['host', 'user', 'dbname']

    @classmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        return ()

    def build_connection_url(self, config):
        raise self.unsupported_error()

    def enable_autocommit(self, raw_conn: Any) -> None:
        raise self.unsupported_error()

    def connect(self) -> None:
        raise self.unsupported_error()

    def disconnect(self) -> None:
        raise self.unsupported_error()

    def query_with_params(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        raise self.unsupported_error()

    def execute_with_params(self, sql: str, *args: Any) -> int:
        raise self.unsupported_error()

    def get_tables(self) -> list[str]:
        raise self.unsupported_error()

    def describe_table(self, table: str, bypass_cache: bool = False):
        raise self.unsupported_error()

    def get_table_columns(self, table: str, bypass_cache: bool = False) -> list[str]:
        raise self.unsupported_error()

    def _list_tables(self) -> list[str]:
        raise self.unsupported_error()

    def _describe_rows(self, table: str) -> list[dict]:
        raise self.unsupported_error()
