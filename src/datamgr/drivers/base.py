"""
Base driver interface for dialect-specific database access.

Every dialect driver owns one physical connection and exposes the same
operation set: connect, disconnect, query, execute, list tables, describe a
table and list its columns in declared order. Concrete drivers supply the
connection URL, the autocommit switch, the DBAPI error classes and the
catalog SQL; the shared lifecycle, cursor handling, placeholder rewriting and
value normalization live here.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ClassVar

import sqlalchemy as sa
from sqlalchemy.pool import NullPool

from datamgr.cache import cacheable_driver
from datamgr.exceptions import AlreadyConnected, ConnectFailed, DataMgrError
from datamgr.exceptions import ExecuteFailed, NotConnected, QueryFailed
from datamgr.exceptions import TableNotFound, UnsupportedOnPlatform
from datamgr.normalize import normalize_row
from datamgr.sql import convert_placeholders
from datamgr.sql import quote_identifier as sql_quote_identifier
from datamgr.types import ColumnDescriptor, DriverState

if TYPE_CHECKING:
    from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)

# Registry of dialect tag -> driver class
# Defined here to avoid circular imports (concrete drivers import from base)
_DRIVER_REGISTRY: dict[str, type['DialectDriver']] = {}


def register_driver(*dialects: str):
    """Decorator to register a driver class for one or more dialect tags.

    Usage:
        @register_driver('dameng')
        class DamengDriver(DialectDriver):
            ...
    """
    def decorator(cls: type['DialectDriver']) -> type['DialectDriver']:
        for dialect in dialects:
            _DRIVER_REGISTRY[dialect] = cls
        return cls
    return decorator


class DialectDriver(ABC):
    """Base class for dialect drivers.
    """

    #: False for stubs standing in for a driver this build cannot load
    available: ClassVar[bool] = True
    #: DBAPI paramstyle; callers always write `?`
    paramstyle: ClassVar[str] = 'qmark'
    #: Round-trip statement used to validate a fresh connection
    ping_sql: ClassVar[str] = 'SELECT 1'

    def __init__(self, config: 'ConnectionConfig') -> None:
        self.config = config
        self.engine = None
        self.sa_connection = None
        self.dbapi_connection = None
        self._state = DriverState.UNCONNECTED

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.config.redacted()}, state={self._state.value})'

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect tag (e.g., 'postgresql', 'sqlite')."""

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required ConnectionConfig field names for this dialect.
        """

    @classmethod
    def validate_options(cls, config: 'ConnectionConfig') -> None:
        """Validate a config for this dialect.

        Raises
            ValueError: If any required field is empty
        """
        for field in cls.get_required_options():
            if not getattr(config, field):
                raise ValueError(f'field {field} cannot be empty for {config.type}')

    @classmethod
    def unsupported_error(cls) -> UnsupportedOnPlatform:
        """Error raised when `available` is False."""
        return UnsupportedOnPlatform(f'{cls.__name__} is not supported on this platform')

    @classmethod
    @abstractmethod
    def error_types(cls) -> tuple[type[Exception], ...]:
        """DBAPI exception classes wrapped into datamgr errors."""

    @abstractmethod
    def build_connection_url(self, config: 'ConnectionConfig') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.
        """

    def get_engine_kwargs(self, config: 'ConnectionConfig') -> dict[str, Any]:
        """Return extra SQLAlchemy create_engine kwargs for this dialect."""
        return {}

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode on a raw DBAPI connection.

        Every statement is independent; imports never roll back.
        """

    def configure_connection(self, raw_conn: Any) -> None:
        """Hook for dialect session settings run right after connecting."""

    def quote_identifier(self, identifier: str) -> str:
        return sql_quote_identifier(identifier, self.dialect_name)

    # Lifecycle

    def _open(self) -> Any:
        """Open the physical connection and return the raw DBAPI connection.
        """
        url = self.build_connection_url(self.config)
        engine_kwargs = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(self.get_engine_kwargs(self.config))
        self.engine = sa.create_engine(url, **engine_kwargs)
        self.sa_connection = self.engine.connect()
        return self.sa_connection.connection.driver_connection

    def _close(self) -> None:
        """Close the physical connection and release the engine."""
        try:
            if self.sa_connection is not None:
                self.sa_connection.close()
        finally:
            if self.engine is not None:
                self.engine.dispose()

    def connect(self) -> None:
        """Open the connection, enable autocommit and validate with a round-trip.

        Raises
            AlreadyConnected: driver is already connected
            NotConnected: driver was closed (closed drivers cannot reconnect)
            ConnectFailed: transport, authentication or round-trip failure
        """
        if self._state == DriverState.CONNECTED:
            raise AlreadyConnected(f'{self.dialect_name} driver is already connected')
        if self._state == DriverState.CLOSED:
            raise NotConnected(f'{self.dialect_name} driver is closed')

        logger.debug(f'Connecting to {self.config.redacted()}')
        try:
            self.dbapi_connection = self._open()
            self.enable_autocommit(self.dbapi_connection)
            self.configure_connection(self.dbapi_connection)
            self._ping()
        except (sa.exc.SQLAlchemyError, *self.error_types(), OSError) as exc:
            self._discard()
            raise ConnectFailed(f'failed to connect to {self.dialect_name}: {exc}') from exc

        self._state = DriverState.CONNECTED
        logger.info(f'Connected to {self.config.redacted()}')

    def _ping(self) -> None:
        cursor = self.dbapi_connection.cursor()
        try:
            cursor.execute(self.ping_sql)
            cursor.fetchall()
        finally:
            cursor.close()

    def _discard(self) -> None:
        """Best-effort cleanup after a failed connect."""
        try:
            self._close()
        except Exception as exc:
            logger.debug(f'Error discarding failed {self.dialect_name} connection: {exc}')
        self.engine = self.sa_connection = self.dbapi_connection = None

    def disconnect(self) -> None:
        """Close the connection. The driver is terminal afterwards.

        Raises
            NotConnected: driver is not connected
            DataMgrError: driver-level close error (driver is still closed)
        """
        self._require_connected()
        try:
            self._close()
        except (sa.exc.SQLAlchemyError, *self.error_types()) as exc:
            raise DataMgrError(f'error closing {self.dialect_name} connection: {exc}') from exc
        finally:
            self.engine = self.sa_connection = self.dbapi_connection = None
            self._state = DriverState.CLOSED
            logger.debug(f'Disconnected from {self.config.redacted()}')

    def _require_connected(self) -> None:
        if self._state != DriverState.CONNECTED:
            raise NotConnected()

    # Statement execution

    @contextmanager
    def _cursor(self, sql: str, params: tuple | None = None):
        """Context manager for cursor lifecycle with placeholder rewriting.

        `?` placeholders are rewritten only when parameters are bound, so raw
        statements reach the server verbatim.
        """
        self._require_connected()
        cursor = self.dbapi_connection.cursor()
        try:
            if params:
                sql = convert_placeholders(sql, self.paramstyle, escape_percent=True)
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            yield cursor
        finally:
            cursor.close()

    def _select_raw(self, sql: str, params: tuple | None = None) -> list[dict]:
        """Execute SQL and return raw (un-normalized) rows as dicts.
        """
        with self._cursor(sql, params) as cursor:
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def _select_column_raw(self, sql: str, params: tuple | None = None) -> list:
        """Execute SQL and return the first column as a list.
        """
        with self._cursor(sql, params) as cursor:
            return [row[0] for row in cursor.fetchall()]

    def _execute_raw(self, sql: str, params: tuple | None = None) -> int:
        with self._cursor(sql, params) as cursor:
            return cursor.rowcount

    def query(self, sql: str) -> list[dict[str, Any]]:
        """Run a row-returning statement.

        Returns
            Rows as dicts in result-column order, every cell normalized
        """
        return self.query_with_params(sql)

    def query_with_params(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """Run a row-returning statement with `?` placeholders bound to args.
        """
        self._require_connected()
        logger.debug(f'query: {sql} {args}')
        try:
            rows = self._select_raw(sql, args)
        except self.error_types() as exc:
            raise QueryFailed(str(exc)) from exc
        return [normalize_row(row) for row in rows]

    def execute(self, sql: str) -> int:
        """Run a row-count statement and return the affected row count.
        """
        return self.execute_with_params(sql)

    def execute_with_params(self, sql: str, *args: Any) -> int:
        """Run a row-count statement with `?` placeholders bound to args.
        """
        self._require_connected()
        logger.debug(f'execute: {sql} {args}')
        try:
            return self._execute_raw(sql, args)
        except self.error_types() as exc:
            raise ExecuteFailed(str(exc)) from exc

    # Catalog

    @abstractmethod
    def _list_tables(self) -> list[str]:
        """Catalog query for table names in deterministic order."""

    @abstractmethod
    def _describe_rows(self, table: str) -> list[dict]:
        """Catalog query yielding ColumnDescriptor keys in declared order."""

    def _list_columns(self, table: str) -> list[str]:
        """Catalog query for column names in declared order.

        Default derives the names from the describe output.
        """
        return [col.column_name for col in self.describe_table(table)]

    def get_tables(self) -> list[str]:
        """List table names in deterministic order.
        """
        self._require_connected()
        try:
            return [str(name) for name in self._list_tables()]
        except self.error_types() as exc:
            raise QueryFailed(str(exc)) from exc

    @cacheable_driver('describe_table', ttl=300, maxsize=50)
    def describe_table(self, table: str) -> list[ColumnDescriptor]:
        """Describe a table's columns in declared order.

        Args:
            table: Table name as typed by the user; case folding is the
                driver's job
            bypass_cache: If True, query the catalog directly

        Raises
            TableNotFound: catalog returned no columns
        """
        self._require_connected()
        try:
            rows = self._describe_rows(table)
        except self.error_types() as exc:
            raise QueryFailed(str(exc)) from exc
        if not rows:
            raise TableNotFound(f'table {table} does not exist or has no columns')
        return [ColumnDescriptor.from_row(row) for row in rows]

    @cacheable_driver('table_columns', ttl=300, maxsize=50)
    def get_table_columns(self, table: str) -> list[str]:
        """List a table's column names in declared order.

        Args:
            table: Table name
            bypass_cache: If True, query the catalog directly
        """
        self._require_connected()
        try:
            columns = self._list_columns(table)
        except self.error_types() as exc:
            raise QueryFailed(str(exc)) from exc
        if not columns:
            raise TableNotFound(f'table {table} does not exist or has no columns')
        return [str(c) for c in columns]
