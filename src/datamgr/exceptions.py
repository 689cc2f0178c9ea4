"""
Error kinds raised by the data-management core.

Every error surfaced to callers derives from `DataMgrError`, so the shell can
catch one class and print a single-line message. Driver-level exceptions are
wrapped (never swallowed) with `raise ... from exc`, keeping the driver
message verbatim in `str(err)`.
"""


class DataMgrError(Exception):
    """Base class for all datamgr errors.
    """


class NotConnected(DataMgrError):
    """Operation issued with no active driver.
    """

    def __init__(self, message: str = 'not connected to any database') -> None:
        super().__init__(message)


class AlreadyConnected(DataMgrError):
    """Registry slot is occupied; disconnect first.
    """


class UnsupportedDialect(DataMgrError):
    """No driver is registered for the requested dialect tag.
    """


class UnsupportedOnPlatform(DataMgrError):
    """Driver exists but cannot run on this platform/build.
    """


class ConnectFailed(DataMgrError):
    """Transport, authentication, or round-trip check failure.
    """


class QueryFailed(DataMgrError):
    """Driver error while running a row-returning statement.
    """


class ExecuteFailed(DataMgrError):
    """Driver error while running a row-count statement.
    """


class TableNotFound(DataMgrError):
    """Catalog returned no columns for the table.
    """


class FileNotFound(DataMgrError):
    """Import source file does not exist.
    """


class FileFormatError(DataMgrError):
    """File could not be parsed as the requested format, or holds no data.
    """


class UpsertNeedsPrimaryKey(DataMgrError):
    """UPSERT import requested for a table without a single-column primary key.
    """


class PrimaryKeyColumnMissingInFile(DataMgrError):
    """UPSERT import requested but no file header maps to the primary key.
    """


class NoDefaultConfig(DataMgrError):
    """No persisted default configuration exists.
    """


class ConfigCorrupt(DataMgrError):
    """Persisted configuration exists but cannot be decoded.
    """
