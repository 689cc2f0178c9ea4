"""
Dialect driver factory.

The Dameng driver needs the vendor's native `dmPython` client. When it is not
installed the `dameng` tag is bound to a stub that reports
`UnsupportedOnPlatform`, so exactly one of the two is ever registered.
"""
from importlib.util import find_spec

from datamgr.drivers.base import _DRIVER_REGISTRY
from datamgr.drivers.base import DialectDriver as DialectDriver
from datamgr.drivers.base import register_driver as register_driver
from datamgr.drivers.mysql import MySQLDriver as MySQLDriver
from datamgr.drivers.oracle import OracleDriver as OracleDriver
from datamgr.drivers.postgres import PostgresDriver as PostgresDriver
from datamgr.drivers.sqlite import SQLiteDriver as SQLiteDriver
from datamgr.drivers.sqlserver import SQLServerDriver as SQLServerDriver
from datamgr.drivers.unsupported import UnsupportedDriver as UnsupportedDriver
from datamgr.exceptions import UnsupportedDialect

if find_spec('dmPython') is not None:
    from datamgr.drivers.dameng import DamengDriver as DamengDriver
else:
    register_driver('dameng')(UnsupportedDriver.for_dialect('dameng', 'dmPython'))

_ALIASES = {'mssql': 'sqlserver', 'postgres': 'postgresql', 'dm': 'dameng'}


def resolve_dialect(dialect: str) -> str:
    """Lower-case a dialect tag and resolve aliases."""
    tag = (dialect or '').strip().lower()
    return _ALIASES.get(tag, tag)


def get_available_dialects() -> list[str]:
    """Return list of registered dialect tags."""
    return list(_DRIVER_REGISTRY.keys())


def is_supported_dialect(dialect: str) -> bool:
    """Check if a dialect is registered (stubs included)."""
    return resolve_dialect(dialect) in _DRIVER_REGISTRY


def get_driver_class(dialect: str) -> type[DialectDriver]:
    """Get the driver class for a dialect without instantiating.

    Raises
        UnsupportedDialect: no driver registered for the tag
    """
    tag = resolve_dialect(dialect)
    if tag not in _DRIVER_REGISTRY:
        available = get_available_dialects()
        raise UnsupportedDialect(f'unsupported database type: {dialect} (available: {available})')
    return _DRIVER_REGISTRY[tag]
