from dataclasses import asdict, dataclass, replace
from typing import Any, Self

from datamgr.drivers import get_available_dialects
from datamgr.drivers import is_supported_dialect, resolve_dialect
from datamgr.exceptions import UnsupportedDialect

__all__ = ['ConnectionConfig', 'DEFAULT_PORTS', 'CONFIG_FIELDS']

DEFAULT_PORTS = {
    'dameng': 5236,
    'mysql': 3306,
    'postgresql': 5432,
    'sqlserver': 1433,
    'oracle': 1521,
    'sqlite': 0,
}

# Persisted JSON keys, in file order.
CONFIG_FIELDS = ('type', 'host', 'port', 'user', 'password', 'dbname')


@dataclass(frozen=True)
class ConnectionConfig:
    """Connection parameters for one database.

    supported types: `dameng`, `mysql`, `postgresql`, `sqlserver` (alias
    `mssql`), `oracle`, `sqlite`

    For `sqlite`, `dbname` is the database file path and the network fields
    are ignored. A zero port is replaced with the dialect's default.
    Required fields are checked per driver when connecting, so partial
    configs can be persisted and edited.
    """
    type: str = 'dameng'
    host: str = 'localhost'
    port: int = 0
    user: str = ''
    password: str = ''
    dbname: str = ''

    def __post_init__(self):
        tag = resolve_dialect(self.type)
        if not is_supported_dialect(tag):
            available = get_available_dialects()
            raise UnsupportedDialect(f'unsupported database type: {self.type} (available: {available})')
        object.__setattr__(self, 'type', tag)
        if not isinstance(self.port, int):
            object.__setattr__(self, 'port', int(self.port))
        if not self.port:
            object.__setattr__(self, 'port', DEFAULT_PORTS.get(tag, 0))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from a mapping holding (a subset of) the persisted keys."""
        return cls(**{k: data[k] for k in CONFIG_FIELDS if data.get(k) is not None})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def redacted(self) -> Self:
        """Copy safe for display, with the password masked."""
        return replace(self, password='******' if self.password else '')

    def __str__(self) -> str:
        if self.type == 'sqlite':
            return f'{self.type}:{self.dbname}'
        return f'{self.type}://{self.user}@{self.host}:{self.port}/{self.dbname}'
