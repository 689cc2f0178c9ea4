"""
Shared value types: driver state, column descriptors, and the small
enumerations used by the import/export engines.
"""
from dataclasses import asdict, dataclass
from enum import Enum, StrEnum
from typing import Any, Self

PRIMARY_KEY = 'PRIMARY KEY'
FOREIGN_KEY = 'FOREIGN KEY'
UNIQUE = 'UNIQUE'
IDENTITY = 'IDENTITY'

# Literal some catalogs and older exports use for a missing comment.
NIL_MARKER = '<nil>'

DESCRIPTOR_FIELDS = (
    'column_name',
    'data_type',
    'length',
    'nullable',
    'constraint_type',
    'description',
    'identity_info',
)


class DriverState(Enum):
    """Lifecycle of a dialect driver."""
    UNCONNECTED = 'unconnected'
    CONNECTED = 'connected'
    CLOSED = 'closed'


class ImportMode(StrEnum):
    INSERT = 'insert'
    UPSERT = 'upsert'


class FileFormat(StrEnum):
    CSV = 'csv'
    XLSX = 'xlsx'

    @classmethod
    def parse(cls, value: 'str | FileFormat | None') -> 'FileFormat | None':
        """Accept `csv`, `excel` or `xlsx` (any case); None passes through.
        """
        if value is None or isinstance(value, FileFormat):
            return value
        tag = value.strip().lower()
        if tag in {'excel', 'xlsx'}:
            return cls.XLSX
        if tag == 'csv':
            return cls.CSV
        raise ValueError(f'unsupported file format: {value} (expected csv or excel)')


class TypeClass(Enum):
    """Coarse classification of a column's declared data type."""
    INTEGER = 'integer'
    NUMERIC = 'numeric'
    DATETIME = 'datetime'
    TEXT = 'text'


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    """Normalized `describe_table` row.

    Values other than `column_name`, `constraint_type`, `description` and
    `identity_info` are passed through from the catalog as returned.
    """
    column_name: str
    data_type: Any = None
    length: Any = None
    nullable: Any = None
    constraint_type: str = ''
    description: str = ''
    identity_info: str = ''

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        """Build from a catalog row whose keys may be upper or lower case.
        """
        lowered = {str(k).lower(): v for k, v in row.items()}
        values = {}
        for field in DESCRIPTOR_FIELDS:
            value = lowered.get(field)
            if isinstance(value, bytes):
                value = value.decode('utf-8', errors='replace')
            if field in {'column_name', 'constraint_type', 'description', 'identity_info'}:
                value = '' if value is None else str(value)
            values[field] = value
        return cls(**values)

    @property
    def is_primary_key(self) -> bool:
        return PRIMARY_KEY in self.constraint_type.upper()

    @property
    def is_identity(self) -> bool:
        return IDENTITY in self.identity_info.upper()

    @property
    def has_description(self) -> bool:
        return bool(self.description) and self.description != NIL_MARKER

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
