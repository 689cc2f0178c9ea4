"""
Schema mapping from `describe_table` output.

The mapper answers the questions import and export ask about a table: which
column a file header names (by column name or by comment, case-insensitive),
which column is the primary key, which columns the engine generates, and how
each column's declared type should be coerced.
"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Self

from datamgr.types import ColumnDescriptor, TypeClass

logger = logging.getLogger(__name__)

_INTEGER_MARKERS = ('INT', 'NUMBER')
_NUMERIC_MARKERS = ('DEC', 'NUMERIC', 'FLOAT', 'DOUBLE', 'REAL', 'MONEY')
_DATETIME_MARKERS = ('DATE', 'TIME')


def classify_type(data_type: object) -> TypeClass:
    """Classify a declared data type by upper-case substring.

    >>> classify_type('bigint')
    <TypeClass.INTEGER: 'integer'>
    >>> classify_type('timestamp without time zone')
    <TypeClass.DATETIME: 'datetime'>
    """
    spelled = str(data_type or '').upper()
    if any(marker in spelled for marker in _INTEGER_MARKERS):
        return TypeClass.INTEGER
    if any(marker in spelled for marker in _NUMERIC_MARKERS):
        return TypeClass.NUMERIC
    if any(marker in spelled for marker in _DATETIME_MARKERS):
        return TypeClass.DATETIME
    return TypeClass.TEXT


def _key(text: str) -> str:
    return text.strip().upper()


@dataclass
class SchemaMapper:
    """Lookups derived from one table's column descriptors.

    Attributes
        field_map: upper-cased column name or comment -> column name
        primary_key: the single primary-key column, or '' (none or composite)
        composite_primary_key: True when more than one column is in the key
        identity_columns: columns whose values the engine generates
        columns: column names in declared order
    """
    field_map: dict[str, str] = field(default_factory=dict)
    primary_key: str = ''
    composite_primary_key: bool = False
    identity_columns: set[str] = field(default_factory=set)
    columns: list[str] = field(default_factory=list)
    _types: dict[str, TypeClass] = field(default_factory=dict, repr=False)
    _descriptions: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_columns(cls, descriptors: Iterable[ColumnDescriptor]) -> Self:
        mapper = cls()
        keys = []
        for col in descriptors:
            name = col.column_name
            mapper.columns.append(name)
            mapper._types[name] = classify_type(col.data_type)
            # Column names win over comments that happen to spell another column
            mapper.field_map[_key(name)] = name
            if col.has_description:
                mapper._descriptions[name] = col.description
            if col.is_primary_key:
                keys.append(name)
            if col.is_identity:
                mapper.identity_columns.add(name)

        for name, description in mapper._descriptions.items():
            mapper.field_map.setdefault(_key(description), name)

        if len(keys) == 1:
            mapper.primary_key = keys[0]
        elif len(keys) > 1:
            mapper.composite_primary_key = True
            logger.debug(f'Composite primary key {keys} treated as no primary key')
        return mapper

    def resolve(self, header: str) -> str | None:
        """Column a file header names, or None."""
        return self.field_map.get(_key(header))

    def type_class(self, column: str) -> TypeClass:
        return self._types.get(column, TypeClass.TEXT)

    def description_for(self, column: str) -> str:
        """Comment usable as a visible header, or ''."""
        return self._descriptions.get(column, '')

    def is_identity(self, column: str) -> bool:
        return column in self.identity_columns
