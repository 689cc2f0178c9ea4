"""
Bulk import of CSV/XLSX files into a table.

File headers are matched to columns by name or by column comment,
case-insensitively. Every data row becomes one independent parameterized
statement; a failing row is counted and logged with its 1-based index and
never stops the import or rolls back earlier rows.

Modes:

    insert  every row is INSERTed; a supplied primary-key value is written
    upsert  rows whose primary-key cell is numeric are probed by key: an
            existing row gets one UPDATE (key excluded from SET), a missing
            one gets one INSERT carrying the key. Rows with an empty or
            non-numeric key cell are INSERTed without it so the engine can
            generate it.

Empty cells are never written, so identity and defaulted columns are left to
the engine.
"""
import logging
import math
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from datamgr.codec import get_codec, infer_format
from datamgr.exceptions import DataMgrError, FileFormatError, FileNotFound
from datamgr.exceptions import PrimaryKeyColumnMissingInFile, UpsertNeedsPrimaryKey
from datamgr.normalize import coerce_datetime_text
from datamgr.schema import SchemaMapper
from datamgr.types import FileFormat, ImportMode, TypeClass

if TYPE_CHECKING:
    from datamgr.drivers import DialectDriver

logger = logging.getLogger(__name__)

_DROP = object()


@dataclass(frozen=True, slots=True)
class RowFailure:
    row: int
    message: str


@dataclass
class ImportResult:
    """Counts and diagnostics of one import.

    `success` is the number of rows written (`inserted + updated`); `row`
    numbers in `failures` are 1-based data-row indexes.
    """
    table: str
    path: str
    format: FileFormat
    mode: ImportMode
    success: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    unmapped_headers: list[str] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.errors + self.skipped


def parse_number(text: str) -> int | float | None:
    """Parse as int, falling back to a finite float; None when neither works.

    >>> parse_number('42'), parse_number('4.5'), parse_number('abc')
    (42, 4.5, None)
    """
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def coerce_cell(text: str, type_class: TypeClass) -> Any:
    """Convert a trimmed, non-empty file cell for its column's type class.

    Returns the sentinel `_DROP` when the value cannot be converted; the
    column is then left out of that row.
    """
    if type_class in {TypeClass.INTEGER, TypeClass.NUMERIC}:
        value = parse_number(text)
        return _DROP if value is None else value
    if type_class == TypeClass.DATETIME:
        value = coerce_datetime_text(text)
        return _DROP if value is None else value
    return text


def _map_headers(header: list[str], mapper: SchemaMapper) -> tuple[list[tuple[int, str]], list[str]]:
    """Pair header positions with columns; return the mapping and unmapped headers."""
    mapping, unmapped, seen = [], [], set()
    for index, cell in enumerate(header):
        column = mapper.resolve(cell)
        if column is None or column in seen:
            unmapped.append(cell)
            continue
        seen.add(column)
        mapping.append((index, column))
    return mapping, unmapped


class _RowWriter:
    """Builds and runs the statement(s) for one data row."""

    def __init__(self, driver: 'DialectDriver', table: str, mapper: SchemaMapper,
                 mapping: list[tuple[int, str]], mode: ImportMode) -> None:
        self.driver = driver
        self.table = table
        self.mapper = mapper
        self.mapping = mapping
        self.mode = mode
        self.pk = mapper.primary_key

    def primary_key_value(self, cells: dict[str, str]) -> int | float | None:
        text = cells.get(self.pk, '').strip() if self.pk else ''
        return parse_number(text) if text else None

    def values(self, row_no: int, cells: dict[str, str], skip_pk: bool) -> dict[str, Any]:
        values = {}
        for column, cell in cells.items():
            if skip_pk and column == self.pk:
                continue
            text = cell.strip()
            if not text:
                continue
            value = coerce_cell(text, self.mapper.type_class(column))
            if value is _DROP:
                logger.warning(f'Row {row_no}: value {text!r} for column {column} '
                               f'is not a valid {self.mapper.type_class(column).value}; column skipped')
                continue
            values[column] = value
        return values

    def row_exists(self, pk_value: int | float) -> bool:
        sql = f'SELECT COUNT(*) AS n FROM {self.table} WHERE {self.driver.quote_identifier(self.pk)} = ?'
        rows = self.driver.query_with_params(sql, pk_value)
        return bool(rows) and int(next(iter(rows[0].values())) or 0) > 0

    def insert(self, values: dict[str, Any]) -> None:
        columns = ', '.join(self.driver.quote_identifier(c) for c in values)
        placeholders = ', '.join('?' for _ in values)
        sql = f'INSERT INTO {self.table} ({columns}) VALUES ({placeholders})'
        self.driver.execute_with_params(sql, *values.values())

    def update(self, values: dict[str, Any], pk_value: int | float) -> None:
        assignments = ', '.join(f'{self.driver.quote_identifier(c)} = ?' for c in values)
        sql = (f'UPDATE {self.table} SET {assignments} '
               f'WHERE {self.driver.quote_identifier(self.pk)} = ?')
        self.driver.execute_with_params(sql, *values.values(), pk_value)

    def write(self, row_no: int, row: list[str], result: ImportResult) -> None:
        cells = {column: row[index] if index < len(row) else '' for index, column in self.mapping}

        is_update = False
        pk_value = None
        skip_pk = False
        if self.mode == ImportMode.UPSERT:
            pk_value = self.primary_key_value(cells)
            if pk_value is None:
                skip_pk = True
            else:
                is_update = self.row_exists(pk_value)
                skip_pk = is_update

        values = self.values(row_no, cells, skip_pk)
        if not values:
            logger.warning(f'Row {row_no}: no importable values; row skipped')
            result.skipped += 1
            return

        if is_update:
            self.update(values, pk_value)
            result.updated += 1
        else:
            self.insert(values)
            result.inserted += 1
        result.success += 1


def import_table(driver: 'DialectDriver', table: str, path: str,
                 format: 'str | FileFormat | None' = None,
                 mode: 'str | ImportMode' = ImportMode.INSERT) -> ImportResult:
    """Import a CSV or XLSX file into a table.

    Args:
        driver: connected driver
        table: target table, used verbatim in generated SQL
        path: source file; a `.csv`/`.xlsx` extension overrides `format`
        format: `csv`, `excel` or `xlsx`; CSV when neither path nor format
            decide
        mode: `insert` or `upsert`

    Raises
        FileNotFound: source file does not exist
        TableNotFound: table has no columns
        UpsertNeedsPrimaryKey: upsert into a table without a single-column key
        FileFormatError: unreadable file, no data rows, or no matching headers
        PrimaryKeyColumnMissingInFile: upsert file has no key column
    """
    mode = ImportMode(mode)
    fmt = infer_format(path, format)
    if not os.path.isfile(path):
        raise FileNotFound(f'file not found: {path}')

    mapper = SchemaMapper.from_columns(driver.describe_table(table))
    if mode == ImportMode.UPSERT and not mapper.primary_key:
        raise UpsertNeedsPrimaryKey(f'table {table} has no single-column primary key; upsert is not possible')

    header, rows = get_codec(fmt).read(path)
    if not rows:
        raise FileFormatError(f'{path}: no data rows')

    mapping, unmapped = _map_headers(header, mapper)
    if not mapping:
        raise FileFormatError(f'{path}: no header matches a column of {table}')
    if unmapped:
        logger.warning(f'Headers not matched to columns of {table}: {unmapped}')
    if mode == ImportMode.UPSERT and mapper.primary_key not in {c for _, c in mapping}:
        raise PrimaryKeyColumnMissingInFile(
            f'upsert requires a column for primary key {mapper.primary_key} in {path}')

    result = ImportResult(table=table, path=path, format=fmt, mode=mode, unmapped_headers=unmapped)
    writer = _RowWriter(driver, table, mapper, mapping, mode)
    for row_no, row in enumerate(rows, start=1):
        try:
            writer.write(row_no, row, result)
        except DataMgrError as exc:
            result.errors += 1
            result.failures.append(RowFailure(row_no, str(exc)))
            logger.error(f'Row {row_no}: {exc}')

    logger.info(f'Imported {path} into {table}: {result.success} ok '
                f'({result.inserted} inserted, {result.updated} updated), '
                f'{result.errors} failed, {result.skipped} skipped')
    return result
