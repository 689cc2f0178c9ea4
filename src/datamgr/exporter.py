"""
Export of a table (optionally filtered) to CSV or XLSX.

Columns follow the table's declared order, with any extra result columns
appended. The visible header shows each column's comment when it has one.
Cells are rendered as text with date-times truncated to whole seconds; XLSX
keeps numbers numeric.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from datamgr.codec import get_codec, infer_format
from datamgr.exceptions import DataMgrError
from datamgr.normalize import render_cell
from datamgr.schema import SchemaMapper
from datamgr.types import FileFormat

if TYPE_CHECKING:
    from datamgr.drivers import DialectDriver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportResult:
    rows: int
    columns: list[str]
    path: str
    format: FileFormat


def build_select(table: str, where: str | None = None) -> str:
    """`SELECT *` over the table, with the caller's WHERE clause verbatim.
    """
    sql = f'SELECT * FROM {table}'
    if where and where.strip():
        sql += f' WHERE {where.strip()}'
    return sql


def order_columns(result_keys: list[str], declared: list[str] | None) -> list[str]:
    """Declared columns present in the result, in declared order, then the rest.

    Matching is case-insensitive; result spellings are kept.

    >>> order_columns(['name', 'id', 'extra'], ['id', 'name'])
    ['id', 'name', 'extra']
    """
    if not declared:
        return list(result_keys)
    by_lower = {key.lower(): key for key in result_keys}
    ordered = []
    for column in declared:
        key = by_lower.get(column.lower())
        if key is not None and key not in ordered:
            ordered.append(key)
    ordered.extend(key for key in result_keys if key not in ordered)
    return ordered


def xlsx_cell(value: Any) -> Any:
    """Numbers stay numeric in spreadsheets; everything else renders as text."""
    if value is None:
        return None
    if isinstance(value, int | float) and not isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return render_cell(value)


def _declared_columns(driver: 'DialectDriver', table: str) -> list[str] | None:
    try:
        return driver.get_table_columns(table)
    except DataMgrError as exc:
        logger.warning(f'Could not read column order of {table}, using result order: {exc}')
        return None


def _header_labels(driver: 'DialectDriver', table: str, columns: list[str]) -> list[str]:
    try:
        mapper = SchemaMapper.from_columns(driver.describe_table(table))
    except DataMgrError as exc:
        logger.warning(f'Could not read column comments of {table}, using column names: {exc}')
        return list(columns)
    by_lower = {c.lower(): c for c in mapper.columns}
    return [mapper.description_for(by_lower.get(c.lower(), c)) or c for c in columns]


def export_table(driver: 'DialectDriver', table: str, path: str, where: str | None = None,
                 format: 'str | FileFormat | None' = None) -> ExportResult:
    """Export rows of a table to a file.

    Args:
        driver: connected driver
        table: source table, used verbatim in the generated SQL
        path: destination; a `.csv`/`.xlsx` extension overrides `format`
        where: optional WHERE clause appended verbatim
        format: `csv`, `excel` or `xlsx`

    Raises
        QueryFailed: the SELECT failed
    """
    fmt = infer_format(path, format)
    rows = driver.query(build_select(table, where))

    declared = _declared_columns(driver, table)
    if rows:
        columns = order_columns(list(rows[0].keys()), declared)
    else:
        columns = list(declared or [])
    labels = _header_labels(driver, table, columns)

    render = xlsx_cell if fmt == FileFormat.XLSX else render_cell
    data = [[render(row.get(column)) for column in columns] for row in rows]
    get_codec(fmt).write(path, labels, data)

    logger.info(f'Exported {len(rows)} rows of {table} to {path}')
    return ExportResult(rows=len(rows), columns=columns, path=path, format=fmt)
