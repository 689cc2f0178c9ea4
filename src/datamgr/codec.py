"""
File codecs for import and export.

Each codec reads a whole file into `(header, rows)` and writes a header plus
rows back out. CSV follows RFC 4180 quoting with a UTF-8 BOM on write
(tolerated on read). Written rows end in LF rather than CRLF; the reader
accepts either. XLSX uses the first sheet with the header in row 1, read and
written through pandas with the openpyxl engine. Written string cells are
always text, never formulas.
"""
import csv
import logging
import os
import zipfile
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from datamgr.exceptions import FileFormatError, FileNotFound
from datamgr.types import FileFormat

logger = logging.getLogger(__name__)

XLSX_SHEET_NAME = 'Sheet1'

_CODEC_REGISTRY: dict[FileFormat, 'FileCodec'] = {}


def register_codec(fmt: FileFormat):
    """Decorator registering a codec instance for a file format."""
    def decorator(cls: type['FileCodec']) -> type['FileCodec']:
        _CODEC_REGISTRY[fmt] = cls()
        return cls
    return decorator


def infer_format(path: str, explicit: 'str | FileFormat | None' = None) -> FileFormat:
    """Pick the codec for a path.

    A `.xlsx` or `.csv` extension wins over the explicit format; otherwise
    the explicit format is used, defaulting to CSV.
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == '.xlsx':
        return FileFormat.XLSX
    if ext == '.csv':
        return FileFormat.CSV
    return FileFormat.parse(explicit) or FileFormat.CSV


def get_codec(fmt: 'str | FileFormat') -> 'FileCodec':
    """Get the codec for a format tag (`csv`, `excel` or `xlsx`)."""
    return _CODEC_REGISTRY[FileFormat.parse(fmt)]


def _strip_blank(rows: list[list[str]]) -> list[list[str]]:
    return [row for row in rows if any(str(cell).strip() for cell in row)]


class FileCodec(ABC):
    """Reads and writes whole files of tabular data.
    """

    format: FileFormat

    def read(self, path: str) -> tuple[list[str], list[list[str]]]:
        """Read a file into its header row and data rows.

        Blank data rows are dropped; cells are text.

        Raises
            FileNotFound: path does not exist
            FileFormatError: file cannot be parsed or has no header row
        """
        if not os.path.isfile(path):
            raise FileNotFound(f'file not found: {path}')
        rows = self._read_rows(path)
        if not rows or not any(cell.strip() for cell in rows[0]):
            raise FileFormatError(f'{path}: file is empty or has no header row')
        header, data = rows[0], _strip_blank(rows[1:])
        logger.debug(f'Read {len(data)} rows from {path}')
        return header, data

    @abstractmethod
    def _read_rows(self, path: str) -> list[list[str]]:
        """All rows of the file, header included."""

    @abstractmethod
    def write(self, path: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        """Write a header row followed by data rows, replacing the file."""


@register_codec(FileFormat.CSV)
class CsvCodec(FileCodec):
    """CSV with UTF-8 BOM.
    """

    format = FileFormat.CSV

    def _read_rows(self, path: str) -> list[list[str]]:
        try:
            with open(path, newline='', encoding='utf-8-sig') as f:
                return [row for row in csv.reader(f) if row]
        except (UnicodeDecodeError, csv.Error) as exc:
            raise FileFormatError(f'{path}: not a valid UTF-8 CSV file: {exc}') from exc

    def write(self, path: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        with open(path, 'w', newline='', encoding='utf-8-sig') as f:
            writer = csv.writer(f, lineterminator='\n')
            writer.writerow(header)
            writer.writerows(rows)


@register_codec(FileFormat.XLSX)
class XlsxCodec(FileCodec):
    """First-sheet XLSX through pandas/openpyxl.
    """

    format = FileFormat.XLSX

    def _read_rows(self, path: str) -> list[list[str]]:
        try:
            df = pd.read_excel(path, sheet_name=0, header=None, dtype=str,
                               na_filter=False, engine='openpyxl')
        except (ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
            raise FileFormatError(f'{path}: not a valid XLSX file: {exc}') from exc
        return [[str(cell) for cell in row] for row in df.itertuples(index=False, name=None)]

    def write(self, path: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        df = pd.DataFrame([list(header), *[list(row) for row in rows]])
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name=XLSX_SHEET_NAME, header=False, index=False)
            _force_text_cells(writer.sheets[XLSX_SHEET_NAME])


def _force_text_cells(sheet) -> None:
    """openpyxl turns strings starting with `=` into formulas; keep them text."""
    for row in sheet.iter_rows():
        for cell in row:
            if cell.data_type == 'f':
                cell.data_type = 's'
