"""
Unit tests for the CSV and XLSX file codecs.
"""
import pytest
from datamgr.codec import CsvCodec, XlsxCodec, get_codec, infer_format
from datamgr.exceptions import FileFormatError, FileNotFound
from datamgr.types import FileFormat


class TestInferFormat:

    @pytest.mark.parametrize(('path', 'explicit', 'expected'), [
        ('out.xlsx', 'csv', FileFormat.XLSX),
        ('OUT.XLSX', None, FileFormat.XLSX),
        ('out.csv', 'excel', FileFormat.CSV),
        ('out.dat', 'excel', FileFormat.XLSX),
        ('out.dat', None, FileFormat.CSV),
        ('out', FileFormat.XLSX, FileFormat.XLSX),
    ])
    def test_extension_wins(self, path, explicit, expected):
        assert infer_format(path, explicit) == expected

    def test_get_codec(self):
        assert isinstance(get_codec('csv'), CsvCodec)
        assert isinstance(get_codec('excel'), XlsxCodec)
        assert isinstance(get_codec(FileFormat.XLSX), XlsxCodec)


class TestCsvCodec:

    def test_write_adds_bom(self, tmp_path):
        path = tmp_path / 'out.csv'
        get_codec('csv').write(str(path), ['id', 'name'], [[1, 'a'], [2, '']])
        data = path.read_bytes()
        assert data.startswith(b'\xef\xbb\xbf')
        assert data[3:].decode() == 'id,name\n1,a\n2,\n'

    def test_read_crlf(self, tmp_path):
        path = tmp_path / 'in.csv'
        path.write_bytes(b'id,name\r\n1,a\r\n')
        assert get_codec('csv').read(str(path)) == (['id', 'name'], [['1', 'a']])

    def test_read_strips_bom(self, tmp_path):
        path = tmp_path / 'in.csv'
        path.write_bytes('﻿用户ID,昵称\n7,alice\n'.encode())
        header, rows = get_codec('csv').read(str(path))
        assert header == ['用户ID', '昵称']
        assert rows == [['7', 'alice']]

    def test_read_without_bom(self, tmp_path):
        path = tmp_path / 'in.csv'
        path.write_text('id,v\n,hello\n', encoding='utf-8')
        assert get_codec('csv').read(str(path)) == (['id', 'v'], [['', 'hello']])

    def test_quoted_fields(self, tmp_path):
        path = tmp_path / 'in.csv'
        path.write_text('id,note\n1,"a, b"\n2,"line ""quoted"""\n', encoding='utf-8')
        _, rows = get_codec('csv').read(str(path))
        assert rows == [['1', 'a, b'], ['2', 'line "quoted"']]

    def test_blank_rows_dropped(self, tmp_path):
        path = tmp_path / 'in.csv'
        path.write_text('id,name\n1,a\n,\n\n2,b\n', encoding='utf-8')
        _, rows = get_codec('csv').read(str(path))
        assert rows == [['1', 'a'], ['2', 'b']]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFound):
            get_codec('csv').read(str(tmp_path / 'nope.csv'))

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.csv'
        path.write_text('', encoding='utf-8')
        with pytest.raises(FileFormatError, match='no header row'):
            get_codec('csv').read(str(path))

    def test_not_utf8(self, tmp_path):
        path = tmp_path / 'latin.csv'
        path.write_bytes(b'id,name\n1,\xe9t\xe9\n')
        with pytest.raises(FileFormatError, match='not a valid UTF-8 CSV'):
            get_codec('csv').read(str(path))


class TestXlsxCodec:

    def test_write_then_read(self, tmp_path):
        path = tmp_path / 'out.xlsx'
        codec = get_codec('excel')
        codec.write(str(path), ['用户ID', '昵称', 'score'], [[7, 'alice', 1.5], [8, None, None]])
        header, rows = codec.read(str(path))
        assert header == ['用户ID', '昵称', 'score']
        assert rows == [['7', 'alice', '1.5'], ['8', '', '']]

    def test_first_sheet_only(self, tmp_path):
        import pandas as pd
        path = tmp_path / 'two.xlsx'
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            pd.DataFrame([['id'], ['1']]).to_excel(writer, sheet_name='first', header=False, index=False)
            pd.DataFrame([['other'], ['x']]).to_excel(writer, sheet_name='second', header=False, index=False)
        assert get_codec('xlsx').read(str(path)) == (['id'], [['1']])

    def test_equals_prefix_written_as_text(self, tmp_path):
        import openpyxl
        path = tmp_path / 'out.xlsx'
        get_codec('xlsx').write(str(path), ['=label'], [['=1+1'], ['=SUM(A1:A2)']])
        cells = [row[0] for row in openpyxl.load_workbook(path).active.iter_rows()]
        assert [cell.data_type for cell in cells] == ['s', 's', 's']
        assert [cell.value for cell in cells] == ['=label', '=1+1', '=SUM(A1:A2)']
        assert get_codec('xlsx').read(str(path)) == (['=label'], [['=1+1'], ['=SUM(A1:A2)']])

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / 'bad.xlsx'
        path.write_text('id,name\n1,a\n', encoding='utf-8')
        with pytest.raises(FileFormatError, match='not a valid XLSX'):
            get_codec('xlsx').read(str(path))


if __name__ == '__main__':
    __import__('pytest').main([__file__])
