"""
Import engine tests against a SQLite file database.
"""
import pytest
from datamgr.codec import get_codec
from datamgr.exceptions import FileFormatError, FileNotFound, TableNotFound
from datamgr.exceptions import PrimaryKeyColumnMissingInFile, UpsertNeedsPrimaryKey
from datamgr.importer import coerce_cell, import_table, parse_number
from datamgr.types import ColumnDescriptor, FileFormat, ImportMode, TypeClass


@pytest.fixture
def write_csv(tmp_path):
    def _write(text, name='data.csv'):
        path = tmp_path / name
        path.write_text(text, encoding='utf-8')
        return str(path)
    return _write


def statements(spy, verb):
    return [c.args[0] for c in spy.call_args_list if c.args[0].startswith(verb)]


class TestCellCoercion:

    @pytest.mark.parametrize(('text', 'expected'), [
        ('42', 42),
        ('-7', -7),
        ('4.5', 4.5),
        ('1e3', 1000.0),
        ('abc', None),
        ('nan', None),
        ('inf', None),
    ])
    def test_parse_number(self, text, expected):
        assert parse_number(text) == expected

    def test_coerce_by_type_class(self):
        assert coerce_cell('12', TypeClass.INTEGER) == 12
        assert coerce_cell('12.50', TypeClass.NUMERIC) == 12.5
        assert coerce_cell('2024-01-02T03:04:05Z', TypeClass.DATETIME) == '2024-01-02 03:04:05'
        assert coerce_cell('007', TypeClass.TEXT) == '007'


class TestInsertMode:

    def test_insert_rows(self, sqlite_driver, write_csv):
        path = write_csv('name,age,email\nalice,30,a@x.org\nbob,40,b@x.org\n')
        result = import_table(sqlite_driver, 'users', path)
        assert (result.success, result.inserted, result.updated, result.errors) == (2, 2, 0, 0)
        assert result.format == FileFormat.CSV
        assert result.mode == ImportMode.INSERT
        rows = sqlite_driver.query('SELECT name, age, email FROM users ORDER BY id')
        assert rows == [{'name': 'alice', 'age': 30, 'email': 'a@x.org'},
                        {'name': 'bob', 'age': 40, 'email': 'b@x.org'}]

    def test_headers_case_insensitive(self, sqlite_driver, write_csv):
        path = write_csv('NAME, Age \ncarol,25\n')
        assert import_table(sqlite_driver, 'users', path).success == 1
        assert sqlite_driver.query('SELECT name, age FROM users') == [{'name': 'carol', 'age': 25}]

    def test_empty_identity_cell_left_to_engine(self, sqlite_driver, write_csv, mocker):
        """A file with no id value inserts without the identity column"""
        spy = mocker.spy(sqlite_driver, 'execute_with_params')
        path = write_csv('id,name\n,hello\n')
        result = import_table(sqlite_driver, 'users', path)
        assert result.inserted == 1
        insert = statements(spy, 'INSERT')[0]
        assert '"id"' not in insert
        rows = sqlite_driver.query('SELECT id, name FROM users')
        assert rows[0]['name'] == 'hello'
        assert isinstance(rows[0]['id'], int)

    def test_supplied_key_is_inserted(self, sqlite_driver, write_csv):
        path = write_csv('id,name\n10,ten\n')
        import_table(sqlite_driver, 'users', path, mode='insert')
        assert sqlite_driver.query('SELECT id FROM users') == [{'id': 10}]

    def test_row_failures_do_not_stop_import(self, sqlite_driver, write_csv):
        path = write_csv('id,name\n1,a\n1,b\n2,c\n')
        result = import_table(sqlite_driver, 'users', path)
        assert (result.success, result.errors) == (2, 1)
        assert result.failures[0].row == 2
        assert 'UNIQUE constraint failed' in result.failures[0].message
        assert sqlite_driver.query('SELECT name FROM users ORDER BY id') == [{'name': 'a'}, {'name': 'c'}]

    def test_not_null_failure_counted(self, sqlite_driver, write_csv):
        path = write_csv('name,age\n,5\nzed,6\n')
        result = import_table(sqlite_driver, 'users', path)
        assert (result.success, result.errors) == (1, 1)
        assert result.failures[0].row == 1

    def test_bad_number_drops_column(self, sqlite_driver, write_csv):
        path = write_csv('name,age,score\nbob,abc,12.5\n')
        assert import_table(sqlite_driver, 'users', path).success == 1
        assert sqlite_driver.query('SELECT age, score FROM users') == [{'age': None, 'score': 12.5}]

    def test_datetime_coerced(self, sqlite_driver, write_csv):
        path = write_csv('name,created_at\nann,2024-01-02T03:04:05.123Z\nbea,someday\n')
        assert import_table(sqlite_driver, 'users', path).success == 2
        rows = sqlite_driver.query('SELECT name, created_at FROM users ORDER BY id')
        assert rows == [{'name': 'ann', 'created_at': '2024-01-02 03:04:05'},
                        {'name': 'bea', 'created_at': None}]

    def test_unmapped_and_duplicate_headers(self, sqlite_driver, write_csv):
        path = write_csv('name,junk,NAME\nalice,x,ignored\n')
        result = import_table(sqlite_driver, 'users', path)
        assert result.unmapped_headers == ['junk', 'NAME']
        assert sqlite_driver.query('SELECT name FROM users') == [{'name': 'alice'}]

    def test_row_without_values_skipped(self, sqlite_driver, write_csv):
        path = write_csv('name,junk\n,x\nbob,y\n')
        result = import_table(sqlite_driver, 'users', path)
        assert (result.success, result.skipped, result.errors) == (1, 1, 0)
        assert result.total == 2


class TestUpsertMode:

    def test_update_or_insert_by_key(self, sqlite_driver, write_csv, mocker):
        sqlite_driver.execute("INSERT INTO users (id, name, age) VALUES (1, 'alice', 30)")
        spy = mocker.spy(sqlite_driver, 'execute_with_params')
        path = write_csv('id,name,age\n1,alice2,31\n5,eve,22\n,nobody,1\n')

        result = import_table(sqlite_driver, 'users', path, mode=ImportMode.UPSERT)

        assert (result.success, result.updated, result.inserted, result.errors) == (3, 1, 2, 0)
        updates, inserts = statements(spy, 'UPDATE'), statements(spy, 'INSERT')
        assert len(updates) == 1
        assert '"id" = ?' in updates[0].split('WHERE')[1]
        assert '"id"' not in updates[0].split('WHERE')[0]
        assert len(inserts) == 2
        assert '"id"' in inserts[0]
        assert '"id"' not in inserts[1]

        rows = sqlite_driver.query('SELECT id, name, age FROM users ORDER BY id')
        assert rows[:2] == [{'id': 1, 'name': 'alice2', 'age': 31}, {'id': 5, 'name': 'eve', 'age': 22}]
        assert rows[2]['name'] == 'nobody'
        assert rows[2]['id'] > 5

    def test_existing_row_gets_no_insert(self, sqlite_driver, write_csv, mocker):
        sqlite_driver.execute("INSERT INTO users (id, name) VALUES (3, 'c')")
        spy = mocker.spy(sqlite_driver, 'execute_with_params')
        import_table(sqlite_driver, 'users', write_csv('id,name\n3,cc\n'), mode='upsert')
        assert len(statements(spy, 'UPDATE')) == 1
        assert statements(spy, 'INSERT') == []

    def test_missing_row_gets_no_update(self, sqlite_driver, write_csv, mocker):
        spy = mocker.spy(sqlite_driver, 'execute_with_params')
        import_table(sqlite_driver, 'users', write_csv('id,name\n3,c\n'), mode='upsert')
        assert statements(spy, 'UPDATE') == []
        assert len(statements(spy, 'INSERT')) == 1

    def test_key_column_missing_in_file(self, sqlite_driver, write_csv):
        path = write_csv('b\n1\n2\n')
        with pytest.raises(PrimaryKeyColumnMissingInFile):
            import_table(sqlite_driver, 'k', path, mode='upsert')
        assert sqlite_driver.query('SELECT COUNT(*) AS n FROM k') == [{'n': 0}]

    def test_composite_key_cannot_upsert(self, sqlite_driver, write_csv):
        path = write_csv('a,b,label\n1,2,x\n')
        with pytest.raises(UpsertNeedsPrimaryKey):
            import_table(sqlite_driver, 'pairs', path, mode='upsert')
        assert import_table(sqlite_driver, 'pairs', path).success == 1


class TestPreconditions:

    def test_missing_file(self, sqlite_driver, tmp_path):
        with pytest.raises(FileNotFound):
            import_table(sqlite_driver, 'users', str(tmp_path / 'nope.csv'))

    def test_missing_table(self, sqlite_driver, write_csv):
        with pytest.raises(TableNotFound):
            import_table(sqlite_driver, 'nope', write_csv('a\n1\n'))

    def test_header_only_file(self, sqlite_driver, write_csv):
        with pytest.raises(FileFormatError, match='no data rows'):
            import_table(sqlite_driver, 'users', write_csv('name,age\n'))

    def test_no_matching_header(self, sqlite_driver, write_csv):
        with pytest.raises(FileFormatError, match='no header matches'):
            import_table(sqlite_driver, 'users', write_csv('foo,bar\n1,2\n'))

    def test_unknown_mode(self, sqlite_driver, write_csv):
        with pytest.raises(ValueError):
            import_table(sqlite_driver, 'users', write_csv('name\na\n'), mode='merge')


class TestCommentHeaders:

    def test_xlsx_with_comment_headers(self, sqlite_driver, tmp_path, mocker):
        sqlite_driver.execute('CREATE TABLE u (user_id INT PRIMARY KEY, nick VARCHAR(32))')
        mocker.patch.object(sqlite_driver, 'describe_table', return_value=[
            ColumnDescriptor('user_id', 'INT', None, 'NO', 'PRIMARY KEY', '用户ID', ''),
            ColumnDescriptor('nick', 'VARCHAR(32)', 32, 'YES', '', '昵称', ''),
        ])
        path = str(tmp_path / 'u.xlsx')
        get_codec('excel').write(path, ['用户ID', '昵称'], [[7, 'alice']])

        result = import_table(sqlite_driver, 'u', path)

        assert result.format == FileFormat.XLSX
        assert result.success == 1
        assert sqlite_driver.query('SELECT * FROM u') == [{'user_id': 7, 'nick': 'alice'}]


if __name__ == '__main__':
    __import__('pytest').main([__file__])
