"""
Unit tests for the connection registry and driver selection.
"""
import sqlite3
from importlib.util import find_spec

import datamgr
import pytest
from datamgr.cache import MetadataCache
from datamgr.drivers import MySQLDriver, SQLiteDriver, UnsupportedDriver
from datamgr.drivers import get_available_dialects, get_driver_class
from datamgr.exceptions import AlreadyConnected, ConnectFailed, DataMgrError
from datamgr.exceptions import NotConnected, UnsupportedDialect
from datamgr.exceptions import UnsupportedOnPlatform
from datamgr.options import ConnectionConfig
from datamgr.registry import ConnectionRegistry
from datamgr.types import DriverState


class TestDriverSelection:

    def test_all_dialects_registered(self):
        assert set(get_available_dialects()) == {
            'dameng', 'mysql', 'postgresql', 'sqlserver', 'oracle', 'sqlite'}

    @pytest.mark.parametrize(('tag', 'expected'), [
        ('mysql', MySQLDriver),
        ('SQLite', SQLiteDriver),
    ])
    def test_get_driver_class(self, tag, expected):
        assert get_driver_class(tag) is expected

    def test_aliases(self):
        assert get_driver_class('mssql') is get_driver_class('sqlserver')
        assert get_driver_class('postgres') is get_driver_class('postgresql')

    def test_unknown(self):
        with pytest.raises(UnsupportedDialect):
            get_driver_class('db2')


class TestRegistry:

    def test_empty_slot(self):
        reg = ConnectionRegistry()
        assert not reg.is_connected()
        with pytest.raises(NotConnected):
            reg.get_current_connection()
        with pytest.raises(NotConnected):
            reg.get_current_config()
        with pytest.raises(NotConnected):
            reg.disconnect()

    def test_shutdown_tolerates_empty_slot(self):
        ConnectionRegistry().shutdown()

    def test_connect_and_disconnect(self, sqlite_config):
        reg = ConnectionRegistry()
        driver = reg.connect(sqlite_config)
        assert driver.state == DriverState.CONNECTED
        assert reg.get_current_connection() is driver
        assert reg.get_current_config() is sqlite_config

        reg.disconnect()
        assert driver.state == DriverState.CLOSED
        assert not reg.is_connected()

    def test_already_connected(self, sqlite_config):
        reg = ConnectionRegistry()
        reg.connect(sqlite_config)
        with pytest.raises(AlreadyConnected):
            reg.connect(sqlite_config)
        reg.shutdown()
        assert not reg.is_connected()

    def test_required_fields_checked_before_connecting(self, mocker):
        connect = mocker.patch.object(MySQLDriver, 'connect')
        reg = ConnectionRegistry()
        with pytest.raises(ValueError, match='field host cannot be empty'):
            reg.connect(ConnectionConfig(type='mysql', host='', user='u', dbname='d'))
        connect.assert_not_called()
        assert not reg.is_connected()

    def test_connect_failure_leaves_slot_empty(self, tmp_path):
        reg = ConnectionRegistry()
        config = ConnectionConfig(type='sqlite', dbname=str(tmp_path / 'missing' / 'x.db'))
        with pytest.raises(ConnectFailed, match='failed to connect to sqlite'):
            reg.connect(config)
        assert not reg.is_connected()

    def test_connect_clears_metadata_cache(self, sqlite_config):
        cache = MetadataCache.get_instance().get_cache('describe_table')
        cache[(1, 'stale')] = ('x',)
        reg = ConnectionRegistry()
        reg.connect(sqlite_config)
        assert (1, 'stale') not in cache
        reg.shutdown()

    def test_metadata_cache_is_shared_per_name(self):
        first = MetadataCache.get_instance().get_cache('table_columns', maxsize=5)
        again = MetadataCache.get_instance().get_cache('table_columns', maxsize=500)
        assert first is again
        assert first.maxsize == 5

    def test_disconnect_error_still_clears_slot(self, sqlite_config, mocker):
        reg = ConnectionRegistry()
        driver = reg.connect(sqlite_config)
        mocker.patch.object(driver, '_close', side_effect=sqlite3.OperationalError('boom'))
        with pytest.raises(DataMgrError, match='boom'):
            reg.disconnect()
        assert not reg.is_connected()
        assert driver.state == DriverState.CLOSED

    def test_shutdown_swallows_close_error(self, sqlite_config, mocker):
        reg = ConnectionRegistry()
        driver = reg.connect(sqlite_config)
        mocker.patch.object(driver, '_close', side_effect=sqlite3.OperationalError('boom'))
        reg.shutdown()
        assert not reg.is_connected()


class TestUnsupportedDriver:

    def test_stub_fails_every_operation(self):
        stub_cls = UnsupportedDriver.for_dialect('dameng', 'dmPython')
        stub = stub_cls(ConnectionConfig(type='dameng'))
        assert not stub_cls.available
        for call in (stub.connect, stub.get_tables, lambda: stub.query_with_params('SELECT 1'),
                     lambda: stub.execute('DELETE FROM t'), lambda: stub.describe_table('t')):
            with pytest.raises(UnsupportedOnPlatform, match='dmPython'):
                call()

    @pytest.mark.skipif(find_spec('dmPython') is not None, reason='dmPython installed')
    def test_registry_refuses_stub(self, mocker):
        connect = mocker.patch.object(get_driver_class('dameng'), 'connect')
        reg = ConnectionRegistry()
        with pytest.raises(UnsupportedOnPlatform, match='dameng is not supported'):
            reg.connect(ConnectionConfig(type='dameng', host='h', user='u', password='p', dbname='d'))
        connect.assert_not_called()


class TestFacades:

    def test_facades_use_current_connection(self, connected_registry):
        assert datamgr.get_tables() == ['k', 'orders', 'pairs', 'users']
        assert datamgr.execute('INSERT INTO k (a, b) VALUES (?, ?)', 1, 2) == 1
        assert datamgr.query('SELECT a, b FROM k WHERE a = ?', 1) == [{'a': 1, 'b': 2}]
        assert datamgr.get_table_columns('k') == ['a', 'b']
        assert [c.column_name for c in datamgr.describe_table('k')] == ['a', 'b']
        assert datamgr.get_current_config().type == 'sqlite'

        datamgr.disconnect()
        with pytest.raises(NotConnected):
            datamgr.get_tables()


if __name__ == '__main__':
    __import__('pytest').main([__file__])
