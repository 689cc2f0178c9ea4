"""
Mock drivers for tests that exercise catalog normalization or the registry
without a database server.

Usage:
    def test_describe(mock_driver_factory, mocker):
        driver = mock_driver_factory(MySQLDriver, dbname='shop')
        mocker.patch.object(driver, '_select_raw', side_effect=[...])
"""
import pytest
from datamgr.drivers.base import _DRIVER_REGISTRY
from datamgr.options import ConnectionConfig
from datamgr.types import DriverState


def _dialect_of(driver_cls):
    for tag, cls in _DRIVER_REGISTRY.items():
        if cls is driver_cls:
            return tag
    raise LookupError(f'{driver_cls.__name__} is not registered')


def _create_connected_driver(driver_cls, **config):
    """
    Instantiate a driver and mark it connected without opening a
    connection. Catalog helpers must be stubbed by the caller.
    """
    config.setdefault('host', 'db.example')
    config.setdefault('user', 'tester')
    config.setdefault('dbname', 'testdb')
    driver = driver_cls(ConnectionConfig(type=_dialect_of(driver_cls), **config))
    driver._state = DriverState.CONNECTED
    return driver


@pytest.fixture
def mock_driver_factory():
    """
    Fixture that provides a factory for drivers that believe they are
    connected.
    """
    return _create_connected_driver
