import pytest
from datamgr.cache import MetadataCache
from datamgr.registry import registry


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear metadata caches and the connection slot around each test."""
    registry.shutdown()
    MetadataCache.get_instance().clear_all()
    yield
    registry.shutdown()
    MetadataCache.get_instance().clear_all()


@pytest.fixture(autouse=True)
def datamgr_home(tmp_path, monkeypatch):
    """Point the config directory at a per-test location."""
    home = tmp_path / 'datamgr-home'
    monkeypatch.setenv('DATAMGR_HOME', str(home))
    return home


pytest_plugins = [
    'tests.fixtures.values',
    'tests.fixtures.sqlite',
    'tests.fixtures.mocks',
    'tests.fixtures.postgres',
    'tests.fixtures.mysql',
]
