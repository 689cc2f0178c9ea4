"""
PostgreSQL container fixtures for the integration tests.

The container is shared by the session; every test gets a fresh driver and
freshly created tables. Tests are skipped when Docker is not reachable.
"""
import logging

import pytest
from datamgr.drivers import PostgresDriver
from datamgr.options import ConnectionConfig
from testcontainers.postgres import PostgresContainer

logger = logging.getLogger(__name__)

PG_USER = 'datamgr'
PG_PASSWORD = 'datamgr'
PG_DBNAME = 'datamgr_test'

PG_SCHEMA = [
    'DROP TABLE IF EXISTS orders',
    'DROP TABLE IF EXISTS users',
    """
    CREATE TABLE users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(64) NOT NULL,
        email VARCHAR(100) UNIQUE,
        age INTEGER,
        score NUMERIC(10,2),
        created_at TIMESTAMP
    )
    """,
    "COMMENT ON COLUMN users.id IS '用户ID'",
    "COMMENT ON COLUMN users.name IS '姓名'",
    """
    CREATE TABLE orders (
        order_id SERIAL PRIMARY KEY,
        user_id INTEGER REFERENCES users(id),
        amount NUMERIC(10,2)
    )
    """,
]


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container.

    Testcontainers assigns a random port and waits until the server accepts
    connections.
    """
    container = PostgresContainer(
        image='postgres:16',
        username=PG_USER,
        password=PG_PASSWORD,
        dbname=PG_DBNAME,
    )
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f'PostgreSQL container unavailable: {exc}')

    def finalizer():
        container.stop()
        logger.info('PostgreSQL container stopped')

    request.addfinalizer(finalizer)
    logger.info(f'PostgreSQL container started at {container.get_container_host_ip()}')
    return container


@pytest.fixture
def psql_config(psql_docker):
    return ConnectionConfig(
        type='postgresql',
        host=psql_docker.get_container_host_ip(),
        port=int(psql_docker.get_exposed_port(5432)),
        user=PG_USER,
        password=PG_PASSWORD,
        dbname=PG_DBNAME,
    )


@pytest.fixture
def psql_driver(psql_config):
    """Connected driver with `users` and `orders` recreated."""
    driver = PostgresDriver(psql_config)
    driver.connect()
    for statement in PG_SCHEMA:
        driver.execute(statement)
    yield driver
    driver.disconnect()
