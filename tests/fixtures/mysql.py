"""
MySQL container fixtures for the integration tests.
"""
import logging

import pytest
from datamgr.drivers import MySQLDriver
from datamgr.options import ConnectionConfig
from testcontainers.mysql import MySqlContainer

logger = logging.getLogger(__name__)

MYSQL_USER = 'datamgr'
MYSQL_PASSWORD = 'datamgr'
MYSQL_DBNAME = 'datamgr_test'

MYSQL_SCHEMA = [
    'DROP TABLE IF EXISTS orders',
    'DROP TABLE IF EXISTS users',
    """
    CREATE TABLE users (
        id INT AUTO_INCREMENT PRIMARY KEY COMMENT '用户ID',
        name VARCHAR(64) NOT NULL COMMENT '姓名',
        email VARCHAR(100) UNIQUE,
        age INT,
        score DECIMAL(10,2),
        created_at DATETIME
    ) DEFAULT CHARSET=utf8mb4
    """,
    """
    CREATE TABLE orders (
        order_id INT AUTO_INCREMENT PRIMARY KEY,
        user_id INT,
        amount DECIMAL(10,2),
        CONSTRAINT fk_orders_user FOREIGN KEY (user_id) REFERENCES users(id)
    ) DEFAULT CHARSET=utf8mb4
    """,
]


@pytest.fixture(scope='session')
def mysql_docker(request):
    """Session-scoped MySQL container, skipped without Docker."""
    container = MySqlContainer(
        image='mysql:8.0',
        username=MYSQL_USER,
        password=MYSQL_PASSWORD,
        dbname=MYSQL_DBNAME,
    )
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f'MySQL container unavailable: {exc}')

    def finalizer():
        container.stop()
        logger.info('MySQL container stopped')

    request.addfinalizer(finalizer)
    return container


@pytest.fixture
def mysql_config(mysql_docker):
    return ConnectionConfig(
        type='mysql',
        host=mysql_docker.get_container_host_ip(),
        port=int(mysql_docker.get_exposed_port(3306)),
        user=MYSQL_USER,
        password=MYSQL_PASSWORD,
        dbname=MYSQL_DBNAME,
    )


@pytest.fixture
def mysql_driver(mysql_config):
    driver = MySQLDriver(mysql_config)
    driver.connect()
    for statement in MYSQL_SCHEMA:
        driver.execute(statement)
    yield driver
    driver.disconnect()
