import logging

import config
import fluentdb as db
import pytest
from tests.fixtures.library import create_library
from testcontainers.mysql import MySqlContainer

from libb import Setting

logger = logging.getLogger(__name__)


@pytest.fixture(scope='session')
def mysql_docker(request):
    """Session-scoped MySQL container using testcontainers."""
    container = MySqlContainer(
        image='mysql:8.0',
        username=config.mysql.username,
        password=config.mysql.password,
        dbname=config.mysql.database,
    )

    try:
        container.start()

        Setting.unlock()
        config.mysql.hostname = container.get_container_host_ip()
        config.mysql.port = int(container.get_exposed_port(3306))
        Setting.lock()

        logger.info(f'MySQL container started at {config.mysql.hostname}:{config.mysql.port}')

        def finalizer():
            try:
                container.stop()
                logger.info('MySQL container stopped')
            except Exception as e:
                logger.warning(f'Error stopping container: {e}')

        request.addfinalizer(finalizer)
        return container

    except Exception as e:
        logger.error(f'Error setting up mysql container: {e}')
        try:
            container.stop()
        except Exception:
            pass
        raise


def drop_all_tables(cn):
    cn.execute('SET FOREIGN_KEY_CHECKS = 0')
    for table in cn.get_tables():
        cn.execute(f'DROP TABLE IF EXISTS {cn.quote_identifier(table)}')
    cn.execute('SET FOREIGN_KEY_CHECKS = 1')


@pytest.fixture
def mysql_conn(mysql_docker):
    """MySQL connection holding the library schema, emptied afterwards."""
    cn = db.connect('mysql', config=config)
    drop_all_tables(cn)
    create_library(cn.get_schema())
    try:
        yield cn
    finally:
        drop_all_tables(cn)
        cn.close()
