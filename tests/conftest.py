"""
Shared test configuration and fixtures.

Provides a fake CouchDB server on a local port and a provider configuration
pointing at it with short retry and debounce delays.
"""

import pytest
from aiohttp.test_utils import TestServer
from fake_couchdb import FakeCouchDb

from couchdb_config import CouchDbConfig


@pytest.fixture
async def couch():
    """Fake CouchDB serving the 'settings' database."""
    fake = FakeCouchDb("settings")
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.host = server.host
    fake.port = server.port
    yield fake
    fake.close_all()
    await server.close()


@pytest.fixture
def couch_config(couch):
    """Provider config for the fake server with fast timings."""
    return CouchDbConfig(
        database=couch.database,
        host=couch.host,
        port=couch.port,
        retry_delay=0.05,
        debounce_delay=0.05,
        request_timeout=5.0,
    )
