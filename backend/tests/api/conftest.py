"""API test fixtures: app factory with fake providers + httpx client.

Invariants:
    - Every test gets a fresh FastAPI app (mount() is single-use per app)
    - Providers are FakeProvider instances; no network or database
    - The encryptor uses a fixed key so bodies can be decrypted in assertions
"""

import pytest
from httpx import ASGITransport, AsyncClient

from billing.config import Settings
from billing.core.encryption import ResponseEncryptor
from billing.main import create_app

from tests.fakes import FakeProvider

TEST_KEY = bytes(range(64))


@pytest.fixture
def encryptor():
    return ResponseEncryptor(TEST_KEY)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        log_format="text",
    )


@pytest.fixture
def document_store():
    return FakeProvider("document_store")


@pytest.fixture
def relational_store():
    return FakeProvider("relational_store")


@pytest.fixture
def build_app(settings, document_store, relational_store, encryptor):
    """Factory: build an app, overriding any create_app() keyword."""
    def _build(**overrides):
        kwargs = {
            "document_store": document_store,
            "relational_store": relational_store,
            "encryptor": encryptor,
        }
        kwargs.update(overrides)
        return create_app(settings, **kwargs)
    return _build


@pytest.fixture
def app(build_app):
    return build_app()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

