"""Общие фикстуры тестов."""

import httpx
import pytest

from formrelay.config import Settings
from formrelay.integrations.attio import AttioClient
from helpers import FakeAttio


@pytest.fixture
def settings():
    """Настройки без чтения .env."""
    return Settings(
        _env_file=None,
        ATTIO_TOKEN="test_token",
        ATTIO_INITIAL_STAGE_TITLE="Prospect",
        TALLY_SIGNING_SECRET=None,
        DEBUG=False
    )


@pytest.fixture
def fake_attio():
    return FakeAttio()


@pytest.fixture
def attio_transport(fake_attio):
    return httpx.MockTransport(fake_attio.handler)


@pytest.fixture
async def attio_client(attio_transport):
    client = AttioClient("test_token", transport=attio_transport)
    yield client
    await client.close()
