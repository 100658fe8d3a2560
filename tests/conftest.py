"""Shared pytest fixtures for store, coordinator, and API tests."""

import logging
from typing import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dlcard.config import Settings
from dlcard.coordinator import IssuanceCoordinator
from dlcard.dependencies import _service_manager
from dlcard.main import app
from dlcard.schemas import DownloadCard, Item
from dlcard.store import RedisMetadataStore

from fakes import InMemoryMetadataStore, RecordingLinkIssuer


@pytest.fixture
def settings() -> Settings:
    return Settings(
        BASE_URL="http://test",
        REDIS_URL="redis://localhost:6379/15",
        STORAGE_BASE_URL="https://files.example.com/bucket",
        STORE_TIMEOUT_SECONDS=0.5,
        LINK_ISSUE_TIMEOUT_SECONDS=0.5,
        LINK_TTL_SECONDS=300,
    )


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("dlcard.tests")


@pytest.fixture
def widget() -> Item:
    return Item(code="X1", name="Widget", locator="x1.zip")


@pytest.fixture
def card() -> DownloadCard:
    return DownloadCard(key="AB12", item_code="X1", count_now=2, count_max=3)


@pytest.fixture
def memory_store(widget: Item, card: DownloadCard) -> InMemoryMetadataStore:
    return InMemoryMetadataStore(items={widget.code: widget}, cards={card.key: card})


@pytest.fixture
def issuer() -> RecordingLinkIssuer:
    return RecordingLinkIssuer()


@pytest.fixture
def coordinator(memory_store, issuer, settings, logger) -> IssuanceCoordinator:
    return IssuanceCoordinator(memory_store, issuer, settings, logger)


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest_asyncio.fixture(scope="function")
async def fake_redis(fake_server) -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    client = fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def raw_redis(fake_server) -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Byte-level client on the same server, for writing blobs the service never would."""
    client = fakeredis.FakeAsyncRedis(server=fake_server)
    yield client
    await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def redis_store(fake_redis, settings, widget, card) -> RedisMetadataStore:
    store = RedisMetadataStore(fake_redis, settings)
    await store.save_items({widget.code: widget})
    await store.update_cards({card.key: card})
    return store


@pytest_asyncio.fixture(scope="function")
async def client(fake_redis, settings, redis_store) -> AsyncGenerator[AsyncClient, None]:
    await _service_manager.cleanup()
    await _service_manager.initialize(cache=fake_redis, settings=settings)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await _service_manager.cleanup()
