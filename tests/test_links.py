"""Tests for the Redis-backed link issuer."""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from dlcard.links import LinkIssueError, RedisLinkIssuer


@pytest.mark.asyncio
async def test_issue_url_stores_token_with_ttl(fake_redis, settings) -> None:
    issuer = RedisLinkIssuer(fake_redis, settings)
    url = await issuer.issue_url("x1.zip")

    assert url.startswith("http://test/dl/")
    token = url.rsplit("/", 1)[1]
    assert len(token) == settings.LINK_TOKEN_LENGTH
    assert token.isalnum()

    key = f"{settings.LINK_KEY_PREFIX}:{token}"
    assert await fake_redis.get(key) == "x1.zip"
    ttl = await fake_redis.ttl(key)
    assert 0 < ttl <= settings.LINK_TTL_SECONDS


@pytest.mark.asyncio
async def test_each_issue_gets_a_fresh_token(fake_redis, settings) -> None:
    issuer = RedisLinkIssuer(fake_redis, settings)
    urls = {await issuer.issue_url("x1.zip") for _ in range(20)}
    assert len(urls) == 20


@pytest.mark.asyncio
async def test_resolve_live_and_expired_tokens(fake_redis, settings) -> None:
    issuer = RedisLinkIssuer(fake_redis, settings)
    token = (await issuer.issue_url("releases/x1 v2.zip")).rsplit("/", 1)[1]

    assert await issuer.resolve(token) == "https://files.example.com/bucket/releases/x1%20v2.zip"

    await fake_redis.delete(f"{settings.LINK_KEY_PREFIX}:{token}")
    assert await issuer.resolve(token) is None


@pytest.mark.asyncio
async def test_empty_locator_is_rejected(fake_redis, settings) -> None:
    with pytest.raises(LinkIssueError):
        await RedisLinkIssuer(fake_redis, settings).issue_url("")


@pytest.mark.asyncio
async def test_backend_errors_raise_link_issue_error(settings) -> None:
    broken = AsyncMock(spec=redis.Redis)
    broken.setex = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    broken.get = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    issuer = RedisLinkIssuer(broken, settings)

    with pytest.raises(LinkIssueError):
        await issuer.issue_url("x1.zip")
    with pytest.raises(LinkIssueError):
        await issuer.resolve("whatever")
