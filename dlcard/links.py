"""Link Issuer: time-limited download URLs for stored objects.

Flow Diagram — issue and follow a link
======================================
::
    ┌─────────────┐
    │ issue_url() │
    │ (locator)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ nanoid token│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ SETEX       │
    │ dllink:tok  │
    │ (TTL)       │
    └──────┬──────┘
           ▼
    BASE_URL/dl/<token>
           │
           ▼   GET /dl/<token>
    ┌─────────────┐
    │ resolve()   │──── expired ──▶ None (404)
    └──────┬──────┘
           ▼
    STORAGE_BASE_URL/<locator> (307)

Key Behaviours
===============
- Tokens are 21-character nanoid strings by default, unguessable in practice.
- A link stops resolving once its Redis key expires.
- Backend errors surface as LinkIssueError.
"""

import abc
from urllib.parse import quote

import redis.asyncio as redis
from nanoid import generate
from redis.exceptions import RedisError

from dlcard.config import Settings

__all__ = ["LinkIssuer", "LinkIssueError", "RedisLinkIssuer"]

TOKEN_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


class LinkIssueError(Exception):
    """Raised when a download link cannot be produced."""


class LinkIssuer(abc.ABC):
    @abc.abstractmethod
    async def issue_url(self, locator: str) -> str:
        """Return a time-limited URL for the object at locator."""


class RedisLinkIssuer(LinkIssuer):
    def __init__(self, cache: redis.Redis, settings: Settings):
        self._cache = cache
        self._settings = settings

    async def issue_url(self, locator: str) -> str:
        if not locator:
            raise LinkIssueError("empty locator")

        token = generate(TOKEN_ALPHABET, self._settings.LINK_TOKEN_LENGTH)
        try:
            await self._cache.setex(self._key(token), self._settings.LINK_TTL_SECONDS, locator)
        except RedisError as exc:
            raise LinkIssueError(f"could not store link token: {exc}") from exc
        return f"{self._settings.BASE_URL.rstrip('/')}/dl/{token}"

    async def resolve(self, token: str) -> str | None:
        """Return the storage URL behind a live token, None once it has expired."""
        try:
            locator = await self._cache.get(self._key(token))
        except RedisError as exc:
            raise LinkIssueError(f"could not read link token: {exc}") from exc
        if locator is None:
            return None
        return f"{self._settings.STORAGE_BASE_URL.rstrip('/')}/{quote(locator.lstrip('/'))}"

    def _key(self, token: str) -> str:
        return f"{self._settings.LINK_KEY_PREFIX}:{token}"
