"""Metadata Store: durable holder of the item and card collections.

The store keeps two independent JSON objects, one keyed by item code and one
keyed by card key. Cards are always written back as a whole collection; there
is no partial patch.

Storage Layout
==============
::
    ITEMS_KEY  ("items.json")
    └─ {"<code>": {"code", "name", "store", "locator"}, ...}

    CARDS_KEY  ("cards.json")
    └─ {"<key>": {"key", "itemCode", "countNow", "countMax",
                  "startedAt", "expiredAt"}, ...}

Key Behaviours
===============
- A missing blob loads as an empty collection.
- update_cards() replaces the entire card blob (last write wins).
- Backend errors and malformed payloads surface as MetadataStoreError.
"""

import abc
import json

import redis.asyncio as redis
from pydantic import TypeAdapter
from redis.exceptions import RedisError

from dlcard.config import Settings
from dlcard.schemas import DownloadCard, Item

__all__ = ["MetadataStore", "MetadataStoreError", "RedisMetadataStore"]

_ITEMS_ADAPTER = TypeAdapter(dict[str, Item])
_CARDS_ADAPTER = TypeAdapter(dict[str, DownloadCard])


class MetadataStoreError(Exception):
    """Raised when the Metadata Store cannot be read or written."""


class MetadataStore(abc.ABC):
    """Capabilities the coordinator needs from a storage backend."""

    @abc.abstractmethod
    async def load_items(self) -> dict[str, Item]:
        ...

    @abc.abstractmethod
    async def load_cards(self) -> dict[str, DownloadCard]:
        ...

    @abc.abstractmethod
    async def update_cards(self, cards: dict[str, DownloadCard]) -> None:
        """Replace the whole card collection."""

    async def ping(self) -> bool:
        return True


class RedisMetadataStore(MetadataStore):
    """Metadata Store keeping both collections as JSON strings in Redis."""

    def __init__(self, cache: redis.Redis, settings: Settings):
        self._cache = cache
        self._items_key = settings.ITEMS_KEY
        self._cards_key = settings.CARDS_KEY

    async def load_items(self) -> dict[str, Item]:
        raw = await self._get(self._items_key)
        try:
            return _ITEMS_ADAPTER.validate_json(raw) if raw else {}
        except ValueError as exc:
            raise MetadataStoreError(f"malformed item list in {self._items_key}: {exc}") from exc

    async def load_cards(self) -> dict[str, DownloadCard]:
        raw = await self._get(self._cards_key)
        try:
            return _CARDS_ADAPTER.validate_json(raw) if raw else {}
        except ValueError as exc:
            raise MetadataStoreError(f"malformed card list in {self._cards_key}: {exc}") from exc

    async def update_cards(self, cards: dict[str, DownloadCard]) -> None:
        await self._set(self._cards_key, _CARDS_ADAPTER.dump_json(cards, by_alias=True).decode("utf-8"))

    async def save_items(self, items: dict[str, Item]) -> None:
        await self._set(self._items_key, _ITEMS_ADAPTER.dump_json(items, by_alias=True).decode("utf-8"))

    async def ping(self) -> bool:
        try:
            return bool(await self._cache.ping())
        except RedisError:
            return False

    async def _get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except (RedisError, UnicodeDecodeError) as exc:
            raise MetadataStoreError(f"could not read {key}: {exc}") from exc

    async def _set(self, key: str, payload: str) -> None:
        try:
            await self._cache.set(key, payload)
        except RedisError as exc:
            raise MetadataStoreError(f"could not write {key}: {exc}") from exc


def dump_collection(records: dict) -> str:
    """Pretty-print a collection the way it is stored, for operator tooling."""
    return json.dumps(
        {key: record.model_dump(mode="json", by_alias=True) for key, record in records.items()},
        indent=2,
        sort_keys=True,
    )
