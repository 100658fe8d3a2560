"""Card Cache: the process's in-memory snapshot of items and cards.

State Diagram — ensure_initialized()
====================================
::
    ┌─────────────┐   first call    ┌─────────────┐
    │ NOT_STARTED │ ──────────────▶ │ IN_PROGRESS │
    └─────────────┘                 └──────┬──────┘
                              load ok      │      load error / timeout
                          ┌────────────────┴───────────────┐
                          ▼                                ▼
                   ┌─────────────┐                  ┌─────────────┐
                   │    DONE     │                  │   FAILED    │
                   │  (no-op on  │                  │ (next call  │
                   │  later calls)│                 │  retries)   │
                   └─────────────┘                  └─────────────┘

Key Behaviours
===============
- Initialization is single-flight: callers arriving while a load is in
  progress wait on the init lock and then see that load's result, success
  or failure.
- A failed load never latches into DONE; the cache stays empty and the
  caller gets the error.
- refresh_cards() reloads cards only. Items are loaded once per process.
- Every store call is bounded by the configured timeout.
"""

import asyncio
import logging

from dlcard.enums import InitState
from dlcard.schemas import DownloadCard, Item
from dlcard.store import MetadataStore, MetadataStoreError

__all__ = ["CardCache"]


class CardCache:
    def __init__(self, store: MetadataStore, timeout: float, logger: logging.Logger | logging.LoggerAdapter):
        self._store = store
        self._timeout = timeout
        self._logger = logger
        self._items: dict[str, Item] = {}
        self._cards: dict[str, DownloadCard] = {}
        self._state = InitState.NOT_STARTED
        self._init_lock = asyncio.Lock()
        self._finished_loads = 0
        self._last_error: BaseException | None = None

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is InitState.DONE

    @property
    def cards(self) -> dict[str, DownloadCard]:
        return self._cards

    @property
    def items(self) -> dict[str, Item]:
        return self._items

    async def ensure_initialized(self) -> None:
        """Load items and cards once per process.

        Callers that queued behind a load which then failed get that failure
        instead of starting another load; only a later call retries.

        Raises:
            MetadataStoreError: If either collection cannot be loaded.
            TimeoutError: If the store does not answer in time.
        """
        if self._state is InitState.DONE:
            return

        finished_loads = self._finished_loads
        async with self._init_lock:
            if self._state is InitState.DONE:
                return
            if self._state is InitState.FAILED and self._finished_loads != finished_loads:
                raise MetadataStoreError(f"card cache initialization failed: {self._last_error!r}")

            if self._state is InitState.FAILED:
                self._logger.warning("Retrying card cache initialization after an earlier failure")
            self._state = InitState.IN_PROGRESS
            try:
                items = await asyncio.wait_for(self._store.load_items(), self._timeout)
                cards = await asyncio.wait_for(self._store.load_cards(), self._timeout)
            except BaseException as exc:
                self._finished_loads += 1
                self._state = InitState.FAILED
                self._last_error = exc
                raise

            self._items = items
            self._cards = cards
            self._last_error = None
            self._finished_loads += 1
            self._state = InitState.DONE
            self._logger.info(f"Card cache initialized: {len(items)} items, {len(cards)} cards")

    async def refresh_cards(self) -> None:
        """Replace the cached cards with the store's current collection."""
        self._cards = await asyncio.wait_for(self._store.load_cards(), self._timeout)

    def find_card(self, key: str) -> DownloadCard | None:
        return self._cards.get(key)

    def find_item(self, code: str) -> Item | None:
        return self._items.get(code)
