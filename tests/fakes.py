"""In-process doubles for the metadata store and link issuer."""

import asyncio
from collections import Counter

from dlcard.links import LinkIssuer
from dlcard.schemas import DownloadCard, Item
from dlcard.store import MetadataStore, MetadataStoreError


class InMemoryMetadataStore(MetadataStore):
    """Metadata store double that copies records in and out like a real backend."""

    def __init__(self, items=None, cards=None, delay: float = 0.0):
        self.items: dict[str, Item] = dict(items or {})
        self.cards: dict[str, DownloadCard] = dict(cards or {})
        self.delay = delay
        self.calls: Counter = Counter()
        self.fail_on: set[str] = set()

    async def _call(self, name: str) -> None:
        self.calls[name] += 1
        await asyncio.sleep(self.delay)
        if name in self.fail_on:
            raise MetadataStoreError(f"{name} failed")

    async def load_items(self) -> dict[str, Item]:
        await self._call("load_items")
        return {code: item.model_copy() for code, item in self.items.items()}

    async def load_cards(self) -> dict[str, DownloadCard]:
        await self._call("load_cards")
        return {key: card.model_copy(deep=True) for key, card in self.cards.items()}

    async def update_cards(self, cards: dict[str, DownloadCard]) -> None:
        await self._call("update_cards")
        self.cards = {key: card.model_copy(deep=True) for key, card in cards.items()}


class RecordingLinkIssuer(LinkIssuer):
    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.locators: list[str] = []
        self.error = error
        self.delay = delay

    async def issue_url(self, locator: str) -> str:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.locators.append(locator)
        return f"https://links.example.com/{locator}?n={len(self.locators)}"
