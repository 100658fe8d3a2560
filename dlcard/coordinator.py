"""Issuance Coordinator: redeem a download card and hand back a link.

This module owns the only concurrency hazard in the service. Every redemption
that gets past the fast-path key check runs inside one process-wide lock that
spans the card refresh, the limit check, the increment, and the persist call,
so two concurrent requests can never both take the last remaining download.

Flow Diagram — redeem()
=======================
::
    ┌─────────────┐
    │ ensure_     │── load fails ──▶ NOT_READY
    │ initialized │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ normalize + │── unknown ─────▶ INVALID_KEY
    │ fast lookup │
    └──────┬──────┘
           ▼
    ╔═════════════════════ lock ═════════════════════╗
    ║ refresh_cards()      ── fails ─▶ PERSISTENCE_FAILURE
    ║ re-lookup            ── gone ──▶ INVALID_KEY
    ║ count_now >= max     ─────────▶ LIMIT_EXCEEDED
    ║ count_now += 1
    ║ update_cards(all)    ── fails ─▶ PERSISTENCE_FAILURE (rolled back)
    ║ find_item()          ── gone ──▶ INTEGRITY_ERROR
    ║ issue_url(locator)   ── fails ─▶ ISSUANCE_FAILURE
    ╚═════════════════════════════════════════════════╝
           ▼
        SUCCESS (url, item name)

How to Use
===========
**Step 1 — Build once per process**::
    coordinator = IssuanceCoordinator(store, issuer, settings, logger)

**Step 2 — Redeem**::
    result = await coordinator.redeem(form_value)
    if result.ok:
        print(result.url, result.item_name)

Key Behaviours
===============
- Keys are accepted only as 0-8 ASCII alphanumerics and compared uppercase.
- The lock is process-local. Several instances sharing one store can still
  lose concurrent updates (last write wins on the card blob).
- No exception escapes redeem(); every path maps to a RedemptionOutcome.
"""

import asyncio
import logging
import re
import time

from prometheus_client import Counter, Histogram

from dlcard.card_cache import CardCache
from dlcard.config import Settings
from dlcard.enums import RedemptionOutcome
from dlcard.links import LinkIssuer, LinkIssueError
from dlcard.schemas import RedemptionResult
from dlcard.store import MetadataStore, MetadataStoreError

__all__ = ["IssuanceCoordinator", "normalize_card_key", "INVALID_KEY"]

INVALID_KEY = ""
_CARD_KEY_PATTERN = re.compile(r"[0-9A-Za-z]{0,8}")


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

REDEMPTIONS_TOTAL = Counter(
    "dlcard_redemptions_total",
    "Redemption attempts by outcome",
    ["outcome"],
)
REDEMPTION_DURATION = Histogram(
    "dlcard_redemption_duration_seconds",
    "Time taken to process a redemption attempt",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
CARD_REFRESHES_TOTAL = Counter(
    "dlcard_card_refreshes_total",
    "Card collection reloads performed before a redemption decision",
)


def normalize_card_key(raw_key: str | None) -> str:
    """Return the canonical uppercase key, or INVALID_KEY for anything malformed.

    >>> normalize_card_key("ab12")
    'AB12'
    >>> normalize_card_key("toolong123")
    ''
    """
    if not isinstance(raw_key, str) or not _CARD_KEY_PATTERN.fullmatch(raw_key):
        return INVALID_KEY
    return raw_key.upper()


class IssuanceCoordinator:
    """Decides whether a key may be redeemed and issues one link per redemption.

    The coordinator owns the card cache and the redemption lock. Build one per
    process and share it between requests.
    """

    def __init__(
        self,
        store: MetadataStore,
        issuer: LinkIssuer,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self._store = store
        self._issuer = issuer
        self._logger = logger
        self._store_timeout = settings.STORE_TIMEOUT_SECONDS
        self._issue_timeout = settings.LINK_ISSUE_TIMEOUT_SECONDS
        self._cache = CardCache(store, settings.STORE_TIMEOUT_SECONDS, logger)
        self._lock = asyncio.Lock()

    @property
    def cache(self) -> CardCache:
        return self._cache

    async def redeem(self, raw_key: str | None) -> RedemptionResult:
        start_time = time.perf_counter()
        result = await self._redeem(raw_key)
        REDEMPTION_DURATION.observe(time.perf_counter() - start_time)
        REDEMPTIONS_TOTAL.labels(outcome=result.outcome).inc()
        return result

    async def _redeem(self, raw_key: str | None) -> RedemptionResult:
        try:
            await self._cache.ensure_initialized()
        except (MetadataStoreError, TimeoutError) as exc:
            self._logger.error(f"Could not load items and cards: {exc!r}")
            return RedemptionResult(outcome=RedemptionOutcome.NOT_READY)

        key = normalize_card_key(raw_key)
        self._logger.info(f"Redemption requested: key={key!r}")

        # Unlocked read; re-validated under the lock below.
        if key == INVALID_KEY or self._cache.find_card(key) is None:
            self._logger.info(f"Invalid key: {key!r}")
            return RedemptionResult(outcome=RedemptionOutcome.INVALID_KEY)

        async with self._lock:
            return await self._redeem_locked(key)

    async def _redeem_locked(self, key: str) -> RedemptionResult:
        try:
            await self._cache.refresh_cards()
            CARD_REFRESHES_TOTAL.inc()
        except (MetadataStoreError, TimeoutError) as exc:
            self._logger.error(f"Could not reload card list: {exc!r}")
            return RedemptionResult(outcome=RedemptionOutcome.PERSISTENCE_FAILURE)

        card = self._cache.find_card(key)
        if card is None:
            self._logger.info(f"Key disappeared on refresh: {key!r}")
            return RedemptionResult(outcome=RedemptionOutcome.INVALID_KEY)

        if card.count_now >= card.count_max:
            self._logger.info(f"Count is max: key={key!r} count={card.count_now}/{card.count_max}")
            return RedemptionResult(outcome=RedemptionOutcome.LIMIT_EXCEEDED)

        card.count_now += 1
        try:
            await asyncio.wait_for(self._store.update_cards(self._cache.cards), self._store_timeout)
        except (MetadataStoreError, TimeoutError) as exc:
            card.count_now -= 1
            self._logger.error(f"Could not persist card list for key={key!r}: {exc!r}")
            return RedemptionResult(outcome=RedemptionOutcome.PERSISTENCE_FAILURE)

        item = self._cache.find_item(card.item_code)
        if item is None:
            self._logger.error(f"Card references unknown item: key={key!r} item_code={card.item_code!r}")
            return RedemptionResult(outcome=RedemptionOutcome.INTEGRITY_ERROR)

        try:
            url = await asyncio.wait_for(self._issuer.issue_url(item.locator), self._issue_timeout)
        except (LinkIssueError, TimeoutError) as exc:
            self._logger.error(f"Could not issue URL for item {item.code!r}: {exc!r}")
            return RedemptionResult(outcome=RedemptionOutcome.ISSUANCE_FAILURE)

        self._logger.info(f"Redeemed key={key!r} item={item.code!r} count={card.count_now}/{card.count_max}")
        return RedemptionResult(outcome=RedemptionOutcome.SUCCESS, url=url, item_name=item.name)
