"""Tests for the metadata store management tool."""

import argparse
import json

import pytest

from dlcard.schemas import DownloadCard, Item
from dlcard.store import RedisMetadataStore
from scripts.seed_store import _normalize_cards, _read_collection, load


def test_cards_are_uppercased() -> None:
    cards = _normalize_cards({"ab12": DownloadCard(key="ab12", item_code="X1", count_max=3)})
    assert list(cards) == ["AB12"]
    assert cards["AB12"].key == "AB12"


@pytest.mark.parametrize("key", ["toolong123", "ab-1", ""])
def test_malformed_card_keys_are_rejected(key: str) -> None:
    with pytest.raises(ValueError):
        _normalize_cards({key: DownloadCard(key=key, item_code="X1", count_max=3)})


def test_counter_above_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        _normalize_cards({"K1": DownloadCard(key="K1", item_code="X1", count_now=4, count_max=3)})


def test_read_collection_checks_keys(tmp_path) -> None:
    path = tmp_path / "items.json"
    path.write_text(json.dumps({"X1": {"code": "X2", "name": "Widget", "locator": "x1.zip"}}))
    with pytest.raises(ValueError):
        _read_collection(str(path), Item)


@pytest.mark.asyncio
async def test_load_writes_items_and_cards(tmp_path, fake_redis, settings) -> None:
    items_path = tmp_path / "items.json"
    cards_path = tmp_path / "cards.json"
    items_path.write_text(json.dumps({"X1": {"code": "X1", "name": "Widget", "store": "STATIC", "locator": "x1.zip"}}))
    cards_path.write_text(json.dumps({"ab12": {"key": "ab12", "itemCode": "X1", "countNow": 0, "countMax": 3}}))
    store = RedisMetadataStore(fake_redis, settings)

    await load(argparse.Namespace(items=str(items_path), cards=str(cards_path), force=False), store)

    assert (await store.load_items())["X1"].name == "Widget"
    assert (await store.load_cards())["AB12"].count_max == 3


@pytest.mark.asyncio
async def test_load_refuses_cards_for_unknown_items(tmp_path, fake_redis, settings) -> None:
    cards_path = tmp_path / "cards.json"
    cards_path.write_text(json.dumps({"K1": {"key": "K1", "itemCode": "NOPE", "countMax": 1}}))
    store = RedisMetadataStore(fake_redis, settings)

    with pytest.raises(ValueError):
        await load(argparse.Namespace(items=None, cards=str(cards_path), force=False), store)
    assert await store.load_cards() == {}
