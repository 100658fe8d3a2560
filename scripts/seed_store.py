#!/usr/bin/env python3
"""
Metadata store management tool.

Loads item and card definitions from JSON files into the Redis metadata store,
or prints what is currently stored. The running service picks up card changes
on the next redemption; item changes need a restart.

Usage:
    python scripts/seed_store.py load --items items.json --cards cards.json
    python scripts/seed_store.py show
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import redis.asyncio as redis
from pydantic import TypeAdapter, ValidationError

from dlcard.config import get_settings
from dlcard.schemas import DownloadCard, Item
from dlcard.store import MetadataStoreError, RedisMetadataStore, dump_collection


def _read_collection(path: str, model: type) -> dict:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    records = TypeAdapter(dict[str, model]).validate_python(raw)
    for key, record in records.items():
        record_key = record.code if model is Item else record.key
        if record_key != key:
            raise ValueError(f"{path}: entry {key!r} holds a record keyed {record_key!r}")
    return records


def _normalize_cards(cards: dict[str, DownloadCard]) -> dict[str, DownloadCard]:
    normalized = {}
    for card in cards.values():
        if not card.key.isascii() or not card.key.isalnum() or len(card.key) > 8:
            raise ValueError(f"card key {card.key!r} must be 1-8 ASCII letters or digits")
        if card.count_now > card.count_max:
            raise ValueError(f"card {card.key!r} has countNow above countMax")
        normalized[card.key.upper()] = card.model_copy(update={"key": card.key.upper()})
    return normalized


async def load(args: argparse.Namespace, store: RedisMetadataStore) -> None:
    if args.items:
        items = _read_collection(args.items, Item)
        await store.save_items(items)
        print(f"Stored {len(items)} items")

    if args.cards:
        cards = _normalize_cards(_read_collection(args.cards, DownloadCard))
        known_items = await store.load_items()
        missing = sorted({card.item_code for card in cards.values()} - set(known_items))
        if missing and not args.force:
            raise ValueError(f"cards reference unknown items: {', '.join(missing)} (use --force to store anyway)")
        await store.update_cards(cards)
        print(f"Stored {len(cards)} cards")


async def show(args: argparse.Namespace, store: RedisMetadataStore) -> None:
    print("# items")
    print(dump_collection(await store.load_items()))
    print("# cards")
    print(dump_collection(await store.load_cards()))


async def main() -> int:
    parser = argparse.ArgumentParser(description="Manage download cards and items")
    parser.add_argument("--redis-url", default=None, help="Redis URL (defaults to REDIS_URL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser("load", help="Replace stored items and/or cards from JSON files")
    load_parser.add_argument("--items", help="Path to items JSON (object keyed by item code)")
    load_parser.add_argument("--cards", help="Path to cards JSON (object keyed by card key)")
    load_parser.add_argument("--force", action="store_true", help="Store cards even if an item is unknown")
    load_parser.set_defaults(handler=load)

    show_parser = subparsers.add_parser("show", help="Print the stored items and cards")
    show_parser.set_defaults(handler=show)

    args = parser.parse_args()
    settings = get_settings()
    cache = redis.from_url(args.redis_url or settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    store = RedisMetadataStore(cache, settings)

    try:
        await args.handler(args, store)
    except (MetadataStoreError, ValidationError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await cache.aclose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
