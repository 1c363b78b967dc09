"""
Catalog Interface

The catalog owns vocabulary records; the audio pipeline only reads text
fields and recorded asset paths, and records new asset paths after
generation. `InMemoryCatalog` is the in-process implementation used by the
service wiring and tests.
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .models import AssetKind, ContentItem

logger = logging.getLogger(__name__)


class Catalog(Protocol):
    async def get_item(self, content_id: int) -> Optional[ContentItem]:
        ...

    async def update_assets(
        self,
        content_id: int,
        word_audio: Optional[str] = None,
        example_audio: Optional[str] = None,
        card_image: Optional[str] = None,
    ) -> Optional[ContentItem]:
        """Record new asset paths; None leaves a field unchanged, "" clears it."""
        ...


class InMemoryCatalog:
    """Dict-backed catalog keyed by content id."""

    def __init__(self, items: Optional[Iterable[ContentItem]] = None):
        self._items: Dict[int, ContentItem] = {}
        for item in items or []:
            self._items[item.content_id] = item

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "InMemoryCatalog":
        """
        Build a catalog from card records.

        Accepts the card export format (`id`, `thai`, `chinese`,
        `pronunciation`, `example`, `example_translation`, optional
        `word_audio`/`example_audio`/`card_image`). Records without an id are
        numbered sequentially.
        """
        items: List[ContentItem] = []
        next_id = 1
        for record in records:
            content_id = int(record.get("id") or next_id)
            next_id = max(next_id, content_id) + 1
            items.append(ContentItem(
                content_id=content_id,
                text=record.get("thai") or record.get("text", ""),
                example=record.get("example", ""),
                pronunciation=record.get("pronunciation", ""),
                translation=record.get("chinese") or record.get("translation", ""),
                example_translation=record.get("example_translation", ""),
                word_audio=record.get("word_audio"),
                example_audio=record.get("example_audio"),
                card_image=record.get("card_image"),
            ))
        return cls(items)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryCatalog":
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        records = payload.get("cards", []) if isinstance(payload, dict) else payload
        catalog = cls.from_records(records)
        logger.info(f" Loaded {len(catalog)} catalog items from {Path(path).name}")
        return catalog

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: ContentItem):
        self._items[item.content_id] = item

    async def get_item(self, content_id: int) -> Optional[ContentItem]:
        return self._items.get(content_id)

    async def update_assets(
        self,
        content_id: int,
        word_audio: Optional[str] = None,
        example_audio: Optional[str] = None,
        card_image: Optional[str] = None,
    ) -> Optional[ContentItem]:
        item = self._items.get(content_id)
        if item is None:
            return None
        changes = {}
        for name, value in (("word_audio", word_audio), ("example_audio", example_audio), ("card_image", card_image)):
            if value is not None:
                changes[name] = value or None
        updated = replace(item, **changes)
        self._items[content_id] = updated
        return updated


def recorded_asset(item: ContentItem, kind: AssetKind, text: str) -> Optional[str]:
    """Recorded asset path for `kind` if the item's text for that kind matches `text`."""
    if item.text_for(kind) != text:
        return None
    return item.asset_path_for(kind)
