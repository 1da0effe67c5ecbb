# -*- coding: utf-8 -*-
"""
Content blocks (CMS) – resolution, caching and invalidation.

בלוק תוכן מזוהה לפי (section, blockKey) ומחזיק value (עברית) ו-valueEn.
הקריאות הציבוריות עוברות דרך ContentBlockCache:
  - cache אחד לכל הבלוקים + cache לכל section
  - טעינה קרה אחת בכל רגע (single-flight); קוראים במקביל מחכים ומשתמשים בתוצאה
  - כל מוטציה של אדמין מבטלת את ה-cache הרלוונטי
כשאין ערך ב-CMS נופלים לברירת המחדל של i18n.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from . import i18n, storage
from .json_store import StorageError
from .validators import ValidationError

LOGGER = logging.getLogger(__name__)

Block = Dict[str, Any]

CACHE_TTL_SECONDS = int(os.getenv("CONTENT_CACHE_TTL", "300"))

_EDITABLE_FIELDS = ("section", "blockKey", "value", "valueEn", "type", "isActive", "sortOrder")


def _sort_key(block: Block) -> Tuple[int, str]:
    try:
        order = int(block.get("sortOrder") or 0)
    except (TypeError, ValueError):
        order = 0
    return order, str(block.get("blockKey") or "")


def resolve_value(block: Optional[Block], lang: str) -> str:
    if not block:
        return ""
    if i18n.normalize_lang(lang) == "en":
        return block.get("valueEn") or block.get("value") or ""
    return block.get("value") or ""


class ContentBlockCache:
    """In-process cache over the content_blocks collection."""

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS,
                 loader: Optional[Callable[[], List[Block]]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self._loader = loader or storage.content_blocks.all
        self._clock = clock
        self._lock = threading.Lock()
        self._load_lock = threading.Lock()
        self._all: Optional[Tuple[float, List[Block]]] = None
        self._sections: Dict[str, Tuple[float, List[Block]]] = {}
        # עולה בכל invalidate כדי שטעינה שהתחילה לפני כן לא תכתוב נתון ישן
        self._generation = 0
        self.loads = 0

    def _fresh(self, entry: Optional[Tuple[float, List[Block]]]) -> Optional[List[Block]]:
        if entry is None:
            return None
        stamp, blocks = entry
        if self.ttl and self._clock() - stamp > self.ttl:
            return None
        return blocks

    # ---- reads ----
    def all_blocks(self) -> List[Block]:
        blocks = self._load_all()
        return list(blocks) if blocks is not None else []

    def _load_all(self) -> Optional[List[Block]]:
        """None when the loader failed."""
        with self._lock:
            cached = self._fresh(self._all)
        if cached is not None:
            return cached

        with self._load_lock:
            with self._lock:
                cached = self._fresh(self._all)
                generation = self._generation
            if cached is not None:
                return cached
            try:
                blocks = sorted(self._loader(), key=_sort_key)
            except (StorageError, OSError) as exc:
                # לא שומרים כשל ב-cache; הקריאה הבאה תנסה שוב
                LOGGER.error("loading content blocks failed: %s", exc)
                return None
            self.loads += 1
            with self._lock:
                if generation == self._generation:
                    self._all = (self._clock(), blocks)
            return blocks

    def section_blocks(self, section: str) -> List[Block]:
        with self._lock:
            cached = self._fresh(self._sections.get(section))
            generation = self._generation
        if cached is not None:
            return list(cached)
        loaded = self._load_all()
        if loaded is None:
            return []
        blocks = [b for b in loaded if b.get("section") == section]
        with self._lock:
            if generation == self._generation:
                self._sections[section] = (self._clock(), blocks)
        return list(blocks)

    def is_cached(self, section: Optional[str] = None) -> bool:
        with self._lock:
            if section is None:
                return self._fresh(self._all) is not None
            return self._fresh(self._sections.get(section)) is not None

    # ---- invalidation ----
    def invalidate(self, sections: Iterable[Optional[str]] = ()) -> None:
        """Drop the all-blocks cache plus the given sections."""
        with self._lock:
            self._generation += 1
            self._all = None
            for section in sections:
                if section:
                    self._sections.pop(section, None)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._all = None
            self._sections.clear()


CACHE = ContentBlockCache()


# ------------------------------
# קריאה
# ------------------------------
def all_blocks(active_only: bool = False) -> List[Block]:
    blocks = CACHE.all_blocks()
    if active_only:
        blocks = [b for b in blocks if b.get("isActive", True)]
    return blocks


def section_blocks(section: str, active_only: bool = False) -> List[Block]:
    blocks = CACHE.section_blocks(section)
    if active_only:
        blocks = [b for b in blocks if b.get("isActive", True)]
    return blocks


def get_block(section: str, block_key: str) -> Optional[Block]:
    for block in CACHE.section_blocks(section):
        if block.get("blockKey") == block_key:
            return block
    return None


def get_value(section: str, block_key: str, lang: str = "he") -> str:
    return resolve_value(get_block(section, block_key), lang)


def get_content(section: str, block_key: str, lang: str = "he") -> Optional[str]:
    """Active blocks only; None when the block is missing or empty."""
    block = get_block(section, block_key)
    if not block or not block.get("isActive", True):
        return None
    return resolve_value(block, lang) or None


def cms_text(section: str, block_key: str, fallback: str = "", lang: str = "he") -> str:
    """CMS value, else the i18n default for "<section>.<blockKey>", else *fallback*."""
    value = get_content(section, block_key, lang)
    if value:
        return value
    key = f"{section}.{block_key}"
    default = i18n.t(key, lang)
    if default != key:
        return default
    return fallback


def section_map(section: str, lang: str = "he") -> Dict[str, str]:
    return {
        b["blockKey"]: resolve_value(b, lang)
        for b in section_blocks(section, active_only=True)
        if b.get("blockKey")
    }


def sections() -> List[str]:
    seen: List[str] = []
    for block in all_blocks():
        name = block.get("section")
        if name and name not in seen:
            seen.append(name)
    return seen


# ------------------------------
# מוטציות (אדמין) – כל אחת מבטלת cache
# ------------------------------
def _editable(data: Mapping[str, Any]) -> Block:
    return {k: data[k] for k in _EDITABLE_FIELDS if k in data}


def create_block(data: Mapping[str, Any]) -> Block:
    fields = _editable(data)
    section = (fields.get("section") or "").strip() if isinstance(fields.get("section"), str) else ""
    block_key = (fields.get("blockKey") or "").strip() if isinstance(fields.get("blockKey"), str) else ""
    if not section or not block_key:
        raise ValidationError(["section ו-blockKey הם שדות חובה"])
    if storage.content_blocks.find_one(section=section, blockKey=block_key):
        raise ValidationError([f"בלוק {section}.{block_key} כבר קיים"])
    fields.update(section=section, blockKey=block_key)
    fields.setdefault("value", "")
    fields.setdefault("isActive", True)
    block = storage.content_blocks.create(fields)
    CACHE.invalidate([section])
    return block


def update_block(block_id: str, changes: Mapping[str, Any]) -> Optional[Block]:
    existing = storage.content_blocks.get(block_id)
    if not existing:
        return None
    fields = _editable(changes)
    new_section = fields.get("section", existing.get("section"))
    new_key = fields.get("blockKey", existing.get("blockKey"))
    if (new_section, new_key) != (existing.get("section"), existing.get("blockKey")):
        clash = storage.content_blocks.find_one(section=new_section, blockKey=new_key)
        if clash and clash["id"] != existing["id"]:
            raise ValidationError([f"בלוק {new_section}.{new_key} כבר קיים"])
    updated = storage.content_blocks.update(block_id, fields)
    CACHE.invalidate([existing.get("section"), new_section])
    return updated


def delete_block(block_id: str) -> bool:
    existing = storage.content_blocks.get(block_id)
    if not existing:
        return False
    deleted = storage.content_blocks.delete(block_id)
    CACHE.invalidate([existing.get("section")])
    return deleted


def bulk_upsert(blocks: Iterable[Mapping[str, Any]]) -> List[Block]:
    items = list(blocks)
    errors = [
        f"פריט {idx}: section ו-blockKey הם שדות חובה"
        for idx, item in enumerate(items)
        if not isinstance(item, Mapping) or not item.get("section") or not item.get("blockKey")
    ]
    if errors:
        raise ValidationError(errors)
    results: List[Block] = []
    try:
        for item in items:
            fields = _editable(item)
            match = {"section": fields.pop("section"), "blockKey": fields.pop("blockKey")}
            record, _ = storage.content_blocks.upsert(match, fields, defaults={"value": "", "isActive": True})
            results.append(record)
    finally:
        CACHE.clear()
    LOGGER.info("bulk upsert of %d content blocks", len(results))
    return results
