# -*- coding: utf-8 -*-
"""
JSON-file collections – שכבת האחסון של האתר.

כל אוסף נשמר כקובץ <DATA_FOLDER>/<name>.json שמכיל רשימת רשומות.
לכל רשומה: id (uuid4), createdAt, updatedAt (ISO-8601 UTC).
הכתיבה אטומית (json_store.atomic_write_json) עם נעילה לכל קובץ.
"""

from __future__ import annotations

import logging
import math
import os
import re
import unicodedata
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from flask import current_app, has_app_context

from .json_store import atomic_write_json, read_json

LOGGER = logging.getLogger(__name__)

Record = Dict[str, Any]

_PROTECTED_FIELDS = ("id", "createdAt")


def data_folder() -> Path:
    if has_app_context():
        folder = current_app.config.get("DATA_FOLDER")
        if folder:
            return Path(folder)
    return Path(os.environ.get("DATA_FOLDER") or "data")


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_iso(value: Any) -> Optional[datetime]:
    """ISO string -> aware datetime (UTC); None כשהערך לא תקין."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class Collection:
    """A named list of records stored in one JSON file."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Collection({self.name!r})"

    @property
    def path(self) -> Path:
        return data_folder() / f"{self.name}.json"

    # ---- reads ----
    def all(self) -> List[Record]:
        return [r for r in read_json(self.path, list) if isinstance(r, dict)]

    def get(self, record_id: Any) -> Optional[Record]:
        if record_id is None:
            return None
        rid = str(record_id)
        for record in self.all():
            if str(record.get("id")) == rid:
                return record
        return None

    def find_one(self, **fields: Any) -> Optional[Record]:
        for record in self.all():
            if all(record.get(k) == v for k, v in fields.items()):
                return record
        return None

    def filter(self, predicate: Callable[[Record], bool]) -> List[Record]:
        return [r for r in self.all() if predicate(r)]

    # ---- writes ----
    def create(self, data: Mapping[str, Any]) -> Record:
        stamp = now_iso()
        record = {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}
        record["id"] = str(uuid.uuid4())
        record["createdAt"] = stamp
        record["updatedAt"] = stamp
        with atomic_write_json(self.path, list) as items:
            items.append(record)
        LOGGER.debug("%s: created %s", self.name, record["id"])
        return record

    def update(self, record_id: Any, changes: Mapping[str, Any]) -> Optional[Record]:
        rid = str(record_id)
        with atomic_write_json(self.path, list) as items:
            for idx, record in enumerate(items):
                if not isinstance(record, dict) or str(record.get("id")) != rid:
                    continue
                merged = dict(record)
                merged.update({k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS})
                merged["updatedAt"] = now_iso()
                items[idx] = merged
                return merged
        return None

    def increment(self, record_id: Any, field: str, by: int = 1) -> Optional[Record]:
        """Add *by* to a numeric field under the collection lock."""
        rid = str(record_id)
        with atomic_write_json(self.path, list) as items:
            for record in items:
                if isinstance(record, dict) and str(record.get("id")) == rid:
                    try:
                        current = int(record.get(field) or 0)
                    except (TypeError, ValueError):
                        current = 0
                    record[field] = current + by
                    return dict(record)
        return None

    def delete(self, record_id: Any) -> bool:
        rid = str(record_id)
        with atomic_write_json(self.path, list) as items:
            before = len(items)
            items[:] = [r for r in items if not (isinstance(r, dict) and str(r.get("id")) == rid)]
            return len(items) != before

    def delete_where(self, predicate: Callable[[Record], bool]) -> int:
        with atomic_write_json(self.path, list) as items:
            before = len(items)
            items[:] = [r for r in items if not (isinstance(r, dict) and predicate(r))]
            return before - len(items)

    def upsert(self, match: Mapping[str, Any], data: Mapping[str, Any],
               defaults: Optional[Mapping[str, Any]] = None) -> Tuple[Record, bool]:
        """Update the first record matching *match* or create one. Returns (record, created).

        *defaults* only apply to a newly created record.
        """
        stamp = now_iso()
        with atomic_write_json(self.path, list) as items:
            for idx, record in enumerate(items):
                if isinstance(record, dict) and all(record.get(k) == v for k, v in match.items()):
                    merged = dict(record)
                    merged.update({k: v for k, v in data.items() if k not in _PROTECTED_FIELDS})
                    merged["updatedAt"] = stamp
                    items[idx] = merged
                    return merged, False
            record = dict(defaults or {})
            record.update(data)
            record.update(match)
            record["id"] = str(uuid.uuid4())
            record["createdAt"] = stamp
            record["updatedAt"] = stamp
            items.append(record)
            return record, True


# ------------------------------
# אוספים
# ------------------------------
users = Collection("users")
projects = Collection("projects")
leads = Collection("leads")
lead_notes = Collection("lead_notes")
lead_reminders = Collection("lead_reminders")
pages = Collection("pages")
media = Collection("media")
mini_sites = Collection("mini_sites")
content_blocks = Collection("content_blocks")
site_stats = Collection("site_stats")
settings = Collection("settings")
translations = Collection("translations")
templates = Collection("templates")
languages = Collection("languages")
investment_zones = Collection("investment_zones")
case_studies = Collection("case_studies")


# ------------------------------
# הגדרות אתר (אובייקט יחיד)
# ------------------------------
SITE_SETTINGS_FIELDS = (
    "brandName", "email", "phone", "address", "website",
    "logoUrl", "socialInstagram", "socialFacebook", "socialLinkedin", "socialWhatsapp",
)


def _site_settings_path() -> Path:
    return data_folder() / "site_settings.json"


def get_site_settings() -> Optional[Record]:
    data = read_json(_site_settings_path(), dict)
    return data or None


def update_site_settings(changes: Mapping[str, Any]) -> Record:
    with atomic_write_json(_site_settings_path(), dict) as data:
        if not data:
            data.update({field: None for field in SITE_SETTINGS_FIELDS})
            data["id"] = str(uuid.uuid4())
        for field in SITE_SETTINGS_FIELDS:
            if field in changes:
                data[field] = changes[field]
        data["updatedAt"] = now_iso()
        return dict(data)


# ------------------------------
# slug + עימוד
# ------------------------------
def slugify(value: str) -> str:
    """Kebab slug that keeps Hebrew letters."""
    value = unicodedata.normalize("NFKC", str(value or "")).strip().lower()
    value = re.sub(r"[^\w\s-]", "", value)
    value = re.sub(r"[\s_-]+", "-", value)
    return value.strip("-")


def unique_slug(collection: Collection, slug: str, exclude_id: Any = None) -> str:
    """slug, slug-2, slug-3 ... – הראשון שלא תפוס."""
    taken = {
        r.get("slug")
        for r in collection.all()
        if exclude_id is None or str(r.get("id")) != str(exclude_id)
    }
    candidate = slug
    suffix = 2
    while candidate in taken:
        candidate = f"{slug}-{suffix}"
        suffix += 1
    return candidate


def _int_arg(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def paginate(items: List[Record], page: Any = None, limit: Any = None) -> Dict[str, Any]:
    """page >= 1, limit בין 1 ל-100 (ברירת מחדל 20)."""
    page_num = max(1, _int_arg(page, 1) or 1)
    per_page = min(100, max(1, _int_arg(limit, 20) or 20))
    total = len(items)
    start = (page_num - 1) * per_page
    return {
        "success": True,
        "data": items[start:start + per_page],
        "total": total,
        "page": page_num,
        "pages": math.ceil(total / per_page),
    }
