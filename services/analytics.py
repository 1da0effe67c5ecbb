# -*- coding: utf-8 -*-
"""
אנליטיקה בסיסית – אירועים ביומן יומי (JSON Lines) תחת <DATA_FOLDER>/analytics.

- צפיות (view) נספרות פעם ב-30 דק' לכל סשן ויעד.
- קליקים נספרים תמיד.
"""

import json
import logging
import os
import re
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from flask import request, session

from . import storage
from .validators import ValidationError

LOGGER = logging.getLogger(__name__)

EVENTS = ("view", "click_call", "click_whatsapp", "cta_click", "chat_open")
VIEW_DEDUP_SECONDS = 30 * 60
MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
DAILY_FILE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.jsonl$")


def analytics_dir() -> str:
    path = os.path.join(str(storage.data_folder()), "analytics")
    os.makedirs(path, exist_ok=True)
    return path


def _daily_path(dt: Optional[datetime] = None) -> str:
    dt = dt or datetime.now(timezone.utc)
    return os.path.join(analytics_dir(), dt.strftime("%Y-%m-%d") + ".jsonl")


def log_event(event: str, target_id: str, page_path: Optional[str] = None) -> bool:
    """רושם אירוע; False כשהאירוע לא נספר (צפייה כפולה / קלט חסר)."""
    if event not in EVENTS or not target_id:
        return False

    if event == "view":
        last_views = session.get("last_views", {})
        now = time.time()
        key = f"v:{target_id}"
        if now - last_views.get(key, 0) < VIEW_DEDUP_SECONDS:
            return False
        last_views[key] = now
        session["last_views"] = last_views

    rec = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "event": event,
        "target_id": str(target_id),
        "sid": session.get("sid"),
        "ua": request.headers.get("User-Agent", "")[:200],
        "path": page_path or request.path,
    }
    try:
        with open(_daily_path(), "a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
    except OSError as e:
        LOGGER.warning("analytics write failed: %s", e)
        return False
    return True


def _iter_file(path: str) -> Iterator[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue
    except FileNotFoundError:
        return


def iter_month_events(month: str) -> Iterator[Dict[str, Any]]:
    """month = YYYY-MM"""
    folder = analytics_dir()
    prefix = month + "-"
    for name in sorted(os.listdir(folder)):
        if name.startswith(prefix) and DAILY_FILE_RE.match(name):
            yield from _iter_file(os.path.join(folder, name))


def available_months() -> List[str]:
    # קבצים בפורמט YYYY-MM-DD.jsonl
    months = {name[:7] for name in os.listdir(analytics_dir()) if DAILY_FILE_RE.match(name)}
    return sorted(months, reverse=True)


def aggregate(events: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    """target_id -> {event: count}"""
    agg: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for e in events:
        target = e.get("target_id")
        if target and e.get("event") in EVENTS:
            agg[target][e["event"]] += 1
    return {k: dict(v) for k, v in agg.items()}


def month_summary(month: Optional[str] = None) -> Dict[str, Any]:
    month = (month or "").strip() or datetime.now(timezone.utc).strftime("%Y-%m")
    if not MONTH_RE.match(month):
        raise ValidationError(["month must be YYYY-MM"], title="Invalid month")
    per_target = aggregate(iter_month_events(month))
    totals: Dict[str, int] = defaultdict(int)
    for counts in per_target.values():
        for event, n in counts.items():
            totals[event] += n
    return {"month": month, "totals": dict(totals), "targets": per_target, "months": available_months()}
