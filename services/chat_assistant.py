# -*- coding: utf-8 -*-
"""
צ'אט האתר ("באנדי") – הקשר פרויקטים, פרומפט מערכת ונרמול הודעות.

ההקשר נבנה מהפרויקטים הפעילים ונשמר ב-cache לחמש דקות;
כל שינוי בפרויקטים (יצירה/עדכון/מחיקה) קורא ל-invalidate_project_context().
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Dict, Iterator, List, Mapping, Optional

from . import ai_client, storage
from .json_store import StorageError

LOGGER = logging.getLogger(__name__)

PROJECT_CONTEXT_TTL_SECONDS = 5 * 60
MAX_HISTORY = 20
MAX_MESSAGE_CHARS = 4000

NO_ACTIVE_PROJECTS = "אין פרויקטים פעילים כרגע."
PROJECTS_UNAVAILABLE = "לא ניתן לטעון מידע על פרויקטים כרגע."

_context_lock = threading.Lock()
_context_cache: Dict[str, Any] = {"text": "", "at": 0.0}


def _format_price(value: Any) -> str:
    try:
        return f"{float(value):,.0f}"
    except (TypeError, ValueError):
        return str(value)


def summarize_project(p: Mapping[str, Any]) -> str:
    parts: List[str] = [f"שם: {p.get('name')}"]
    if p.get("developer"):
        parts.append(f"יזם: {p['developer']}")
    if p.get("location"):
        parts.append(f"מיקום: {p['location']}")
    if p.get("priceFrom"):
        parts.append(f"מחיר מ: {_format_price(p['priceFrom'])} {p.get('priceCurrency') or 'AED'}")
    if p.get("roiPercent"):
        parts.append(f"תשואה: {p['roiPercent']}%")
    if p.get("propertyType"):
        parts.append(f"סוג: {p['propertyType']}")
    if p.get("bedrooms"):
        parts.append(f"חדרים: {p['bedrooms']}")
    if p.get("completionDate"):
        parts.append(f"מסירה: {p['completionDate']}")
    if p.get("ownership"):
        parts.append(f"בעלות: {p['ownership']}")
    if p.get("projectStatus"):
        parts.append(f"סטטוס: {p['projectStatus']}")
    if p.get("tagline"):
        parts.append(f"תיאור קצר: {p['tagline']}")

    plan = p.get("paymentPlan")
    if isinstance(plan, Mapping):
        pp = []
        if plan.get("downPayment"):
            pp.append(f"{plan['downPayment']}% מקדמה")
        if plan.get("duringConstruction"):
            pp.append(f"{plan['duringConstruction']}% בבנייה")
        if plan.get("onHandover"):
            pp.append(f"{plan['onHandover']}% במסירה")
        if pp:
            parts.append("תכנית תשלום: " + ", ".join(pp))

    units = p.get("units")
    if isinstance(units, list) and units:
        types = [u.get("typeHe") or u.get("type") for u in units if isinstance(u, Mapping)]
        types = [t for t in types if t]
        if types:
            parts.append("סוגי יחידות: " + ", ".join(types))

    highlights = p.get("highlights")
    if isinstance(highlights, list) and highlights:
        texts = []
        for h in highlights:
            if not isinstance(h, Mapping):
                continue
            title = h.get("titleHe") or h.get("title")
            if title and h.get("value"):
                texts.append(f"{title}: {h['value']}")
        if texts:
            parts.append("נקודות חשובות: " + "; ".join(texts[:5]))

    if p.get("slug"):
        parts.append(f"קישור: /project/{p['slug']}")
    return " | ".join(parts)


def build_project_context(projects: List[Mapping[str, Any]]) -> str:
    active = [p for p in projects if p.get("status") == "active"]
    if not active:
        return NO_ACTIVE_PROJECTS
    return "\n\n".join(summarize_project(p) for p in active)


def get_project_context(now: Optional[float] = None) -> str:
    now = time.time() if now is None else now
    with _context_lock:
        if _context_cache["text"] and now - _context_cache["at"] < PROJECT_CONTEXT_TTL_SECONDS:
            return _context_cache["text"]
    try:
        text = build_project_context(storage.projects.all())
    except (StorageError, OSError) as exc:
        LOGGER.error("[chat] failed to load projects: %s", exc)
        return PROJECTS_UNAVAILABLE
    with _context_lock:
        _context_cache["text"] = text
        _context_cache["at"] = now
    return text


def invalidate_project_context() -> None:
    with _context_lock:
        _context_cache["text"] = ""
        _context_cache["at"] = 0.0


def build_system_prompt(project_data: str) -> str:
    return f"""אתה באנדי, יועץ השקעות נדל"ן בדובאי של PropLine.
השם שלך הוא באנדי. אתה מדבר בטון מקצועי אך חם וידידותי.

הידע הכללי שלך:
- PropLine היא סוכנות נדל"ן מורשית (RERA) בדובאי, מתמחה בליווי משקיעים ישראלים
- דובאי: 0% מס הכנסה, 0% מס רווחי הון, 100% בעלות זרה
- תשואות שכירות ממוצעות: 6-12% בשנה
- תכניות תשלום גמישות מהיזמים
- PropLine מלווה מקצה לקצה: בחירת נכס, משא ומתן, חוזים, ניהול הנכס

הפרויקטים שלנו כרגע:
{project_data}

כללים חשובים:
1. תענה בעברית. אם הלקוח פונה באנגלית - ענה באנגלית
2. תענה בקצרה, טבעי ואנושי - 2-4 משפטים מקסימום, כמו שיחה רגילה
3. אל תציג חשיבה פנימית או הערות מטא - רק את התשובה עצמה
4. כשמישהו שואל על פרויקט ספציפי - תן את המידע שיש לך עליו (מחיר, מיקום, תשואה, תכנית תשלום)
5. כשמישהו שואל "מה יש לכם" או "אילו פרויקטים" - תן סקירה קצרה של הפרויקטים הפעילים
6. אם יש לך קישור לפרויקט - שתף אותו כדי שהלקוח יוכל לראות פרטים מלאים
7. אם הלקוח מתעניין ברצינות - בקש שם, טלפון ואימייל כדי שהצוות יחזור אליו
8. אל תיתן ייעוץ משפטי או פיננסי - המלץ להתייעץ עם מומחים
9. אם שואלים על מיסוי ישראלי - ציין שיש לבדוק עם רו"ח, אבל הדגש שבדובאי אין מס
10. אל תמציא מידע שלא קיים בנתונים שקיבלת

היה מקצועי וטבעי, ללא אימוג'ים מיותרים."""


def _message_text(m: Mapping[str, Any]) -> str:
    content = m.get("content")
    if isinstance(content, str):
        return content
    parts = m.get("parts")
    if isinstance(parts, list):
        return "".join(
            p.get("text", "") for p in parts
            if isinstance(p, Mapping) and p.get("type", "text") == "text" and isinstance(p.get("text"), str)
        )
    return ""


def normalize_messages(raw: List[Any]) -> List[Dict[str, str]]:
    """
    מקבל {role, content} או הודעות UI ({role, parts:[{type:'text', text}]}).
    משמיט תפקידים לא מוכרים והודעות ריקות, ומשאיר את 20 האחרונות.
    """
    out: List[Dict[str, str]] = []
    for m in raw:
        if not isinstance(m, Mapping):
            continue
        role = m.get("role")
        if role not in ("user", "assistant"):
            continue
        text = _message_text(m).strip()
        if not text:
            continue
        out.append({"role": role, "content": text[:MAX_MESSAGE_CHARS]})
    return out[-MAX_HISTORY:]


def reply(messages: List[Dict[str, str]]) -> str:
    return ai_client.chat(build_system_prompt(get_project_context()), messages)


def stream_reply(messages: List[Dict[str, str]]) -> Iterator[str]:
    return ai_client.stream_chat(build_system_prompt(get_project_context()), messages)


def sse_events(chunks: Iterator[str]) -> Iterator[str]:
    """Text chunks -> SSE lines in the UI-message stream shape."""
    yield "data: " + json.dumps({"type": "start"}) + "\n\n"
    try:
        for chunk in chunks:
            yield "data: " + json.dumps({"type": "text-delta", "delta": chunk}, ensure_ascii=False) + "\n\n"
    except ai_client.AIError as exc:
        LOGGER.error("[chat] stream interrupted: %s", exc)
        yield "data: " + json.dumps({"type": "error", "errorText": "Internal server error"}) + "\n\n"
    yield "data: " + json.dumps({"type": "finish"}) + "\n\n"
    yield "data: [DONE]\n\n"
