# -*- coding: utf-8 -*-
"""
ניקוד לידים 0..100 – תקציב (30), טווח זמן (25), מעורבות (25), מקור (20).
hot ≥ 80, warm ≥ 50, אחרת cold.
"""

import re
from typing import Any, Dict, Mapping, Optional

WEIGHTS = {"budget": 30, "timeline": 25, "engagement": 25, "source": 20}

HOT_THRESHOLD = 80
WARM_THRESHOLD = 50

TIMELINE_SCORES = {
    "immediate": 1.0,
    "now": 1.0,
    "3_months": 0.8,
    "6_months": 0.55,
    "12_months": 0.3,
    "exploring": 0.1,
}

SOURCE_SCORES = {
    "referral": 1.0,
    "chat": 0.8,
    "website": 0.7,
    "mini-site": 0.7,
    "minisite": 0.7,
    "event": 0.5,
    "social": 0.4,
}

EXPERIENCE_SCORES = {"experienced": 1.0, "some": 0.6, "first-time": 0.4, "none": 0.3}

# סף תקציב -> חלק מהמשקל
BUDGET_STEPS = ((5_000_000, 1.0), (3_000_000, 0.85), (2_000_000, 0.7), (1_000_000, 0.5), (500_000, 0.3))

_NUM_RE = re.compile(r"(\d+(?:[.,]\d+)*)\s*([kKmM]|מיליון|אלף)?")


def parse_budget(value: Any) -> Optional[float]:
    """The largest amount mentioned: '1M-2M' -> 2_000_000, '750k' -> 750_000."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    best = None
    for num, unit in _NUM_RE.findall(str(value)):
        try:
            amount = float(num.replace(",", ""))
        except ValueError:
            continue
        if unit in ("k", "K", "אלף"):
            amount *= 1_000
        elif unit in ("m", "M", "מיליון"):
            amount *= 1_000_000
        best = amount if best is None else max(best, amount)
    return best


def _budget_part(lead: Mapping[str, Any]) -> float:
    amount = parse_budget(lead.get("budgetRange"))
    if amount is None:
        return 0.0
    for threshold, part in BUDGET_STEPS:
        if amount >= threshold:
            return part
    return 0.15


def _engagement_part(lead: Mapping[str, Any]) -> float:
    part = 0.0
    if lead.get("phone"):
        part += 0.3
    if lead.get("email"):
        part += 0.2
    if len((lead.get("message") or "").strip()) >= 20:
        part += 0.2
    if lead.get("interestedProjectId"):
        part += 0.15
    part += 0.15 * EXPERIENCE_SCORES.get(str(lead.get("experience") or "").lower(), 0.0)
    return min(part, 1.0)


def temperature(score: int) -> str:
    if score >= HOT_THRESHOLD:
        return "hot"
    if score >= WARM_THRESHOLD:
        return "warm"
    return "cold"


def score_lead(lead: Mapping[str, Any]) -> Dict[str, Any]:
    parts = {
        "budget": _budget_part(lead),
        "timeline": TIMELINE_SCORES.get(str(lead.get("timeline") or "").lower(), 0.0),
        "engagement": _engagement_part(lead),
        "source": SOURCE_SCORES.get(str(lead.get("source") or lead.get("sourceType") or "").lower(), 0.3),
    }
    score = round(sum(WEIGHTS[k] * v for k, v in parts.items()))
    score = max(0, min(100, score))
    return {"score": score, "temperature": temperature(score)}
