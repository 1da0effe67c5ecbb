# -*- coding: utf-8 -*-
"""
ולידציה לרשומות שמגיעות מה-API (פרויקטים, לידים, תזכורות).
הודעות השגיאה בעברית, כמו בממשק הניהול.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from .storage import parse_iso

PROJECT_STATUSES = ("active", "draft", "archived")
PROJECT_BUILD_STATUSES = ("off-plan", "under-construction", "ready-to-move", "completed")
OWNERSHIP_TYPES = ("freehold", "leasehold")
LEAD_STATUSES = ("new", "contacted", "qualified", "proposal", "negotiation", "won", "lost")
LEAD_PRIORITIES = ("low", "medium", "high")

LEAD_PUBLIC_FIELDS = (
    "name", "phone", "email", "investmentGoal", "budgetRange", "timeline",
    "experience", "message", "source", "sourceType", "sourceId", "interestedProjectId",
)
LEAD_ADMIN_FIELDS = LEAD_PUBLIC_FIELDS + ("status", "priority", "assignedTo", "tags")

HONEYPOT_FIELDS = ("website_url", "company_fax")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """Carries a list of human-readable messages."""

    def __init__(self, errors: List[str], title: str = "שגיאות ולידציה"):
        super().__init__(", ".join(errors))
        self.errors = list(errors)
        self.title = title

    @property
    def message(self) -> str:
        return ", ".join(self.errors)


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match((value or "").strip()))


def phone_digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _check_project_fields(data: Mapping[str, Any], errors: List[str]) -> None:
    progress = data.get("constructionProgress")
    if progress is not None:
        cp = _number(progress)
        if cp is None or cp < 0 or cp > 100:
            errors.append("אחוז התקדמות בנייה חייב להיות בין 0 ל-100")
    build_status = data.get("projectStatus")
    if build_status and build_status not in PROJECT_BUILD_STATUSES:
        errors.append("סטטוס פרויקט לא תקין. ערכים אפשריים: " + ", ".join(PROJECT_BUILD_STATUSES))
    ownership = data.get("ownership")
    if ownership and ownership not in OWNERSHIP_TYPES:
        errors.append("סוג בעלות לא תקין. ערכים אפשריים: " + ", ".join(OWNERSHIP_TYPES))
    status = data.get("status")
    if status and status not in PROJECT_STATUSES:
        errors.append("סטטוס פרסום לא תקין. ערכים אפשריים: " + ", ".join(PROJECT_STATUSES))


def validate_new_project(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Returns a cleaned copy ready for storage or raises ValidationError."""
    cleaned = dict(data)
    errors: List[str] = []
    is_draft = cleaned.get("status") == "draft"

    if not _text(cleaned, "name"):
        errors.append("שם הפרויקט הוא שדה חובה")
    if not is_draft:
        if not _text(cleaned, "developer"):
            errors.append("שם היזם הוא שדה חובה")
        if not _text(cleaned, "location"):
            errors.append("מיקום הוא שדה חובה")

    price = cleaned.get("priceFrom")
    if price in (None, ""):
        cleaned["priceFrom"] = 0
    else:
        num = _number(price)
        if num is None or num < 0:
            errors.append("מחיר התחלתי חייב להיות מספר חיובי")
        else:
            cleaned["priceFrom"] = int(num) if num.is_integer() else num

    if not _text(cleaned, "propertyType"):
        cleaned["propertyType"] = "apartment"

    _check_project_fields(cleaned, errors)
    if errors:
        raise ValidationError(errors, title="שדות חובה חסרים")
    return cleaned


def validate_project_update(data: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned = dict(data)
    errors: List[str] = []
    _check_project_fields(cleaned, errors)
    if "priceFrom" in cleaned and cleaned["priceFrom"] not in (None, ""):
        num = _number(cleaned["priceFrom"])
        if num is None or num < 0:
            errors.append("מחיר התחלתי חייב להיות מספר חיובי")
        else:
            cleaned["priceFrom"] = int(num) if num.is_integer() else num
    if errors:
        raise ValidationError(errors)
    return cleaned


def pick_public_lead_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: data[k] for k in LEAD_PUBLIC_FIELDS if data.get(k) is not None}


def validate_lead(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    errors: List[str] = []
    cleaned = dict(data)

    if not partial or "name" in cleaned:
        name = _text(cleaned, "name")
        if len(name) < 2:
            errors.append("שם חייב להכיל לפחות 2 תווים")
        cleaned["name"] = name

    email = _text(cleaned, "email")
    phone = _text(cleaned, "phone")
    if not partial and not email and not phone:
        errors.append("יש להזין טלפון או אימייל")
    if email and not is_valid_email(email):
        errors.append("כתובת אימייל לא תקינה")
    if phone and not 7 <= len(phone_digits(phone)) <= 15:
        errors.append("מספר טלפון לא תקין")
    if "email" in cleaned:
        cleaned["email"] = email
    if "phone" in cleaned:
        cleaned["phone"] = phone

    message = cleaned.get("message")
    if isinstance(message, str) and len(message) > 5000:
        errors.append("ההודעה ארוכה מדי")

    status = cleaned.get("status")
    if status and status not in LEAD_STATUSES:
        errors.append("סטטוס ליד לא תקין")
    priority = cleaned.get("priority")
    if priority and priority not in LEAD_PRIORITIES:
        errors.append("עדיפות לא תקינה")
    tags = cleaned.get("tags")
    if tags is not None and not (isinstance(tags, list) and all(isinstance(t, str) for t in tags)):
        errors.append("תגיות חייבות להיות רשימת מחרוזות")

    if errors:
        raise ValidationError(errors, title="Validation failed")
    return cleaned


def validate_due_date(value: Any) -> str:
    dt = parse_iso(value)
    if dt is None:
        raise ValidationError(["תאריך לא תקין"], title="תאריך לא תקין")
    return dt.isoformat().replace("+00:00", "Z")


PASSWORD_RULES_MESSAGE = "Password must be at least 8 characters and include uppercase, lowercase, and a number"


def validate_password_strength(password: str) -> Optional[str]:
    """None כשהסיסמה תקינה, אחרת הודעת שגיאה."""
    if not password or len(password) < 8:
        return PASSWORD_RULES_MESSAGE
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"\d", password):
        return "Password must contain at least one number"
    return None
