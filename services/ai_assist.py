# -*- coding: utf-8 -*-
"""
כלי כתיבה לאדמין: תיאור, טאג-ליין, תרגום, SEO, מתקנים ותכנית תשלום.
כל פונקציה מקבלת את גוף הבקשה ומחזירה dict שמוחזר כמו שהוא ל-API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from . import ai_client
from .translation import translate_direction
from .validators import ValidationError

LOGGER = logging.getLogger(__name__)

PROVIDER = "google-gemini"


def status() -> Dict[str, Any]:
    return {"configured": ai_client.is_configured(), "provider": PROVIDER}


def _require_ai() -> None:
    if not ai_client.is_configured():
        raise ai_client.AINotConfigured("AI not configured")


def _price_line(price: Any, template: str) -> str:
    try:
        return template.format(f"{float(price):,.0f}") if price else ""
    except (TypeError, ValueError):
        return ""


def generate_description(body: Mapping[str, Any]) -> Dict[str, Any]:
    _require_ai()
    name, location = body.get("name"), body.get("location")
    if not name or not location:
        raise ValidationError(["Missing required fields: name, location"])

    prompt = f"""כתוב תיאור קצר ותכליתי לפרויקט נדל"ן בדובאי. התיאור מיועד למשקיעים ישראלים.

פרטים:
- שם: {name}
- יזם: {body.get("developer") or "לא צוין"}
- מיקום: {location}
- סוג: {body.get("propertyType") or "דירה"}
- חדרים: {body.get("bedrooms") or "מגוון"}
{_price_line(body.get("priceFrom"), "- מחיר התחלתי: {} AED")}
{f"- תשואה: {body['roiPercent']}%" if body.get("roiPercent") else ""}

כללים:
- 2-3 משפטים בלבד. קצר ועניני.
- עובדות בלבד: מה הפרויקט, מי היזם, כמה יחידות/מגדלים, מה כולל, איפה.
- בלי סיסמאות שיווקיות ריקות.
- אם אין לך מידע - אל תמציא.

החזר JSON:
{{
  "description": "התיאור בעברית",
  "descriptionEn": "Same content in English"
}}"""
    return ai_client.generate_json(prompt, temperature=0.7)


def generate_tagline(body: Mapping[str, Any]) -> Dict[str, Any]:
    _require_ai()
    highlights = body.get("highlights")
    prompt = f"""כתוב טאג-ליין (שורת משנה) לפרויקט נדל"ן בדובאי.

פרטים:
- שם: {body.get("name") or ""}
- מיקום: {body.get("location") or ""}
- סוג: {body.get("propertyType") or "דירה"}
{f"- יתרונות בולטים: {highlights}" if highlights else ""}

כללים:
- 4-8 מילים בלבד
- תמצת את הייחוד של הפרויקט (מיקום, נוף, יזם)
- לא לכתוב דברים גנריים כמו "הזדמנות שלא תחזור"

החזר JSON:
{{
  "tagline": "הטאג-ליין בעברית",
  "taglineEn": "English tagline"
}}"""
    return ai_client.generate_json(prompt, temperature=0.8)


def translate_text(body: Mapping[str, Any]) -> Dict[str, Any]:
    text = body.get("text")
    if not text:
        raise ValidationError(["Missing text to translate"])
    direction = body.get("direction") or "en-to-he"

    if not ai_client.is_configured():
        # בלי מפתח AI – תרגום מכונה רגיל
        return {"translation": translate_direction(text, direction), "provider": "google-translate"}

    if direction == "he-to-en":
        prompt = f"""תרגם את הטקסט הבא מעברית לאנגלית. שמור על סגנון שיווקי מקצועי לנדל"ן:

"{text}"

החזר JSON:
{{ "translation": "the English translation" }}"""
    else:
        prompt = f"""Translate the following text from English to Hebrew. Keep a professional real estate marketing style:

"{text}"

Return JSON:
{{ "translation": "התרגום לעברית" }}"""
    return ai_client.generate_json(prompt, temperature=0.3)


def generate_seo(body: Mapping[str, Any]) -> Dict[str, Any]:
    _require_ai()
    prompt = f"""צור מטא-דאטה SEO לעמוד פרויקט נדל"ן בדובאי. הקהל: משקיעים ישראלים שמחפשים בגוגל.

פרויקט: {body.get("name") or ""}
מיקום: {body.get("location") or ""}
יזם: {body.get("developer") or ""}
{_price_line(body.get("priceFrom"), "מחיר התחלתי: {} AED")}
סוג: {body.get("propertyType") or "דירה"}

כללים:
- title: עד 60 תווים. מבנה: "שם הפרויקט | סוג + מיקום | PropLine"
- description: עד 155 תווים, כולל קריאה לפעולה.
- keywords: 6-8 מילות מפתח רלוונטיות בעברית.

החזר JSON:
{{
  "title": "כותרת SEO בעברית",
  "description": "תיאור מטא בעברית",
  "keywords": ["מילה 1", "מילה 2"]
}}"""
    data = ai_client.generate_json(prompt, temperature=0.5)
    if isinstance(data, dict) and isinstance(data.get("title"), str) and len(data["title"]) > 60:
        data["title"] = data["title"][:60].rstrip()
    return data


def suggest_amenities(body: Mapping[str, Any]) -> Dict[str, Any]:
    _require_ai()
    prompt = f"""הצע רשימת מתקנים (amenities) ריאלית לפרויקט נדל"ן בדובאי.

סוג נכס: {body.get("propertyType") or "דירה"}
רמת מחיר: {body.get("priceRange") or "יוקרה"}
מיקום: {body.get("location") or "דובאי"}

הנחיות:
- 10-15 מתקנים שבאמת נמצאים בפרויקטים מהסוג הזה בדובאי
- אל תציע מתקנים לא ריאליים

קטגוריות: wellness, leisure, kids, outdoor, smart, convenience, security

החזר JSON:
{{
  "amenities": [
    {{ "name": "Swimming Pool", "nameHe": "בריכת שחייה", "category": "leisure" }}
  ]
}}"""
    return ai_client.generate_json(prompt, temperature=0.6)


def normalize_payment_plan(plan: Mapping[str, Any]) -> Dict[str, int]:
    """Scale the three parts so they sum to exactly 100."""
    keys = ("downPayment", "duringConstruction", "onHandover")
    values = []
    for k in keys:
        try:
            values.append(max(0.0, float(plan.get(k) or 0)))
        except (TypeError, ValueError):
            values.append(0.0)
    total = sum(values)
    if total <= 0:
        return {"downPayment": 20, "duringConstruction": 50, "onHandover": 30}
    scaled = [round(v * 100 / total) for v in values]
    scaled[-1] += 100 - sum(scaled)
    return dict(zip(keys, scaled))


def generate_payment_plan(body: Mapping[str, Any]) -> Dict[str, Any]:
    _require_ai()
    prompt = f"""הצע תכנית תשלום ריאלית לפרויקט נדל"ן off-plan בדובאי.

פרויקט: {body.get("projectName") or "פרויקט"}
יזם: {body.get("developer") or "לא צוין"}
{_price_line(body.get("priceFrom"), "מחיר התחלתי: {} AED")}

הנחיות:
- תכניות טיפוסיות בדובאי: 10-20% מקדמה, 30-50% בבנייה, 30-50% במסירה
- הסכום חייב להסתכם ל-100%

החזר JSON:
{{
  "planText": "20% מקדמה, 50% במהלך הבנייה, 30% במסירה",
  "plan": {{ "downPayment": 20, "duringConstruction": 50, "onHandover": 30 }}
}}"""
    data = ai_client.generate_json(prompt, temperature=0.5)
    if isinstance(data, dict) and isinstance(data.get("plan"), Mapping):
        fixed = normalize_payment_plan(data["plan"])
        if fixed != data["plan"]:
            LOGGER.info("payment plan from model did not sum to 100, normalised")
        data["plan"] = fixed
    return data


ACTIONS = {
    "generate-description": (generate_description, "Failed to generate description"),
    "generate-tagline": (generate_tagline, "Failed to generate tagline"),
    "translate": (translate_text, "Failed to translate"),
    "generate-seo": (generate_seo, "Failed to generate SEO"),
    "suggest-amenities": (suggest_amenities, "Failed to suggest amenities"),
    "generate-payment-plan": (generate_payment_plan, "Failed to generate payment plan"),
}
