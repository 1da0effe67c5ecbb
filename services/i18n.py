# -*- coding: utf-8 -*-
"""
i18n – מחרוזות ברירת מחדל (he/en), קבצי bundle ודריסות מהאדמין.

סדר החיפוש ב-t():
  1) דריסה שנשמרה באוסף translations (PUT /api/translations/<key>)
  2) translations/<lang>/<bundle>.json
  3) DEFAULT_TRANSLATIONS
  4) המפתח עצמו
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Dict, List, Optional

from . import storage

LOGGER = logging.getLogger(__name__)

SUPPORTED_LANGS = ("he", "en")
DEFAULT_LANG = "he"
RTL_LANGS = frozenset({"he"})

TRANSLATIONS_FOLDER = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "translations")

DEFAULT_TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "nav.home": {"he": "דף הבית", "en": "Home"},
    "nav.projects": {"he": "פרויקטים", "en": "Projects"},
    "nav.process": {"he": "תהליך ההשקעה", "en": "Investment Process"},
    "nav.whyDubai": {"he": "למה דובאי", "en": "Why Dubai"},
    "nav.contact": {"he": "צור קשר", "en": "Contact"},
    "nav.freeConsultation": {"he": "שיחת ייעוץ חינם", "en": "Free Consultation"},
    "hero.title1": {"he": "השקעות נדל״ן בדובאי", "en": "Dubai Real Estate Investments"},
    "hero.subtitle1": {"he": "פשוט. שקוף. מסודר.", "en": "Simple. Transparent. Organized."},
    "hero.cta": {"he": "התחל השקעה", "en": "Start Investing"},
    "hero.calculator": {"he": "מחשבון ROI", "en": "ROI Calculator"},
    "about.title": {"he": "מי אנחנו", "en": "About Us"},
    "about.subtitle": {"he": "PropLine - הדרך שלך להשקעה חכמה בדובאי", "en": "PropLine - Your Path to Smart Dubai Investment"},
    "whyDubai.title": {"he": "למה דובאי?", "en": "Why Dubai?"},
    "whyDubai.subtitle": {"he": "הזדמנות השקעה ייחודית", "en": "Unique Investment Opportunity"},
    "whyDubai.tax.title": {"he": "0% מס הכנסה", "en": "0% Income Tax"},
    "whyDubai.tax.desc": {"he": "ללא מס על רווחי הון או הכנסות משכירות", "en": "No tax on capital gains or rental income"},
    "whyDubai.yield.title": {"he": "תשואות גבוהות", "en": "High Yields"},
    "whyDubai.yield.desc": {"he": "תשואה ממוצעת של 8-12% על השכרת נכסים", "en": "Average yield of 8-12% on rental properties"},
    "process.title": {"he": "תהליך ההשקעה", "en": "Investment Process"},
    "process.subtitle": {"he": "5 צעדים פשוטים להשקעה מוצלחת", "en": "5 Simple Steps to Successful Investment"},
    "contact.title": {"he": "צור קשר", "en": "Contact Us"},
    "contact.subtitle": {"he": "מעוניינים לשמוע עוד? השאירו פרטים ונחזור אליכם", "en": "Interested? Leave your details and we'll get back to you"},
    "contact.name": {"he": "שם מלא", "en": "Full Name"},
    "contact.phone": {"he": "טלפון", "en": "Phone"},
    "contact.email": {"he": "אימייל", "en": "Email"},
    "contact.message": {"he": "הודעה", "en": "Message"},
    "contact.send": {"he": "שלח הודעה", "en": "Send Message"},
    "footer.rights": {"he": "כל הזכויות שמורות", "en": "All Rights Reserved"},
    "projects.title": {"he": "הפרויקטים שלנו", "en": "Our Projects"},
    "projects.subtitle": {"he": "מגוון הזדמנויות השקעה מובילות", "en": "Leading Investment Opportunities"},
}


def normalize_lang(value: Optional[str]) -> str:
    lang = (value or "").strip().lower()[:2]
    return lang if lang in SUPPORTED_LANGS else DEFAULT_LANG


def text_direction(lang: str) -> str:
    return "rtl" if normalize_lang(lang) in RTL_LANGS else "ltr"


@lru_cache(maxsize=128)
def _load_bundle(lang: str, bundle: str) -> dict:
    """
    loads translations/<lang>/<bundle>.json  (e.g., translations/he/common.json)
    returns {} if missing
    """
    path = os.path.join(TRANSLATIONS_FOLDER, lang, f"{bundle}.json")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("bad translation bundle %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def clear_bundle_cache() -> None:
    _load_bundle.cache_clear()


def _override(key: str) -> Optional[Dict[str, str]]:
    record = storage.translations.find_one(key=key)
    if not record:
        return None
    return {"he": record.get("he") or "", "en": record.get("en") or ""}


def t(key: str, lang: str = DEFAULT_LANG, bundle: Optional[str] = None) -> str:
    """
    t('hero.cta', 'en')            -> "Start Investing"
    t('legal.title', 'he', 'legal') -> reads translations/he/legal.json
    """
    lang = normalize_lang(lang)
    override = _override(key)
    if override and override.get(lang):
        return override[lang]
    data = _load_bundle(lang, bundle or "common")
    if data.get(key):
        return data[key]
    default = DEFAULT_TRANSLATIONS.get(key)
    if default and default.get(lang):
        return default[lang]
    return key


def has_translation(key: str, lang: str = DEFAULT_LANG) -> bool:
    return t(key, lang) != key


def all_translations() -> List[Dict[str, str]]:
    """ברירות המחדל + דריסות, ממוין לפי מפתח: [{key, he, en}, ...]"""
    merged: Dict[str, Dict[str, str]] = {k: dict(v) for k, v in DEFAULT_TRANSLATIONS.items()}
    for record in storage.translations.all():
        key = record.get("key")
        if not key:
            continue
        merged[key] = {"he": record.get("he") or "", "en": record.get("en") or ""}
    return [{"key": k, "he": v.get("he", ""), "en": v.get("en", "")} for k, v in sorted(merged.items())]


def set_translation(key: str, he: Optional[str], en: Optional[str]) -> Dict[str, str]:
    record, _ = storage.translations.upsert({"key": key}, {"he": he or "", "en": en or ""})
    return {"key": record["key"], "he": record["he"], "en": record["en"]}
