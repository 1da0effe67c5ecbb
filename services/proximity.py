# -*- coding: utf-8 -*-
"""
ציוני דרך קרובים לפי אזור בדובאי – טבלה קבועה, בלי API חיצוני.
משמש למילוי אוטומטי של "מה יש ליד" בעמוד פרויקט.
"""

import re
from typing import Any, Dict, List, Optional

CATEGORIES = ("mall", "beach", "airport", "landmark", "entertainment", "business", "transport", "leisure", "park")

CATEGORY_LABELS = {
    "he": {
        "mall": "קניון", "beach": "חוף", "airport": "שדה תעופה", "landmark": "ציון דרך",
        "entertainment": "בילוי", "business": "עסקים", "transport": "תחבורה",
        "leisure": "פנאי", "park": "פארק",
    },
    "en": {
        "mall": "Mall", "beach": "Beach", "airport": "Airport", "landmark": "Landmark",
        "entertainment": "Entertainment", "business": "Business", "transport": "Transport",
        "leisure": "Leisure", "park": "Park",
    },
}

KM_PER_MINUTE = 0.85


def _lm(name: str, name_he: str, category: str, minutes: int) -> Dict[str, Any]:
    """0 דקות = מרחק הליכה, בלי מרחק בק"מ."""
    walking = minutes == 0
    return {
        "name": name,
        "nameHe": name_he,
        "distance": None if walking else round(minutes * KM_PER_MINUTE),
        "driveTime": "Walking distance" if walking else f"{minutes} min",
        "driveTimeHe": "מרחק הליכה" if walking else f"{minutes} דקות",
        "category": category,
    }


_DXB = ("Dubai Int'l Airport (DXB)", "נמל תעופה DXB", "airport")
_DUBAI_MALL = ("Downtown / Dubai Mall", "דאונטאון / דובאי מול", "landmark")
_MOE = ("Mall of the Emirates", "מול האמירויות", "mall")
_MARINA = ("Dubai Marina", "דובאי מרינה", "entertainment")
_PALM = ("Palm Jumeirah", "פאלם ג׳ומיירה", "landmark")
_BLUEWATERS = ("Bluewaters Island (Ain Dubai)", "בלו ווטרס (עין דובאי)", "entertainment")

AREAS: List[Dict[str, Any]] = [
    {
        "area": "Downtown Dubai", "areaNameHe": "דאונטאון דובאי", "aliases": ["downtown dubai", "downtown"],
        "landmarks": [
            _lm("Burj Khalifa & Dubai Mall", "בורג׳ ח׳ליפה ודובאי מול", "landmark", 0),
            _lm("DIFC Financial Centre", "DIFC – מרכז פיננסי", "business", 5),
            _lm("Business Bay", "ביזנס ביי", "business", 5),
            _lm("City Walk", "סיטי ווק", "landmark", 7),
            _lm(*_DXB, 15),
            _lm(*_MOE, 18),
            _lm(*_MARINA, 22),
            _lm(*_PALM, 25),
        ],
    },
    {
        "area": "Business Bay", "areaNameHe": "ביזנס ביי", "aliases": ["business bay"],
        "landmarks": [
            _lm(*_DUBAI_MALL, 5),
            _lm("Dubai Water Canal", "תעלת דובאי", "landmark", 0),
            _lm("DIFC Financial Centre", "DIFC", "business", 7),
            _lm("Dubai Creek", "דובאי קריק", "landmark", 10),
            _lm(*_DXB, 15),
            _lm(*_MOE, 18),
            _lm(*_MARINA, 22),
        ],
    },
    {
        "area": "DIFC", "areaNameHe": "המרכז הפיננסי", "aliases": ["difc"],
        "landmarks": [
            _lm("Gate Avenue", "גייט אוונה", "business", 0),
            _lm(*_DUBAI_MALL, 5),
            _lm("City Walk", "סיטי ווק", "landmark", 5),
            _lm(*_DXB, 12),
            _lm("Jumeirah Beach", "ג׳ומיירה ביץ׳", "beach", 12),
            _lm(*_MARINA, 20),
        ],
    },
    {
        "area": "Dubai Marina", "areaNameHe": "דובאי מרינה", "aliases": ["dubai marina", "marina"],
        "landmarks": [
            _lm("Dubai Marina Mall", "דובאי מרינה מול", "mall", 0),
            _lm("JBR Beach & The Walk", "JBR ביץ׳", "beach", 5),
            _lm(*_BLUEWATERS, 5),
            _lm("Jumeirah Lake Towers", "JLT", "business", 5),
            _lm(*_PALM, 8),
            _lm(*_MOE, 15),
            _lm(*_DUBAI_MALL, 22),
            _lm(*_DXB, 30),
        ],
    },
    {
        "area": "JBR", "areaNameHe": "ג׳ומיירה ביץ׳ רזידנס", "aliases": ["jbr", "jumeirah beach residence"],
        "landmarks": [
            _lm("JBR Public Beach", "חוף JBR", "beach", 0),
            _lm("The Walk JBR", "דה ווק", "entertainment", 0),
            _lm(*_BLUEWATERS, 5),
            _lm(*_PALM, 8),
            _lm(*_MOE, 15),
            _lm(*_DUBAI_MALL, 22),
        ],
    },
    {
        "area": "Palm Jumeirah", "areaNameHe": "פאלם ג׳ומיירה", "aliases": ["palm jumeirah", "the palm"],
        "landmarks": [
            _lm("Atlantis The Palm & Aquaventure", "אטלנטיס", "entertainment", 5),
            _lm("Nakheel Mall", "נח׳יל מול", "mall", 5),
            _lm("Dubai Marina / JBR", "דובאי מרינה / JBR", "entertainment", 8),
            _lm(*_BLUEWATERS, 10),
            _lm(*_MOE, 15),
            _lm(*_DUBAI_MALL, 25),
            _lm(*_DXB, 30),
        ],
    },
    {
        "area": "JLT", "areaNameHe": "ג׳ומיירה לייק טאוורס", "aliases": ["jlt", "jumeirah lake towers"],
        "landmarks": [
            _lm("DMCC Metro Station", "תחנת מטרו DMCC", "transport", 3),
            _lm(*_MARINA, 5),
            _lm("JBR Beach", "JBR ביץ׳", "beach", 7),
            _lm("Ibn Battuta Mall", "אבן בטוטה מול", "mall", 10),
            _lm(*_MOE, 12),
            _lm(*_DUBAI_MALL, 22),
        ],
    },
    {
        "area": "Emaar Beachfront", "areaNameHe": "אמאר ביצ׳פרונט", "aliases": ["emaar beachfront"],
        "landmarks": [
            _lm("Private Beach", "חוף פרטי", "beach", 0),
            _lm("Dubai Harbour", "דובאי הרבור", "landmark", 0),
            _lm(*_MARINA, 5),
            _lm(*_BLUEWATERS, 5),
            _lm(*_PALM, 8),
            _lm(*_MOE, 15),
        ],
    },
    {
        "area": "Dubai Hills Estate", "areaNameHe": "דובאי הילס", "aliases": ["dubai hills estate", "hills estate"],
        "landmarks": [
            _lm("Dubai Hills Mall", "דובאי הילס מול", "mall", 0),
            _lm("18-Hole Championship Golf Course", "מגרש גולף 18 גומות", "leisure", 0),
            _lm("Dubai Hills Park", "דובאי הילס פארק", "park", 0),
            _lm("Business Bay / DIFC", "ביזנס ביי / DIFC", "business", 13),
            _lm(*_DUBAI_MALL, 17),
            _lm(*_MOE, 18),
            _lm(*_DXB, 20),
        ],
    },
    {
        "area": "MBR City", "areaNameHe": "עיר מוחמד בן ראשד", "aliases": ["mbr city", "mohammed bin rashid city"],
        "landmarks": [
            _lm("Meydan Racecourse", "מיידאן רייסקורס", "entertainment", 5),
            _lm("Dubai Hills Mall", "דובאי הילס מול", "mall", 8),
            _lm("Ras Al Khor Wildlife Sanctuary", "רס אל-ח׳ור שמורת טבע", "park", 10),
            _lm(*_DUBAI_MALL, 12),
            _lm(*_DXB, 18),
        ],
    },
    {
        "area": "JVC", "areaNameHe": "JVC", "aliases": ["jvc", "jumeirah village circle"],
        "landmarks": [
            _lm("Sheikh Zayed Road", "כביש שייח׳ זאיד", "transport", 5),
            _lm(*_MOE, 10),
            _lm("Dubai Sports City", "דובאי ספורטס סיטי", "leisure", 10),
            _lm("Dubai Hills Mall", "דובאי הילס מול", "mall", 12),
            _lm("Dubai Marina / JBR Beach", "דובאי מרינה / JBR ביץ׳", "entertainment", 15),
            _lm(*_DUBAI_MALL, 20),
            _lm(*_DXB, 30),
        ],
    },
    {
        "area": "Dubai Creek Harbour", "areaNameHe": "דובאי קריק הרבור",
        "aliases": ["dubai creek harbour", "creek harbour"],
        "landmarks": [
            _lm("Dubai Creek Tower (Under Const.)", "דובאי קריק טאואר (בבנייה)", "landmark", 0),
            _lm("Ras Al Khor Wildlife Sanctuary", "רס אל-ח׳ור שמורת טבע", "park", 5),
            _lm("Dubai Festival City Mall", "דובאי פסטיבל סיטי מול", "mall", 10),
            _lm(*_DUBAI_MALL, 10),
            _lm("Business Bay", "ביזנס ביי", "business", 10),
            _lm(*_DXB, 15),
        ],
    },
]

_QUOTES_RE = re.compile(r"['‘’׳`]")
_SEP_RE = re.compile(r"[-_]")
_WS_RE = re.compile(r"\s+")


def normalize(value: str) -> str:
    value = _QUOTES_RE.sub("", (value or "").lower().strip())
    value = _SEP_RE.sub(" ", value)
    return _WS_RE.sub(" ", value).strip()


def fuzzy_match(needle: str, candidate: str) -> bool:
    n, c = normalize(needle), normalize(candidate)
    if not n or not c:
        return False
    if n == c or n in c or c in n:
        return True
    # כל מילה בחיפוש מופיעה (חלקית) באחת ממילות המועמד
    c_words = c.split(" ")
    return all(any(cw in w or w in cw for cw in c_words) for w in n.split(" "))


def area_proximity(name: str) -> Optional[Dict[str, Any]]:
    if not name or not isinstance(name, str):
        return None
    for entry in AREAS:
        candidates = [entry["area"], entry["areaNameHe"], *entry["aliases"]]
        if any(fuzzy_match(name, c) for c in candidates):
            return entry
    return None


def landmarks_for(name: str, category: Optional[str] = None) -> List[Dict[str, Any]]:
    entry = area_proximity(name)
    if not entry:
        return []
    items = entry["landmarks"]
    if category:
        items = [l for l in items if l["category"] == category]
    return items


def all_areas() -> List[Dict[str, str]]:
    return [{"en": e["area"], "he": e["areaNameHe"]} for e in AREAS]


def category_label(category: str, lang: str = "he") -> str:
    return CATEGORY_LABELS.get(lang, CATEGORY_LABELS["he"]).get(category, category)
