# scripts/build_all_translations.py
"""
מושך גיליונות תרגום (CSV/TSV מפורסם) ובונה translations/<lang>/<page>.json.

scripts/translations_sources.json:  {"common": "https://docs.google.com/...&output=tsv", ...}
"""
import os
import csv
import json
import argparse
import logging
from urllib.parse import urlparse, parse_qs

import requests

LOGGER = logging.getLogger("build_translations")

# נתיבי בסיס – יחסית לשורש הפרויקט
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SOURCES_JSON = os.path.join(BASE_DIR, "scripts", "translations_sources.json")
OUT_ROOT = os.path.join(BASE_DIR, "translations")

# אילו שפות מייצרים
LANGS = ["he", "en"]


def fetch_text(url: str, timeout: int = 30) -> str:
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    # utf-8-sig מסיר BOM אם יש
    return resp.content.decode("utf-8-sig")


def detect_delimiter_from_url(url: str) -> str:
    # output=tsv => טאבים, אחרת פסיקים
    q = parse_qs(urlparse(url).query)
    out = (q.get("output", [""])[0] or "").lower()
    return "\t" if out == "tsv" else ","


def parse_table(text: str, delimiter: str):
    return list(csv.DictReader(text.splitlines(), delimiter=delimiter))


def build_lang_maps(rows):
    """
    rows: רשומות עם עמודות key, he, en
    החזרה: {'he': {...}, 'en': {...}}
    ערך ריק באנגלית נופל לעברית, כדי שלא יוצג מפתח גולמי.
    """
    maps = {lang: {} for lang in LANGS}
    if not rows:
        return maps

    headers = {(h or "").strip().lower() for h in rows[0].keys()}
    missing = ({"key"} | set(LANGS)) - headers
    if missing:
        raise SystemExit(f"שדות חסרים בגליון: {', '.join(sorted(missing))}")

    for r in rows:
        row = {(k or "").strip().lower(): (v or "").strip() for k, v in r.items()}
        key = row.get("key")
        if not key:
            continue
        he = row.get("he", "")
        maps["he"][key] = he
        maps["en"][key] = row.get("en") or he
    return maps


def write_page(page: str, lang_maps: dict, out_root: str = OUT_ROOT) -> list:
    written = []
    for lang in LANGS:
        out_dir = os.path.join(out_root, lang)
        os.makedirs(out_dir, exist_ok=True)
        out_path = os.path.join(out_dir, f"{page}.json")
        with open(out_path, "w", encoding="utf-8") as out:
            json.dump(lang_maps[lang], out, ensure_ascii=False, indent=2)
        written.append(out_path)
    return written


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build translations/<lang>/<page>.json from published sheets")
    parser.add_argument("--sources", default=SOURCES_JSON, help="page -> url mapping (JSON)")
    parser.add_argument("--out", default=OUT_ROOT, help="output translations folder")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    if not os.path.exists(args.sources):
        raise SystemExit(f"לא נמצא הקובץ: {args.sources}")
    with open(args.sources, "r", encoding="utf-8") as f:
        sources = json.load(f)
    if not isinstance(sources, dict) or not sources:
        raise SystemExit("translations_sources.json חייב להכיל mapping של page->url")

    total = 0
    for page, url in sources.items():
        if not url:
            LOGGER.info("מדלג: '%s' ללא URL", page)
            continue
        LOGGER.info("==> מושך תרגומים עבור page='%s'", page)
        rows = parse_table(fetch_text(url), detect_delimiter_from_url(url))
        lang_maps = build_lang_maps(rows)
        for path in write_page(page, lang_maps, args.out):
            total += 1
            LOGGER.info("נכתב: %s (keys: %d)", os.path.abspath(path), len(lang_maps["he"]))

    LOGGER.info("OK • נוצרו %d קבצים • מקור: %s", total, args.sources)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
