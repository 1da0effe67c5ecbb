# -*- coding: utf-8 -*-
"""
SEO helpers – מטא-דאטה לעמודים, hreflang, JSON-LD, sitemap ו-robots.
"""

from __future__ import annotations

import os
import re
from collections import Counter
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode
from xml.sax.saxutils import escape as _xesc

from .i18n import SUPPORTED_LANGS, normalize_lang

BASE_URL = os.environ.get("BASE_URL", "https://propline.co.il")
SITE_NAME = "PropLine"
DEFAULT_OG_IMAGE = "/og-image.jpg"

DEFAULT_META = {
    "he": {
        "title": "PropLine | השקעות נדל\"ן בדובאי",
        "description": "ליווי משקיעים להשקעות נדל\"ן בדובאי בצורה פשוטה, שקופה ומסודרת. פרויקטים נבחרים, תשואות גבוהות וליווי מקצה לקצה.",
    },
    "en": {
        "title": "PropLine | Dubai Real Estate Investments",
        "description": "Guiding investors through Dubai real estate in a simple, transparent and organized way. Selected projects, strong yields and end-to-end support.",
    },
}

HEBREW_STOPWORDS = frozenset({
    "את", "של", "על", "עם", "לא", "כי", "זה", "אני", "הוא", "היא",
    "אבל", "גם", "רק", "או", "כל", "מה", "איך", "למה", "מי", "אם",
    "יש", "אין", "היה", "להיות", "שלא", "לכל", "בכל", "הם", "הן",
    "אנחנו", "אתה", "אותו", "אותה", "עוד", "כמו", "בין", "לפני",
    "אחרי", "תחת", "מעל", "ליד", "בתוך", "מחוץ", "דרך", "בלי",
})

ENGLISH_STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "this", "that", "these", "those", "i", "you", "he", "she", "it",
    "we", "they", "what", "which", "who", "whom", "when", "where", "why",
    "how", "all", "each", "every", "both", "few", "more", "most", "other",
    "some", "such", "no", "not", "only", "same", "so", "than", "too",
    "very", "just", "also", "now", "here", "there", "then",
})

TITLE_SUFFIXES = {
    "page": " | PropLine",
    "project": " - השקעות נדל\"ן בדובאי | PropLine",
    "mini-site": " | PropLine Investments",
    "article": " | בלוג PropLine",
}

# (path, priority, changefreq)
STATIC_PAGES = (
    ("/", "1.0", "weekly"),
    ("/real-estate-dubai/", "0.9", "weekly"),
    ("/real-estate-dubai/investment/", "0.8", "monthly"),
    ("/real-estate-dubai/areas/", "0.8", "monthly"),
    ("/real-estate-dubai/prices/", "0.8", "weekly"),
    ("/real-estate-dubai/tax-regulation/", "0.8", "monthly"),
    ("/real-estate-dubai/faq/", "0.8", "monthly"),
    ("/legal/privacy", "0.3", "yearly"),
    ("/legal/terms", "0.3", "yearly"),
    ("/legal/disclaimer", "0.3", "yearly"),
)

_TAG_RE = re.compile(r"<[^>]*>")
_NON_WORD_RE = re.compile(r"[^\w\s\u0590-\u05FF]")


def absolute_url(path: str, base: Optional[str] = None) -> str:
    """לבנות URL מוחלט עם BASE_URL (כדי למנוע דומיין dev בסריקה)."""
    if path.startswith(("http://", "https://")):
        return path
    return f"{(base or BASE_URL).rstrip('/')}/{path.lstrip('/')}"


# ------------------------------
# ניתוח טקסט
# ------------------------------
def extract_keywords(text: str, locale: str = "he") -> List[str]:
    stopwords = HEBREW_STOPWORDS if locale == "he" else ENGLISH_STOPWORDS
    words = _NON_WORD_RE.sub(" ", (text or "").lower()).split()
    counts = Counter(w for w in words if len(w) > 2 and w not in stopwords)
    # Counter.most_common keeps first-seen order for ties
    return [w for w, _ in counts.most_common(10)]


def generate_description(text: str, max_length: int = 160) -> str:
    clean = " ".join(_TAG_RE.sub(" ", text or "").split())
    if len(clean) <= max_length:
        return clean
    truncated = clean[:max_length]
    last_sentence_end = max(truncated.rfind("."), truncated.rfind("?"), truncated.rfind("!"))
    if last_sentence_end > max_length / 2:
        return truncated[:last_sentence_end + 1]
    last_space = truncated.rfind(" ")
    if last_space > max_length / 2:
        return truncated[:last_space] + "..."
    return truncated + "..."


def generate_seo_title(title: str, content_type: str = "page", max_length: int = 60) -> str:
    suffix = TITLE_SUFFIXES.get(content_type, TITLE_SUFFIXES["page"])
    available = max_length - len(suffix)
    title = title or ""
    if len(title) <= available:
        return title + suffix
    truncated = title[:available]
    last_space = truncated.rfind(" ")
    if last_space > available / 2:
        return truncated[:last_space] + suffix
    return truncated + suffix


def build_schema(content_type: str, title: str, description: str, url: str = "") -> Dict[str, Any]:
    base = {"@context": "https://schema.org"}
    if content_type == "project":
        return {
            **base,
            "@type": "RealEstateListing",
            "name": title,
            "description": description,
            "url": url,
            "provider": {"@type": "RealEstateAgent", "name": SITE_NAME, "url": BASE_URL},
        }
    if content_type == "article":
        return {
            **base,
            "@type": "Article",
            "headline": title,
            "description": description,
            "author": {"@type": "Organization", "name": SITE_NAME},
            "publisher": {
                "@type": "Organization",
                "name": SITE_NAME,
                "logo": {"@type": "ImageObject", "url": absolute_url("/logo.png")},
            },
        }
    if content_type == "mini-site":
        return {
            **base,
            "@type": "WebPage",
            "name": title,
            "description": description,
            "isPartOf": {"@type": "WebSite", "name": SITE_NAME, "url": BASE_URL},
        }
    return {**base, "@type": "WebPage", "name": title, "description": description}


def auto_seo(text: str, title: str = "", content_type: str = "page", locale: str = "he",
             url: str = "") -> Dict[str, Any]:
    seo_title = generate_seo_title(title, content_type)
    description = generate_description(text)
    return {
        "title": seo_title,
        "description": description,
        "keywords": extract_keywords(text, locale),
        "ogTitle": seo_title,
        "ogDescription": description,
        "schema": build_schema(content_type, seo_title, description, url),
    }


def analyze_seo_quality(meta: Mapping[str, Any]) -> Dict[str, Any]:
    suggestions: List[str] = []
    score = 100

    title = meta.get("title") or ""
    if not title:
        suggestions.append("חסרה כותרת SEO")
        score -= 25
    elif len(title) < 30:
        suggestions.append("כותרת SEO קצרה מדי (מומלץ 50-60 תווים)")
        score -= 10
    elif len(title) > 60:
        suggestions.append("כותרת SEO ארוכה מדי (מומלץ עד 60 תווים)")
        score -= 10

    description = meta.get("description") or ""
    if not description:
        suggestions.append("חסר תיאור SEO")
        score -= 25
    elif len(description) < 70:
        suggestions.append("תיאור SEO קצר מדי (מומלץ 120-160 תווים)")
        score -= 10
    elif len(description) > 160:
        suggestions.append("תיאור SEO ארוך מדי (מומלץ עד 160 תווים)")
        score -= 10

    keywords = meta.get("keywords") or []
    if not keywords:
        suggestions.append("לא נמצאו מילות מפתח")
        score -= 15
    elif len(keywords) < 3:
        suggestions.append("מומלץ להוסיף יותר מילות מפתח")
        score -= 5

    if not meta.get("schema"):
        suggestions.append("חסר Schema markup לתוצאות מועשרות")
        score -= 10

    return {"score": max(0, score), "suggestions": suggestions}


def faq_schema(question: str, answer: str) -> Dict[str, Any]:
    return {
        "faqSchema": {
            "@context": "https://schema.org",
            "@type": "FAQPage",
            "mainEntity": [{
                "@type": "Question",
                "name": question,
                "acceptedAnswer": {"@type": "Answer", "text": answer},
            }],
        },
        "optimizedAnswer": " ".join((answer or "").split())[:300],
    }


# ------------------------------
# מטא לעמוד (canonical + hreflang)
# ------------------------------
def localized_url(path: str, lang: str) -> str:
    url = absolute_url(path or "/")
    if normalize_lang(lang) == "he":
        return url
    return f"{url}?{urlencode({'lang': lang})}"


def hreflang_alternates(path: str) -> List[Dict[str, str]]:
    links = [{"hreflang": lang, "href": localized_url(path, lang)} for lang in SUPPORTED_LANGS]
    links.append({"hreflang": "x-default", "href": localized_url(path, "he")})
    return links


def page_meta(path: str, lang: str = "he", title: Optional[str] = None,
              description: Optional[str] = None, image: Optional[str] = None,
              noindex: bool = False, content_type: str = "page",
              schema: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    lang = normalize_lang(lang)
    defaults = DEFAULT_META[lang]
    full_title = generate_seo_title(title, content_type) if title else defaults["title"]
    desc = generate_description(description) if description else defaults["description"]
    canonical = localized_url(path, lang)
    og_image = absolute_url(image or DEFAULT_OG_IMAGE)
    return {
        "title": full_title,
        "description": desc,
        "canonical": canonical,
        "robots": "noindex, nofollow" if noindex else "index, follow",
        "lang": lang,
        "dir": "rtl" if lang == "he" else "ltr",
        "alternates": hreflang_alternates(path),
        "og": {
            "title": full_title,
            "description": desc,
            "url": canonical,
            "image": og_image,
            "type": "website",
            "locale": "he_IL" if lang == "he" else "en_US",
            "siteName": SITE_NAME,
        },
        "twitter": {"card": "summary_large_image", "title": full_title, "description": desc, "image": og_image},
        "schema": schema or build_schema(content_type, full_title, desc, canonical),
    }


def project_meta(project: Mapping[str, Any], lang: str = "he") -> Dict[str, Any]:
    lang = normalize_lang(lang)
    seo = project.get("seo") if isinstance(project.get("seo"), Mapping) else {}
    if lang == "en":
        title = seo.get("titleEn") or project.get("nameEn") or project.get("name")
        description = seo.get("descriptionEn") or project.get("descriptionEn") or project.get("description")
    else:
        title = seo.get("title") or project.get("name")
        description = seo.get("description") or project.get("description") or project.get("tagline")
    path = f"/project/{project.get('slug')}"
    meta = page_meta(path, lang, title=title, description=description,
                     image=project.get("heroImage") or project.get("imageUrl"), content_type="project")
    offer_price = project.get("priceFrom")
    if offer_price:
        meta["schema"]["offers"] = {
            "@type": "Offer",
            "price": offer_price,
            "priceCurrency": project.get("priceCurrency") or "AED",
        }
    return meta


# ------------------------------
# sitemap + robots
# ------------------------------
def sitemap_entries(projects: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    entries = [{"url": url, "priority": prio, "changefreq": freq} for url, prio, freq in STATIC_PAGES]
    for p in projects:
        if p.get("slug") and p.get("status") == "active":
            entries.append({"url": f"/project/{p['slug']}", "priority": "0.7", "changefreq": "weekly"})
    return entries


def render_sitemap(entries: Iterable[Mapping[str, str]], base: Optional[str] = None,
                   lastmod: Optional[date] = None) -> str:
    lastmod_s = (lastmod or date.today()).isoformat()
    xml = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for e in entries:
        xml.append(
            "  <url>\n"
            f"    <loc>{_xesc(absolute_url(e['url'], base))}</loc>\n"
            f"    <lastmod>{lastmod_s}</lastmod>\n"
            f"    <changefreq>{e['changefreq']}</changefreq>\n"
            f"    <priority>{e['priority']}</priority>\n"
            "  </url>"
        )
    xml.append("</urlset>")
    return "\n".join(xml)


def robots_lines(base: Optional[str] = None) -> List[str]:
    return [
        "User-agent: *",
        "Allow: /",
        "",
        "# SEO Content Hub",
        "Allow: /real-estate-dubai/",
        "",
        "Disallow: /admin",
        "Disallow: /admin/",
        "Disallow: /api/",
        "",
        f"Sitemap: {(base or BASE_URL).rstrip('/')}/sitemap.xml",
    ]
