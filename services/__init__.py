# -*- coding: utf-8 -*-
"""
services package – public API surface.

מטרות:
- הראוטים מייבאים מכאן את נקודות הכניסה העיקריות (תוכן CMS, תרגום, SEO, ניקוד לידים)
  ולא ישירות מהקבצים הפנימיים.
- מודולים עם מצב (cache, throttle) נשארים נגישים כ-services.<module> לבדיקות.
"""

from __future__ import annotations

from .content_blocks import cms_text, get_content, section_map
from .i18n import normalize_lang, t
from .lead_scoring import score_lead
from .seo import page_meta, project_meta

__all__ = [
    "cms_text",
    "get_content",
    "section_map",
    "normalize_lang",
    "t",
    "score_lead",
    "page_meta",
    "project_meta",
    "__version__",
]

__version__ = "2026.10.0"
