"""Input cleanup for user-submitted strings (XSS patterns)."""

from __future__ import annotations

import html
import re
from typing import Any

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_SCHEME_RE = re.compile(r"javascript\s*:", re.IGNORECASE)


def sanitize_string(value: str) -> str:
    """Strip script blocks, inline event handlers and javascript: URLs. Idempotent."""
    value = _SCRIPT_RE.sub("", value)
    value = _EVENT_HANDLER_RE.sub("", value)
    value = _JS_SCHEME_RE.sub("", value)
    return value.strip()


def sanitize_object(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {k: sanitize_object(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_object(v) for v in value]
    return value


def decode_html_entities(value: str) -> str:
    # רשומות ישנות נשמרו עם entities מקודדים
    return html.unescape(value or "")
