"""Thin wrapper around deep_translator for easier testing."""

from __future__ import annotations

import logging

from deep_translator import GoogleTranslator

LOGGER = logging.getLogger(__name__)

# direction מה-API -> (source, target)
DIRECTIONS = {
    "he-to-en": ("iw", "en"),
    "en-to-he": ("en", "iw"),
}


def _google_code(lang: str) -> str:
    # Google Translate still expects the legacy "iw" code for Hebrew
    return "iw" if lang == "he" else lang


def translate(text: str, target_lang: str, source_lang: str = "auto") -> str:
    """Translate *text* to *target_lang* using deep_translator."""

    if not (text or "").strip():
        return text
    translator = GoogleTranslator(source=_google_code(source_lang), target=_google_code(target_lang))
    return translator.translate(text)


def translate_direction(text: str, direction: str) -> str:
    source, target = DIRECTIONS.get(direction, DIRECTIONS["en-to-he"])
    LOGGER.debug("machine translation %s -> %s (%d chars)", source, target, len(text or ""))
    return translate(text, target, source)


__all__ = ["GoogleTranslator", "translate", "translate_direction", "DIRECTIONS"]
