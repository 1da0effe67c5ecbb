import threading

import pytest

from services import content_blocks, storage
from services.content_blocks import ContentBlockCache
from services.validators import ValidationError


def _seed():
    content_blocks.create_block({"section": "hero", "blockKey": "cta", "value": "התחל השקעה", "valueEn": "Start"})
    content_blocks.create_block({"section": "hero", "blockKey": "title1", "value": "כותרת", "sortOrder": 1})
    content_blocks.create_block({"section": "about", "blockKey": "title", "value": "מי אנחנו", "isActive": False})


def test_resolve_prefers_language_with_hebrew_fallback():
    _seed()
    assert content_blocks.get_value("hero", "cta", "en") == "Start"
    # אין valueEn -> עברית
    assert content_blocks.get_value("hero", "title1", "en") == "כותרת"


def test_cms_text_falls_back_to_i18n_default_then_fallback():
    _seed()
    assert content_blocks.cms_text("hero", "cta", lang="he") == "התחל השקעה"
    # בלוק מושבת -> ברירת מחדל של i18n
    assert content_blocks.cms_text("about", "title", lang="en") == "About Us"
    assert content_blocks.cms_text("nowhere", "nothing", fallback="x") == "x"


def test_section_map_only_active_blocks():
    _seed()
    assert content_blocks.section_map("about") == {}
    assert content_blocks.section_map("hero", "en") == {"cta": "Start", "title1": "כותרת"}


def test_reads_are_cached_until_mutation():
    _seed()
    content_blocks.CACHE.clear()
    content_blocks.all_blocks()
    content_blocks.section_blocks("hero")
    loads = content_blocks.CACHE.loads
    content_blocks.get_value("hero", "cta")
    assert content_blocks.CACHE.loads == loads

    block = content_blocks.get_block("hero", "cta")
    content_blocks.update_block(block["id"], {"value": "חדש"})
    assert not content_blocks.CACHE.is_cached("hero")
    assert content_blocks.get_value("hero", "cta") == "חדש"
    assert content_blocks.CACHE.loads == loads + 1


def test_direct_storage_write_is_hidden_until_invalidate():
    _seed()
    content_blocks.get_value("hero", "cta")
    block = content_blocks.get_block("hero", "cta")
    storage.content_blocks.update(block["id"], {"value": "ישן"})
    assert content_blocks.get_value("hero", "cta") == "התחל השקעה"
    content_blocks.CACHE.invalidate(["hero"])
    assert content_blocks.get_value("hero", "cta") == "ישן"


def test_duplicate_block_rejected():
    _seed()
    with pytest.raises(ValidationError):
        content_blocks.create_block({"section": "hero", "blockKey": "cta"})
    with pytest.raises(ValidationError):
        content_blocks.create_block({"section": "", "blockKey": "x"})


def test_delete_block_invalidates():
    _seed()
    block = content_blocks.get_block("hero", "cta")
    assert content_blocks.delete_block(block["id"]) is True
    assert content_blocks.get_block("hero", "cta") is None
    assert content_blocks.delete_block(block["id"]) is False


def test_bulk_upsert_validates_everything_first():
    _seed()
    with pytest.raises(ValidationError):
        content_blocks.bulk_upsert([{"section": "hero", "blockKey": "new"}, {"section": "hero"}])
    assert content_blocks.get_block("hero", "new") is None

    saved = content_blocks.bulk_upsert([
        {"section": "hero", "blockKey": "cta", "value": "עודכן"},
        {"section": "footer", "blockKey": "copyright", "value": "©"},
    ])
    assert len(saved) == 2
    assert content_blocks.get_value("hero", "cta") == "עודכן"
    assert content_blocks.get_value("footer", "copyright") == "©"
    assert len(storage.content_blocks.filter(lambda b: b["section"] == "hero" and b["blockKey"] == "cta")) == 1


def test_sections_listing_keeps_order():
    _seed()
    # לפי sortOrder ואז blockKey: hero.cta לפני about.title
    assert content_blocks.sections() == ["hero", "about"]


def test_cache_ttl_expiry():
    now = [100.0]
    rows = [{"section": "s", "blockKey": "k", "value": "1"}]
    cache = ContentBlockCache(ttl_seconds=10, loader=lambda: list(rows), clock=lambda: now[0])
    cache.all_blocks()
    cache.all_blocks()
    assert cache.loads == 1
    now[0] += 11
    cache.all_blocks()
    assert cache.loads == 2


def test_concurrent_cold_reads_load_once():
    gate = threading.Event()
    calls = []

    def slow_loader():
        calls.append(1)
        gate.wait(2)
        return [{"section": "s", "blockKey": "k", "value": "v"}]

    cache = ContentBlockCache(ttl_seconds=60, loader=slow_loader)
    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.all_blocks())) for _ in range(5)]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join(5)
    assert len(calls) == 1
    assert len(results) == 5


def test_invalidate_during_load_discards_stale_result():
    rows = [{"section": "s", "blockKey": "k", "value": "old"}]
    cache = ContentBlockCache(ttl_seconds=60)

    def loader():
        snapshot = list(rows)
        cache.invalidate(["s"])  # מוטציה באמצע טעינה
        return snapshot

    cache._loader = loader
    assert cache.all_blocks()[0]["value"] == "old"
    assert not cache.is_cached()


def test_failed_load_does_not_cache_empty_section():
    from services.json_store import StorageError

    calls = {"n": 0}

    def flaky_loader():
        calls["n"] += 1
        if calls["n"] == 1:
            raise StorageError("disk busy")
        return [{"section": "hero", "blockKey": "title", "value": "דובאי"}]

    cache = ContentBlockCache(ttl_seconds=300, loader=flaky_loader)
    assert cache.section_blocks("hero") == []
    assert not cache.is_cached("hero")
    assert [b["blockKey"] for b in cache.section_blocks("hero")] == ["title"]
    assert cache.is_cached("hero")
