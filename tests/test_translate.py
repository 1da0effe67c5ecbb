import pytest


class FakeTranslator:
    calls = []

    def __init__(self, source="auto", target="iw"):
        self.source = source
        self.target = target
        FakeTranslator.calls.append((source, target))

    def translate(self, value):
        if value == "hello" and self.target == "iw":
            return "שלום"
        if value == "שלום" and self.target == "en":
            return "hello"
        return value


@pytest.fixture()
def translation(monkeypatch):
    import services.translation as module

    FakeTranslator.calls = []
    monkeypatch.setattr(module, "GoogleTranslator", FakeTranslator)
    return module


@pytest.mark.parametrize(
    "text,lang,expected",
    [
        ("hello", "he", "שלום"),
        ("שלום", "en", "hello"),
    ],
)
def test_translate_smoke(translation, text, lang, expected):
    assert translation.translate(text, lang) == expected


def test_hebrew_uses_google_code(translation):
    translation.translate("hello", "he", "en")
    assert FakeTranslator.calls == [("en", "iw")]


def test_blank_text_skips_translator(translation):
    assert translation.translate("   ", "he") == "   "
    assert FakeTranslator.calls == []


def test_translate_direction(translation):
    assert translation.translate_direction("שלום", "he-to-en") == "hello"
    assert FakeTranslator.calls == [("iw", "en")]
