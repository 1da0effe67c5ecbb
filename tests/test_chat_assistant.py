import json

from services import ai_client, chat_assistant, storage


def _project(**kw):
    base = {"name": "Marina Vista", "status": "active", "slug": "marina-vista", "priceFrom": 1250000}
    base.update(kw)
    return storage.projects.create(base)


def test_summarize_project_includes_key_facts():
    text = chat_assistant.summarize_project({
        "name": "Palm Bay",
        "developer": "Emaar",
        "priceFrom": 980000,
        "roiPercent": 8,
        "paymentPlan": {"downPayment": 20, "onHandover": 80},
        "units": [{"typeHe": "סטודיו"}, {"type": "1BR"}],
        "slug": "palm-bay",
    })
    assert "יזם: Emaar" in text
    assert "980,000 AED" in text
    assert "20% מקדמה, 80% במסירה" in text
    assert "סטודיו, 1BR" in text
    assert text.endswith("קישור: /project/palm-bay")


def test_context_lists_only_active_projects():
    _project()
    _project(name="Hidden", status="draft")
    text = chat_assistant.get_project_context()
    assert "Marina Vista" in text
    assert "Hidden" not in text


def test_empty_context_message():
    assert chat_assistant.get_project_context() == chat_assistant.NO_ACTIVE_PROJECTS


def test_context_cached_until_invalidated():
    _project()
    first = chat_assistant.get_project_context()
    _project(name="Creek Tower")
    assert chat_assistant.get_project_context() == first
    chat_assistant.invalidate_project_context()
    assert "Creek Tower" in chat_assistant.get_project_context()


def test_context_expires_after_ttl():
    _project()
    chat_assistant.get_project_context(now=1000.0)
    _project(name="Creek Tower")
    later = 1000.0 + chat_assistant.PROJECT_CONTEXT_TTL_SECONDS + 1
    assert "Creek Tower" in chat_assistant.get_project_context(now=later)


def test_normalize_messages_accepts_both_shapes():
    raw = [
        {"role": "system", "content": "ignore me"},
        {"role": "user", "content": "  שלום  "},
        {"role": "assistant", "parts": [{"type": "text", "text": "היי"}, {"type": "image", "url": "x"}]},
        {"role": "user", "content": ""},
        "junk",
    ]
    assert chat_assistant.normalize_messages(raw) == [
        {"role": "user", "content": "שלום"},
        {"role": "assistant", "content": "היי"},
    ]


def test_normalize_messages_keeps_last_twenty():
    raw = [{"role": "user", "content": str(i)} for i in range(30)]
    out = chat_assistant.normalize_messages(raw)
    assert len(out) == chat_assistant.MAX_HISTORY
    assert out[0]["content"] == "10"


def test_sse_events_shape():
    events = list(chat_assistant.sse_events(iter(["של", "ום"])))
    payloads = [e[len("data: "):].strip() for e in events]
    assert payloads[-1] == "[DONE]"
    parsed = [json.loads(p) for p in payloads[:-1]]
    assert [p["type"] for p in parsed] == ["start", "text-delta", "text-delta", "finish"]
    assert parsed[1]["delta"] == "של"


def test_sse_events_reports_stream_error():
    def broken():
        yield "a"
        raise ai_client.AIError("boom")

    events = list(chat_assistant.sse_events(broken()))
    types = [json.loads(e[6:])["type"] for e in events[:-1]]
    assert types == ["start", "text-delta", "error", "finish"]


def test_system_prompt_embeds_context(monkeypatch):
    _project()
    seen = {}

    def fake_chat(system, messages):
        seen["system"] = system
        return "תשובה"

    monkeypatch.setattr(ai_client, "chat", fake_chat)
    assert chat_assistant.reply([{"role": "user", "content": "מה יש?"}]) == "תשובה"
    assert "Marina Vista" in seen["system"]
    assert "באנדי" in seen["system"]
