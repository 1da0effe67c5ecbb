import json
import os

from services import analytics


def _track(client, **body):
    return client.post("/api/track", json=body)


def test_views_deduplicated_per_session(client):
    first = _track(client, event="view", projectId="p1", path="/project/a")
    assert first.get_json() == {"ok": True, "logged": True}
    assert _track(client, event="view", projectId="p1").get_json()["logged"] is False
    # יעד אחר נספר בנפרד
    assert _track(client, event="view", target_id="p2").get_json()["logged"] is True


def test_clicks_always_logged(client):
    for _ in range(2):
        assert _track(client, event="click_whatsapp", target_id="p1").get_json()["logged"] is True


def test_bad_event_rejected(client):
    assert _track(client, event="hack", target_id="p1").status_code == 400
    assert _track(client, event="view").status_code == 400


def test_path_falls_back_to_referer(client, data_dir):
    client.post("/api/track", json={"event": "cta_click", "target_id": "hero"},
                headers={"Referer": "https://propline.co.il/projects?lang=en"})
    folder = data_dir / "analytics"
    [name] = os.listdir(folder)
    rec = json.loads((folder / name).read_text(encoding="utf-8").strip())
    assert rec["path"] == "/projects?lang=en"
    assert rec["sid"]


def test_summary_aggregates_month(admin_client):
    _track(admin_client, event="view", target_id="p1")
    _track(admin_client, event="click_call", target_id="p1")
    _track(admin_client, event="click_call", target_id="p2")
    summary = admin_client.get("/api/analytics/summary").get_json()
    assert summary["totals"] == {"view": 1, "click_call": 2}
    assert summary["targets"]["p1"] == {"view": 1, "click_call": 1}
    assert summary["month"] in summary["months"]


def test_summary_requires_login(client):
    assert client.get("/api/analytics/summary").status_code == 401


def test_aggregate_skips_unknown_rows():
    rows = [{"event": "view", "target_id": "a"}, {"event": "other", "target_id": "a"}, {"event": "view"}]
    assert analytics.aggregate(rows) == {"a": {"view": 1}}


def _write_day(data_dir, day, *events):
    folder = data_dir / "analytics"
    folder.mkdir(exist_ok=True)
    lines = [json.dumps({"event": e, "target_id": "p1"}) for e in events]
    (folder / f"{day}.jsonl").write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_summary_only_reads_the_requested_month(admin_client, data_dir):
    _write_day(data_dir, "2026-10-05", "view")
    _write_day(data_dir, "2026-11-05", "view", "click_call")
    (data_dir / "analytics" / "notes.jsonl").write_text("{}\n", encoding="utf-8")

    october = admin_client.get("/api/analytics/summary?month=2026-10").get_json()
    assert october["totals"] == {"view": 1}
    assert october["months"] == ["2026-11", "2026-10"]
    assert admin_client.get("/api/analytics/summary?month=2026-01").get_json()["totals"] == {}


def test_summary_rejects_malformed_month(admin_client, data_dir):
    _write_day(data_dir, "2026-10-05", "view")
    for bad in ("2026-1", "2", "2026-10-05", "../x"):
        resp = admin_client.get(f"/api/analytics/summary?month={bad}")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid month"
