import threading

import pytest
import requests

from services import geocoding
from services.geocoding import LocationSearch, MapboxGeocoder


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _feature(name, lng=55.27, lat=25.2):
    return {"id": f"place.{name}", "text": name, "place_name": f"{name}, Dubai", "center": [lng, lat]}


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response or FakeResponse(payload={"features": [_feature("Marina")]})
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        if self.exc:
            raise self.exc
        return self.response


def test_search_parses_features_and_caches():
    session = FakeSession()
    geo = MapboxGeocoder(token="tok", session=session)
    results = geo.search("  Dubai   Marina ")
    assert [r.text for r in results] == ["Marina"]
    assert results[0].to_dict()["center"] == [55.27, 25.2]
    url, params = session.calls[0]
    assert "Dubai%20Marina" in url
    assert params["proximity"] == geocoding.DUBAI_PROXIMITY
    assert params["limit"] == 5

    geo.search("dubai marina")
    assert len(session.calls) == 1


def test_short_query_skips_request():
    session = FakeSession()
    assert MapboxGeocoder(token="tok", session=session).search("a") == []
    assert session.calls == []


def test_missing_token_raises(monkeypatch):
    monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)
    with pytest.raises(geocoding.GeocodingNotConfigured):
        MapboxGeocoder(session=FakeSession()).search("Downtown")


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(response=FakeResponse(status_code=401, payload={})),
        FakeSession(response=FakeResponse(payload=ValueError("bad json"))),
        FakeSession(exc=requests.ConnectionError("down")),
    ],
)
def test_failures_raise_geocoding_error(session):
    with pytest.raises(geocoding.GeocodingError):
        MapboxGeocoder(token="tok", session=session).search("Downtown")


def test_features_without_center_are_skipped():
    payload = {"features": [{"id": "x", "text": "bad"}, _feature("JVC")]}
    geo = MapboxGeocoder(token="tok", session=FakeSession(response=FakeResponse(payload=payload)))
    assert [r.text for r in geo.search("JVC area")] == ["JVC"]


class RecordingGeocoder:
    def __init__(self):
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        return [geocoding.LocationSuggestion(id=query, text=query, place_name=query, center=(0.0, 0.0))]


def test_debounce_only_last_query_runs():
    geo = RecordingGeocoder()
    search = LocationSearch(geo, delay=0.05)
    delivered = []
    for q in ("Du", "Dub", "Duba", "Dubai"):
        search.search(q, delivered.append)
    assert search.wait(2)
    assert geo.queries == ["Dubai"]
    assert [r.text for r in search.suggestions] == ["Dubai"]
    assert len(delivered) == 1
    assert search.is_searching is False


def test_short_query_clears_suggestions():
    geo = RecordingGeocoder()
    search = LocationSearch(geo, delay=0.01)
    search.search("Marina")
    assert search.wait(2)
    assert search.suggestions
    search.search("M")
    assert search.suggestions == []
    assert search.is_searching is False


def test_in_flight_result_dropped_after_new_search():
    started = threading.Event()
    release = threading.Event()

    class SlowGeocoder(RecordingGeocoder):
        def search(self, query):
            if query == "first":
                started.set()
                release.wait(2)
            return super().search(query)

    geo = SlowGeocoder()
    search = LocationSearch(geo, delay=0.0)
    delivered = []
    search.search("first", delivered.append)
    assert started.wait(2)
    search.search("second", delivered.append)
    release.set()
    assert search.wait(2)
    assert [r.text for r in search.suggestions] == ["second"]
    assert [batch[0].text for batch in delivered] == ["second"]


def test_clear_cancels_pending_timer():
    geo = RecordingGeocoder()
    search = LocationSearch(geo, delay=0.2)
    search.search("Palm")
    search.clear()
    assert search.wait(1)
    assert geo.queries == []
