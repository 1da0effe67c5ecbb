# -*- coding: utf-8 -*-
"""
Location search over the Mapbox geocoding API.

- MapboxGeocoder: בקשה אחת ל-Mapbox + cache תוצאות לפי שאילתה מנורמלת.
- LocationSearch: חיפוש עם debounce וביטול – כל חיפוש חדש מבטל את הטיימר
  הממתין ומסמן את הבקשה שבדרך כלא רלוונטית, כך שרק תוצאות השאילתה
  האחרונה נמסרות.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Tuple
from urllib.parse import quote

import requests

LOGGER = logging.getLogger(__name__)

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"
DUBAI_PROXIMITY = "55.27,25.2"
RESULT_LIMIT = 5
MIN_QUERY_LENGTH = 2
DEBOUNCE_SECONDS = 0.3
DEFAULT_TIMEOUT = float(os.getenv("GEOCODE_TIMEOUT", "8"))


class GeocodingError(RuntimeError):
    """Mapbox request failed (network, HTTP status or bad payload)."""


class GeocodingNotConfigured(GeocodingError):
    """MAPBOX_ACCESS_TOKEN is not set."""


@dataclass(frozen=True)
class LocationSuggestion:
    id: str
    text: str
    place_name: str
    center: Tuple[float, float]  # (lng, lat)

    @classmethod
    def from_feature(cls, feature: Mapping[str, Any]) -> Optional["LocationSuggestion"]:
        center = feature.get("center") or []
        if len(center) != 2:
            return None
        try:
            lng, lat = float(center[0]), float(center[1])
        except (TypeError, ValueError):
            return None
        return cls(
            id=str(feature.get("id") or ""),
            text=str(feature.get("text") or ""),
            place_name=str(feature.get("place_name") or ""),
            center=(lng, lat),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "placeName": self.place_name,
            "center": [self.center[0], self.center[1]],
        }


def mapbox_token() -> str:
    return (os.environ.get("MAPBOX_ACCESS_TOKEN") or "").strip()


def normalize_query(query: Optional[str]) -> str:
    return " ".join((query or "").split())


class MapboxGeocoder:
    def __init__(self, token: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT, cache_ttl: float = 6 * 60 * 60, cache_max: int = 256):
        self._token = token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.cache_max = cache_max
        self._cache: MutableMapping[str, Tuple[float, List[LocationSuggestion]]] = {}
        self._cache_lock = threading.Lock()

    @property
    def token(self) -> str:
        return self._token if self._token is not None else mapbox_token()

    @property
    def configured(self) -> bool:
        return bool(self.token)

    # -------------------------
    # Cache
    # -------------------------
    def _cache_get(self, key: str) -> Optional[List[LocationSuggestion]]:
        with self._cache_lock:
            entry = self._cache.get(key)
            if not entry:
                return None
            stamp, results = entry
            if time.time() - stamp > self.cache_ttl:
                self._cache.pop(key, None)
                return None
            return list(results)

    def _cache_put(self, key: str, results: List[LocationSuggestion]) -> None:
        with self._cache_lock:
            if len(self._cache) >= self.cache_max:
                oldest = min(self._cache.items(), key=lambda kv: kv[1][0])[0]
                self._cache.pop(oldest, None)
            self._cache[key] = (time.time(), list(results))

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    # -------------------------
    # Search
    # -------------------------
    def search(self, query: Optional[str]) -> List[LocationSuggestion]:
        q = normalize_query(query)
        if len(q) < MIN_QUERY_LENGTH:
            return []
        key = q.lower()
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        token = self.token
        if not token:
            raise GeocodingNotConfigured("Mapbox token not configured")

        url = MAPBOX_GEOCODE_URL.format(query=quote(q, safe=""))
        params = {
            "access_token": token,
            "language": "en",
            "limit": RESULT_LIMIT,
            "proximity": DUBAI_PROXIMITY,
        }
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise GeocodingError(f"Mapbox request failed: {exc}") from exc
        if resp.status_code != 200:
            raise GeocodingError(f"Mapbox API error {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise GeocodingError("Mapbox returned invalid JSON") from exc

        results = []
        for feature in (data or {}).get("features") or []:
            suggestion = LocationSuggestion.from_feature(feature)
            if suggestion is not None:
                results.append(suggestion)
        self._cache_put(key, results)
        return results


ResultsCallback = Callable[[List[LocationSuggestion]], None]


class LocationSearch:
    """Debounced, cancelable search-as-you-type."""

    def __init__(self, geocoder: MapboxGeocoder, delay: float = DEBOUNCE_SECONDS):
        self.geocoder = geocoder
        self.delay = delay
        self.suggestions: List[LocationSuggestion] = []
        self.is_searching = False
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._idle = threading.Event()
        self._idle.set()

    def _cancel_pending(self) -> int:
        # caller holds self._lock
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return self._generation

    def search(self, query: Optional[str], on_results: Optional[ResultsCallback] = None) -> None:
        with self._lock:
            generation = self._cancel_pending()
            if not query or len(query.strip()) < MIN_QUERY_LENGTH:
                self.suggestions = []
                self.is_searching = False
                self._idle.set()
                return
            self.is_searching = True
            self._idle.clear()
            timer = threading.Timer(self.delay, self._run, args=(generation, query, on_results))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _run(self, generation: int, query: str, on_results: Optional[ResultsCallback]) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None

        results: Optional[List[LocationSuggestion]] = None
        try:
            results = self.geocoder.search(query)
        except GeocodingNotConfigured:
            LOGGER.info("location search skipped: Mapbox token not configured")
        except GeocodingError as exc:
            LOGGER.error("Mapbox geocoding error: %s", exc)

        with self._lock:
            if generation != self._generation:
                # a newer search (or clear) superseded this request
                return
            if results is not None:
                self.suggestions = results
            self.is_searching = False

        if results is not None and on_results is not None:
            on_results(results)
        with self._lock:
            if generation == self._generation:
                self._idle.set()

    def clear(self) -> None:
        with self._lock:
            self._cancel_pending()
            self.suggestions = []
            self.is_searching = False
            self._idle.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no search is pending or running."""
        return self._idle.wait(timeout)


_DEFAULT: Optional[MapboxGeocoder] = None
_DEFAULT_LOCK = threading.Lock()


def default_geocoder() -> MapboxGeocoder:
    global _DEFAULT
    with _DEFAULT_LOCK:
        if _DEFAULT is None:
            _DEFAULT = MapboxGeocoder()
        return _DEFAULT


def reset_default_geocoder() -> None:
    global _DEFAULT
    with _DEFAULT_LOCK:
        _DEFAULT = None
