from __future__ import annotations

import threading
import time
import urllib.parse
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import Candidate, GeocodeResult, OpeningPeriod


class PlacesError(RuntimeError):
    pass


_MISS = object()


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


FIELD_MASK = ",".join(
    "places." + f
    for f in (
        "id",
        "displayName",
        "formattedAddress",
        "currentOpeningHours",
        "reviews",
        "priceLevel",
        "types",
        "googleMapsUri",
        "rating",
        "location",
        "nationalPhoneNumber",
        "websiteUri",
        "photos",
        "editorialSummary",
        "servesBeer",
        "servesWine",
        "servesCocktails",
    )
)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_period(raw: Dict[str, Any]) -> Optional[OpeningPeriod]:
    open_part = raw.get("open")
    if not isinstance(open_part, dict):
        return None
    close_part = raw.get("close")
    if not isinstance(close_part, dict):
        return OpeningPeriod(
            open_day=_as_int(open_part.get("day")),
            open_hour=_as_int(open_part.get("hour")),
            open_minute=_as_int(open_part.get("minute")),
        )
    return OpeningPeriod(
        open_day=_as_int(open_part.get("day")),
        open_hour=_as_int(open_part.get("hour")),
        open_minute=_as_int(open_part.get("minute")),
        close_day=_as_int(close_part.get("day")),
        close_hour=_as_int(close_part.get("hour")),
        close_minute=_as_int(close_part.get("minute")),
    )


def parse_place(raw: Dict[str, Any]) -> Optional[Candidate]:
    """Validate one Places API (New) object into a Candidate; None if it has no id."""
    place_id = raw.get("id")
    if not place_id:
        return None

    name = (raw.get("displayName") or {}).get("text") or "Unknown"
    location = raw.get("location") or {}
    lat = location.get("latitude")
    lng = location.get("longitude")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        lat, lng = None, None

    hours = raw.get("currentOpeningHours") or {}
    open_now = hours.get("openNow")
    periods: list[OpeningPeriod] = []
    for item in hours.get("periods") or []:
        if isinstance(item, dict):
            period = _parse_period(item)
            if period is not None:
                periods.append(period)

    types = [str(t) for t in (raw.get("types") or []) if t]
    if raw.get("servesBeer") is True:
        types.append("serves_beer")
    if raw.get("servesWine") is True:
        types.append("serves_wine")
    if raw.get("servesCocktails") is True:
        types.append("serves_cocktails")

    reviews: list[str] = []
    for review in raw.get("reviews") or []:
        text = ((review or {}).get("text") or {}).get("text")
        if text:
            reviews.append(str(text))

    rating = raw.get("rating")
    rating = float(rating) if isinstance(rating, (int, float)) and not isinstance(rating, bool) else None

    photos = raw.get("photos") or []
    photo_name = photos[0].get("name") if photos and isinstance(photos[0], dict) else None

    maps_uri = raw.get("googleMapsUri")
    if not maps_uri:
        q = urllib.parse.quote_plus(str(name))
        maps_uri = f"https://www.google.com/maps/search/?api=1&query={q}"

    return Candidate(
        id=str(place_id),
        name=str(name),
        address=str(raw.get("formattedAddress") or ""),
        lat=float(lat) if lat is not None else None,
        lng=float(lng) if lng is not None else None,
        open_now=open_now if isinstance(open_now, bool) else None,
        periods=tuple(periods),
        types=tuple(types),
        rating=rating,
        reviews=tuple(reviews),
        phone=raw.get("nationalPhoneNumber") or None,
        website=raw.get("websiteUri") or None,
        maps_uri=str(maps_uri),
        photo_name=photo_name,
        editorial_summary=(raw.get("editorialSummary") or {}).get("text") or None,
        price_level=raw.get("priceLevel") or None,
    )


class GooglePlacesClient:
    """Place Search Provider backed by Google Places Text Search (New) and Geocoding."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.places_base = cfg.places_base_url.rstrip("/")
        self.geocode_base = cfg.geocode_base_url.rstrip("/")
        self.session = requests.Session()
        self._cache_ttl = 60 * 5
        self._cache_max = 128
        self._geocode_cache: OrderedDict[str, Tuple[float, Optional[GeocodeResult]]] = OrderedDict()
        self._cache_lock = threading.Lock()

    def _cache_get(self, key: str) -> Any:
        """Cached value (None for a cached 'not found'), or ``_MISS``."""
        with self._cache_lock:
            entry = self._geocode_cache.get(key)
            if entry is None:
                return _MISS
            ts, value = entry
            if time.time() - ts > self._cache_ttl:
                self._geocode_cache.pop(key, None)
                return _MISS
            self._geocode_cache.move_to_end(key)
            return value

    def _cache_set(self, key: str, value: Optional[GeocodeResult]) -> None:
        with self._cache_lock:
            self._geocode_cache[key] = (time.time(), value)
            self._geocode_cache.move_to_end(key)
            while len(self._geocode_cache) > self._cache_max:
                self._geocode_cache.popitem(last=False)

    def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.request(method, url, timeout=self.cfg.places_timeout, **kwargs)
            except requests.RequestException as exc:
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise PlacesError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise PlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise PlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                return resp.json()
            except ValueError:
                raise PlacesError("invalid json response")

    def search(self, origin: Tuple[float, float], query: str, radius_m: float) -> List[Candidate]:
        lat, lng = origin
        body = {
            "textQuery": query,
            "maxResultCount": self.cfg.places_max_results,
            "languageCode": self.cfg.lang_default,
            "locationBias": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": float(radius_m),
                }
            },
            "openNow": True,
        }
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.cfg.google_maps_api_key or "",
            "X-Goog-FieldMask": FIELD_MASK,
        }
        payload = self._request("POST", f"{self.places_base}/v1/places:searchText", json=body, headers=headers)
        results: list[Candidate] = []
        for raw in payload.get("places") or []:
            if not isinstance(raw, dict):
                continue
            candidate = parse_place(raw)
            if candidate is not None:
                results.append(candidate)
        return results

    def geocode(self, text: str) -> Optional[GeocodeResult]:
        lang = self.cfg.lang_default
        key = f"geocode:{lang}:{text.strip().lower()}"
        cached = self._cache_get(key)
        if cached is not _MISS:
            return cached
        payload = self._request(
            "GET",
            f"{self.geocode_base}/maps/api/geocode/json",
            params={"address": text, "language": lang, "key": self.cfg.google_maps_api_key},
        )
        status = payload.get("status")
        results = payload.get("results") or []
        if status != "OK" or not results:
            logger.warning("Geocoding failed for {!r}: {}", text, status)
            self._cache_set(key, None)
            return None
        first = results[0]
        loc = (first.get("geometry") or {}).get("location") or {}
        if loc.get("lat") is None or loc.get("lng") is None:
            self._cache_set(key, None)
            return None
        result = GeocodeResult(
            lat=float(loc["lat"]),
            lng=float(loc["lng"]),
            name=first.get("formatted_address") or text,
        )
        self._cache_set(key, result)
        return result
