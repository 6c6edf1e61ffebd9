"""Shared fakes for the test suite."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from models import AnalysisRecord, Candidate, EligibleVenue, OpeningPeriod, VenueContext

ORIGIN = (34.4503, 135.4526)


def make_candidate(
    place_id: str,
    name: str = "テスト食堂",
    *,
    lat: Optional[float] = ORIGIN[0],
    lng: Optional[float] = ORIGIN[1],
    open_now: Optional[bool] = True,
    periods: Iterable[OpeningPeriod] = (),
    types: Iterable[str] = ("restaurant",),
    rating: Optional[float] = None,
    reviews: Iterable[str] = (),
    **extra,
) -> Candidate:
    return Candidate(
        id=place_id,
        name=name,
        lat=lat,
        lng=lng,
        open_now=open_now,
        periods=tuple(periods),
        types=tuple(types),
        rating=rating,
        reviews=tuple(reviews),
        **extra,
    )


def make_venue(
    place_id: str,
    name: str = "テスト食堂",
    *,
    rating: Optional[float] = None,
    distance_m: int = 100,
    remaining: int = 120,
    types: Iterable[str] = ("restaurant",),
) -> EligibleVenue:
    return EligibleVenue(
        candidate=make_candidate(place_id, name, rating=rating, types=types),
        remaining_open_minutes=remaining,
        distance_m=distance_m,
    )


def make_context(place_id: str, **kwargs) -> VenueContext:
    kwargs.setdefault("name", f"店舗{place_id}")
    kwargs.setdefault("category", "restaurant")
    return VenueContext(id=place_id, **kwargs)


class FakeProvider:
    """Place Search Provider returning canned results per query; listed queries raise."""

    def __init__(
        self,
        results: Optional[Dict[str, List[Candidate]]] = None,
        *,
        failing: Iterable[str] = (),
        default: Optional[List[Candidate]] = None,
    ) -> None:
        self.results = results or {}
        self.failing = set(failing)
        self.default = default or []
        self.calls: List[Tuple[Tuple[float, float], str, float]] = []

    def search(self, origin, query, radius_m):
        self.calls.append((origin, query, radius_m))
        if query in self.failing or "*" in self.failing:
            raise RuntimeError(f"boom: {query}")
        return list(self.results.get(query, self.default))


class RecordingStore:
    """Persistent store double that counts calls and can be told to fail."""

    def __init__(
        self,
        records: Optional[Dict[str, AnalysisRecord]] = None,
        *,
        fail_bulk: bool = False,
        fail_exists: bool = False,
        fail_put_ids: Iterable[str] = (),
    ) -> None:
        self.records = dict(records or {})
        self.fail_bulk = fail_bulk
        self.fail_exists = fail_exists
        self.fail_put_ids = set(fail_put_ids)
        self.bulk_calls: List[List[str]] = []
        self.puts: List[str] = []

    def bulk_get(self, ids):
        ids = list(ids)
        self.bulk_calls.append(ids)
        if self.fail_bulk:
            raise RuntimeError("store down")
        return {i: self.records[i] for i in ids if i in self.records}

    def exists(self, place_id):
        if self.fail_exists:
            raise RuntimeError("query failed")
        return place_id in self.records

    def put(self, place_id, record, context=None):
        if place_id in self.fail_put_ids:
            raise RuntimeError("write failed")
        self.puts.append(place_id)
        self.records[place_id] = record
