"""Data models for the nearby venue finder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    name: str


@dataclass(frozen=True)
class OpeningPeriod:
    open_day: int
    open_hour: int
    open_minute: int
    # Google encodes 24/7 venues as a single period without a close
    close_day: Optional[int] = None
    close_hour: Optional[int] = None
    close_minute: Optional[int] = None

    @property
    def has_close(self) -> bool:
        return self.close_day is not None


@dataclass(frozen=True)
class Candidate:
    id: str
    name: str
    address: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    open_now: Optional[bool] = None
    periods: Tuple[OpeningPeriod, ...] = ()
    types: Tuple[str, ...] = ()
    rating: Optional[float] = None
    reviews: Tuple[str, ...] = ()
    phone: Optional[str] = None
    website: Optional[str] = None
    maps_uri: Optional[str] = None
    photo_name: Optional[str] = None
    editorial_summary: Optional[str] = None
    price_level: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class NearbyCandidate:
    candidate: Candidate
    distance_m: int


@dataclass(frozen=True)
class EligibleVenue:
    candidate: Candidate
    remaining_open_minutes: int
    distance_m: int


@dataclass(frozen=True)
class RankedVenue:
    venue: EligibleVenue
    category: str
    is_chain: bool
    rank: int = 0

    @property
    def candidate(self) -> Candidate:
        return self.venue.candidate

    @property
    def id(self) -> str:
        return self.venue.candidate.id


@dataclass(frozen=True)
class VenueContext:
    """What the analysis cache and the enrichment call get to see about a venue."""

    id: str
    name: str
    category: str
    distance_m: int = 0
    formatted_distance: str = ""
    remaining_open_minutes: int = 0
    rating: Optional[float] = None
    types: Tuple[str, ...] = ()
    review_text: str = ""
    reservation_info: str = ""
    editorial_summary: Optional[str] = None
    address: str = ""
    reviews: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisRecord:
    place_id: str
    insight: str = ""
    mood: str = ""
    best_for: str = ""
    score: float = 3.0
    drinking_score: float = 0.0
    recommended_menu: str = ""
    has_alcohol: bool = False
    tags: Tuple[str, ...] = ()
    category: Optional[str] = None
    alcohol_status: str = ""
    alcohol_note: str = ""
    hero_feature: str = ""
    lo_risk: str = ""
    source: str = "synthesized"

    @classmethod
    def from_payload(cls, place_id: str, payload: Dict[str, Any], *, source: str) -> "AnalysisRecord":
        """Build a record from a loosely typed JSON object (enrichment output)."""

        def _text(key: str) -> str:
            value = payload.get(key)
            return str(value).strip() if value is not None else ""

        def _number(key: str, default: float) -> float:
            value = payload.get(key)
            if value is None or isinstance(value, bool):
                return default
            try:
                return float(value)
            except (TypeError, ValueError):
                return default

        raw_tags = payload.get("tags") or []
        tags: list[str] = []
        if isinstance(raw_tags, list):
            tags = [str(t) for t in raw_tags if t]
        elif isinstance(raw_tags, str):
            tags = [t.strip() for t in raw_tags.split(",") if t.strip()]

        menu = payload.get("recommendedMenu", payload.get("recommended_menu"))
        if isinstance(menu, list):
            menu = ", ".join(str(m) for m in menu if m)

        score = min(max(_number("score", 3.0), 1.0), 5.0)
        return cls(
            place_id=place_id,
            insight=_text("ai_insight") or _text("insight"),
            mood=_text("mood"),
            best_for=_text("best_for"),
            score=score,
            drinking_score=max(_number("drinking_score", 0.0), 0.0),
            recommended_menu=str(menu).strip() if menu else "",
            has_alcohol=bool(payload.get("hasAlcohol", payload.get("has_alcohol", False))),
            tags=tuple(tags),
            category=_text("category") or None,
            alcohol_status=_text("alcohol_status"),
            alcohol_note=_text("alcohol_note"),
            hero_feature=_text("hero_feature"),
            lo_risk=_text("lo_risk"),
            source=source,
        )


@dataclass
class Recommendation:
    id: str
    rank: int
    name: str
    address: str
    category: str
    is_chain: bool
    rating: float
    distance_m: int
    formatted_distance: str
    remaining_open_minutes: int
    maps_uri: str
    price_level: str = "PRICE_LEVEL_UNSPECIFIED"
    review_count: int = 0
    reviews_text: str = ""
    phone: Optional[str] = None
    website: Optional[str] = None
    photo_name: Optional[str] = None
    # degrees clockwise from north, seen from the search origin
    bearing_deg: Optional[int] = None
    # analysis fields
    insight: str = ""
    mood: str = ""
    best_for: str = ""
    score: float = 0.0
    drinking_score: float = 0.0
    recommended_menu: str = ""
    has_alcohol: bool = False
    tags: List[str] = field(default_factory=list)
    alcohol_status: str = ""
    alcohol_note: str = ""
    hero_feature: str = ""
    lo_risk: str = ""
    analysis_source: str = ""


@dataclass
class VenueListing:
    venues: List[RankedVenue]
    candidates: List[Candidate]
    location_name: str
    origin: Tuple[float, float]
