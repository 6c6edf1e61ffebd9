from __future__ import annotations

import asyncio
import math
from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger

from config import Configuration
from models import AnalysisRecord, RankedVenue, Recommendation, VenueContext, VenueListing
from services.analysis_cache import AnalysisCache
from services.candidate_search import PlaceSearchProvider, build_queries, merge_candidates
from services.catalog import CURRENT_LOCATION_LABEL, NOT_FOUND_SUFFIX
from services.classifier import category_label, normalize_category
from services.opening_hours import filter_by_closing_time
from services.ranking import rank_venues
from utils import format_distance, initial_bearing_deg

REVIEWS_FOR_CONTEXT = 3
REVIEW_SNIPPET_CHARS = 100


def resolve_origin(
    cfg: Configuration,
    provider: PlaceSearchProvider,
    *,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    name: Optional[str] = None,
    query: Optional[str] = None,
) -> Tuple[Tuple[float, float], str]:
    """Pick the search origin: explicit coordinates, then a geocoded query, then the default."""
    if lat is not None and lng is not None:
        if math.isfinite(lat) and math.isfinite(lng):
            return (lat, lng), name or CURRENT_LOCATION_LABEL
        logger.warning("Ignoring non-finite coordinates ({}, {})", lat, lng)

    if query:
        geocode = getattr(provider, "geocode", None)
        location = None
        if geocode is not None:
            try:
                location = geocode(query)
            except Exception as exc:
                logger.warning("Geocoding {!r} failed: {}", query, exc)
        if location is not None:
            return (location.lat, location.lng), location.name
        logger.warning("Location not found for: {}", query)
        return (cfg.default_lat, cfg.default_lng), f'"{query}" {NOT_FOUND_SUFFIX}'

    return (cfg.default_lat, cfg.default_lng), cfg.default_location_name


async def get_eligible_venues(
    cfg: Configuration,
    provider: PlaceSearchProvider,
    origin: Tuple[float, float],
    location_name: str,
    *,
    drinking_mode: bool = False,
    now: Optional[datetime] = None,
) -> VenueListing:
    """Discover, filter by closing time, classify and rank venues around ``origin``.

    Raises ``CandidateFetchError`` when no search query could be served at all.
    """
    logger.info("Searching stores near {} [Location: {}]", origin, location_name)
    queries = build_queries(location_name)
    nearby = await merge_candidates(
        provider, origin, queries, cfg.search_radius_m, timeout=cfg.query_timeout_sec
    )

    eligible = filter_by_closing_time(
        nearby,
        now,
        buffer_min=cfg.closing_buffer_min,
        chain_buffer_min=cfg.chain_closing_buffer_min,
        tz_offset_hours=cfg.tz_offset_hours,
    )
    logger.info("After closing-time filter: {} of {} places", len(eligible), len(nearby))

    ranked = rank_venues(
        eligible,
        drinking_mode=drinking_mode,
        max_display_items=cfg.max_display_items,
        chain_ratio=cfg.chain_ratio,
    )
    return VenueListing(
        venues=ranked,
        candidates=[n.candidate for n in nearby],
        location_name=location_name,
        origin=origin,
    )


def build_context(venue: RankedVenue) -> VenueContext:
    c = venue.candidate
    snippets = [r[:REVIEW_SNIPPET_CHARS] for r in c.reviews[:REVIEWS_FOR_CONTEXT] if r]
    if c.website:
        reservation = f"予約URL: {c.website}"
    elif c.phone:
        reservation = f"電話: {c.phone}"
    else:
        reservation = "予約情報なし"
    return VenueContext(
        id=c.id,
        name=c.name,
        category=venue.category,
        distance_m=venue.venue.distance_m,
        formatted_distance=format_distance(venue.venue.distance_m),
        remaining_open_minutes=venue.venue.remaining_open_minutes,
        rating=c.rating,
        types=c.types,
        review_text="\n".join(snippets),
        reservation_info=reservation,
        editorial_summary=c.editorial_summary,
        address=c.address,
        reviews=c.reviews,
    )


def insight_template(category: str, rating: Optional[float], formatted_distance: str) -> str:
    rating_text = f"評価{rating:.1f}" if rating else "評価なし"
    return f"{category_label(category)}・{rating_text}・ここから{formatted_distance}"


def merge_analysis(
    venue: RankedVenue,
    record: Optional[AnalysisRecord],
    origin: Optional[Tuple[float, float]] = None,
) -> Recommendation:
    c = venue.candidate
    distance = venue.venue.distance_m
    formatted = format_distance(distance)
    category = venue.category

    rec = Recommendation(
        id=c.id,
        rank=venue.rank,
        name=c.name,
        address=c.address,
        category=category,
        is_chain=venue.is_chain,
        rating=c.rating or 0.0,
        distance_m=distance,
        formatted_distance=formatted,
        remaining_open_minutes=venue.venue.remaining_open_minutes,
        maps_uri=c.maps_uri or "",
        price_level=c.price_level or "PRICE_LEVEL_UNSPECIFIED",
        review_count=len(c.reviews),
        reviews_text=" ".join(c.reviews),
        phone=c.phone,
        website=c.website,
        photo_name=c.photo_name,
    )
    if origin is not None and c.has_coordinates:
        bearing = initial_bearing_deg(origin[0], origin[1], c.lat, c.lng)  # type: ignore[arg-type]
        rec.bearing_deg = int(round(bearing)) % 360
    if record is not None:
        stored_category = normalize_category(record.category)
        if stored_category:
            rec.category = stored_category
        rec.insight = record.insight
        rec.mood = record.mood
        rec.best_for = record.best_for
        rec.score = record.score
        rec.drinking_score = record.drinking_score
        rec.recommended_menu = record.recommended_menu
        rec.has_alcohol = record.has_alcohol
        rec.tags = list(record.tags)
        rec.alcohol_status = record.alcohol_status
        rec.alcohol_note = record.alcohol_note
        rec.hero_feature = record.hero_feature
        rec.lo_risk = record.lo_risk
        rec.analysis_source = record.source

    if not rec.insight:
        rec.insight = insight_template(rec.category, c.rating, formatted)
    return rec


async def enrich_venues(
    cache: AnalysisCache,
    venues: List[RankedVenue],
    origin: Optional[Tuple[float, float]] = None,
) -> List[Recommendation]:
    if not venues:
        return []
    contexts = [build_context(v) for v in venues]
    # the store round trip and enrichment call block; keep them off the event loop
    records = await asyncio.to_thread(cache.resolve, contexts)
    return [merge_analysis(v, records.get(v.id), origin) for v in venues]
