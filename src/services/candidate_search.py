from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from models import Candidate, NearbyCandidate
from services.catalog import DEFAULT_QUERIES, LOCAL_QUERY_TEMPLATES
from utils import haversine_m


class PlaceSearchProvider(Protocol):
    def search(self, origin: Tuple[float, float], query: str, radius_m: float) -> List[Candidate]:
        ...


class CandidateFetchError(RuntimeError):
    """No query produced a usable response; distinct from an empty result."""


def _is_named_location(location_name: Optional[str]) -> bool:
    if not location_name:
        return False
    return "現在地" not in location_name and "見つかりません" not in location_name


def build_queries(location_name: Optional[str] = None) -> List[str]:
    queries = list(DEFAULT_QUERIES)
    if _is_named_location(location_name):
        loc = (location_name or "").replace("周辺", "").strip()
        if loc:
            logger.debug("Adding local queries for: {}", loc)
            queries.extend(t.format(loc=loc) for t in LOCAL_QUERY_TEMPLATES)
    return queries


def dedupe_candidates(items: Iterable[Candidate]) -> List[Candidate]:
    """First occurrence of an id wins; candidates without an id are dropped."""
    seen: set[str] = set()
    out: list[Candidate] = []
    for c in items:
        if not c.id or c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return out


def filter_by_radius(
    candidates: Iterable[Candidate], origin: Tuple[float, float], radius_m: float
) -> List[NearbyCandidate]:
    lat, lng = origin
    out: list[NearbyCandidate] = []
    for c in candidates:
        if not c.has_coordinates:
            continue
        dist = haversine_m(lat, lng, c.lat, c.lng)  # type: ignore[arg-type]
        if dist > radius_m:
            continue
        out.append(NearbyCandidate(candidate=c, distance_m=dist))
    out.sort(key=lambda n: n.distance_m)
    return out


async def _fetch_one(
    provider: PlaceSearchProvider,
    origin: Tuple[float, float],
    query: str,
    radius_m: float,
    timeout: Optional[float],
) -> Optional[List[Candidate]]:
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(provider.search, origin, query, radius_m),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Search for {!r} timed out after {}s", query, timeout)
    except Exception as exc:
        logger.warning("Search for {!r} failed: {}", query, exc)
    return None


async def merge_candidates(
    provider: PlaceSearchProvider,
    origin: Tuple[float, float],
    queries: Sequence[str],
    radius_m: float,
    *,
    timeout: Optional[float] = None,
) -> List[NearbyCandidate]:
    if not queries:
        return []

    results = await asyncio.gather(*(_fetch_one(provider, origin, q, radius_m, timeout) for q in queries))

    succeeded = [r for r in results if r is not None]
    if not succeeded:
        raise CandidateFetchError(f"all {len(queries)} search queries failed")

    merged = dedupe_candidates(c for batch in succeeded for c in batch)
    nearby = filter_by_radius(merged, origin, radius_m)
    logger.info(
        "Merged {} queries ({} failed): {} unique, {} within {}m",
        len(queries),
        len(queries) - len(succeeded),
        len(merged),
        len(nearby),
        radius_m,
    )
    return nearby
