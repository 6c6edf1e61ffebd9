from __future__ import annotations

import math
from typing import Iterable, List, Tuple

from loguru import logger

from models import EligibleVenue, RankedVenue
from services.catalog import NON_ALCOHOL_CATEGORIES
from services.classifier import determine_category, is_fast_food_chain

DEFAULT_MAX_DISPLAY_ITEMS = 45
DEFAULT_CHAIN_RATIO = 0.2


def _sort_key(item: RankedVenue) -> Tuple[float, int]:
    rating = item.candidate.rating or 0.0
    return (-rating, item.venue.distance_m)


def max_chain_count(max_display_items: int, chain_ratio: float = DEFAULT_CHAIN_RATIO) -> int:
    return int(math.floor(max_display_items * chain_ratio))


def classify(venue: EligibleVenue) -> RankedVenue:
    c = venue.candidate
    return RankedVenue(
        venue=venue,
        category=determine_category(c.types, c.name),
        is_chain=is_fast_food_chain(c.name),
    )


def rank_venues(
    venues: Iterable[EligibleVenue],
    *,
    drinking_mode: bool = False,
    max_display_items: int = DEFAULT_MAX_DISPLAY_ITEMS,
    chain_ratio: float = DEFAULT_CHAIN_RATIO,
) -> List[RankedVenue]:
    """Rating-primary ranking with a cap on meal chains.

    Chains and independents are sorted separately (rating desc, distance asc),
    at most ``floor(max_display_items * chain_ratio)`` chains are kept, the
    rest of the slots go to independents, and the union is re-sorted with the
    same comparator before truncation.
    """
    max_display_items = max(0, max_display_items)
    classified = [classify(v) for v in venues]

    if drinking_mode:
        before = len(classified)
        classified = [r for r in classified if r.category not in NON_ALCOHOL_CATEGORIES]
        logger.debug("Drinking mode removed {} non-alcohol venues", before - len(classified))

    chains = sorted((r for r in classified if r.is_chain), key=_sort_key)
    independents = sorted((r for r in classified if not r.is_chain), key=_sort_key)

    selected_chains = chains[: max_chain_count(max_display_items, chain_ratio)]
    selected_independents = independents[: max(0, max_display_items - len(selected_chains))]

    combined = sorted(selected_chains + selected_independents, key=_sort_key)[:max_display_items]
    ranked = [
        RankedVenue(venue=r.venue, category=r.category, is_chain=r.is_chain, rank=idx)
        for idx, r in enumerate(combined, start=1)
    ]
    logger.info(
        "Ranked {} venues ({} chains of {} available, {} independents of {})",
        len(ranked),
        len(selected_chains),
        len(chains),
        len(selected_independents),
        len(independents),
    )
    return ranked
