from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence, Tuple

from services.catalog import (
    CATEGORY_LABELS,
    DEFAULT_CATEGORY,
    FAST_FOOD_CHAIN_PATTERNS,
    GENERIC_TYPE_FALLBACKS,
    KNOWN_CHAIN_BRANDS,
    NAME_CATEGORY_OVERRIDES,
    TYPE_CATEGORY_PRECEDENCE,
)


def is_known_chain_brand(name: Optional[str], brands: Sequence[str] = KNOWN_CHAIN_BRANDS) -> bool:
    """Closing-buffer chain flag: substring match against the brand registry."""
    if not name:
        return False
    return any(brand in name for brand in brands)


@lru_cache(maxsize=8)
def _compile_chain_regex(patterns: Tuple[str, ...]) -> "re.Pattern[str]":
    return re.compile("|".join(re.escape(p) for p in patterns))


def is_fast_food_chain(name: Optional[str], patterns: Sequence[str] = FAST_FOOD_CHAIN_PATTERNS) -> bool:
    """Ranking chain flag: the stricter meal-chain pattern used for the output cap."""
    if not name or not patterns:
        return False
    return _compile_chain_regex(tuple(patterns)).search(name) is not None


def _first_match(tags: set[str], table: Iterable[Tuple[Tuple[str, ...], str]]) -> Optional[str]:
    for keys, category in table:
        if any(k in tags for k in keys):
            return category
    return None


def determine_category(types: Optional[Iterable[str]] = None, name: Optional[str] = None) -> str:
    name = name or ""
    for needles, category in NAME_CATEGORY_OVERRIDES:
        if any(n in name for n in needles):
            return category

    tags = {t for t in (types or []) if t}
    if not tags:
        return DEFAULT_CATEGORY

    return (
        _first_match(tags, TYPE_CATEGORY_PRECEDENCE)
        or _first_match(tags, GENERIC_TYPE_FALLBACKS)
        or DEFAULT_CATEGORY
    )


def category_label(category: Optional[str]) -> str:
    if not category:
        return CATEGORY_LABELS[DEFAULT_CATEGORY]
    return CATEGORY_LABELS.get(category, category)


_LABEL_TO_CATEGORY = {label: slug for slug, label in CATEGORY_LABELS.items()}


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Map a stored category, slug or display label, back to its slug. None if unknown."""
    if not value:
        return None
    value = value.strip()
    if value in CATEGORY_LABELS:
        return value
    return _LABEL_TO_CATEGORY.get(value)
