"""Utility helpers for the venue finder."""

from __future__ import annotations

import math
from typing import Optional

EARTH_RADIUS_M = 6_371_000.0


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def extract_json_block(text: str) -> str:
    """Strip markdown fences and return the outermost JSON array/object if present."""
    if not text:
        return text
    cleaned = text.replace("```json", "").replace("```", "").strip()
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    if not starts:
        return cleaned
    start = min(starts)
    end = cleaned.rfind("]" if cleaned[start] == "[" else "}")
    if end > start:
        return cleaned[start : end + 1]
    return cleaned


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Great-circle distance in meters, rounded to the nearest meter."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return int(round(EARTH_RADIUS_M * c))


def initial_bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Forward azimuth from point 1 to point 2, in degrees [0, 360)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlambda = math.radians(lng2 - lng1)
    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def format_distance(meters: int) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f}km"
    return f"{meters}m"
