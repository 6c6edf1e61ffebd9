from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from loguru import logger

from models import Candidate, EligibleVenue, NearbyCandidate, OpeningPeriod
from services.classifier import is_known_chain_brand

MINUTES_PER_DAY = 24 * 60
MINUTES_PER_WEEK = 7 * MINUTES_PER_DAY
ALWAYS_OPEN_MINUTES = MINUTES_PER_DAY

DEFAULT_BUFFER_MIN = 55
CHAIN_BUFFER_MIN = 30


def week_minutes(day: int, hour: int, minute: int) -> int:
    """Minutes since Sunday 00:00."""
    return day * MINUTES_PER_DAY + hour * 60 + minute


def current_week_minutes(now: Optional[datetime] = None, tz_offset_hours: int = 9) -> int:
    tz = timezone(timedelta(hours=tz_offset_hours))
    if now is None:
        local = datetime.now(tz)
    elif now.tzinfo is None:
        # naive values are taken as local wall time already
        local = now
    else:
        local = now.astimezone(tz)
    # isoweekday: Mon=1 .. Sun=7 -> Sun=0
    day = local.isoweekday() % 7
    return week_minutes(day, local.hour, local.minute)


def _period_remaining(period: OpeningPeriod, now_min: int) -> Optional[int]:
    if not period.has_close:
        return ALWAYS_OPEN_MINUTES

    open_min = week_minutes(period.open_day, period.open_hour, period.open_minute)
    close_min = week_minutes(period.close_day or 0, period.close_hour or 0, period.close_minute or 0)

    if open_min < close_min:
        if open_min <= now_min < close_min:
            return close_min - now_min
        return None

    # wraps past Saturday -> Sunday
    if now_min >= open_min:
        return close_min + MINUTES_PER_WEEK - now_min
    if now_min < close_min:
        return close_min - now_min
    return None


def remaining_open_minutes(candidate: Candidate, now_min: int) -> Optional[int]:
    """Minutes until the venue closes, or None when it is closed or the schedule is ambiguous."""
    if candidate.open_now is not True:
        return None
    if not candidate.periods:
        return ALWAYS_OPEN_MINUTES
    for period in candidate.periods:
        remaining = _period_remaining(period, now_min)
        if remaining is not None:
            return remaining
    return None


def filter_by_closing_time(
    nearby: Iterable[NearbyCandidate],
    now: Optional[datetime] = None,
    *,
    buffer_min: int = DEFAULT_BUFFER_MIN,
    chain_buffer_min: int = CHAIN_BUFFER_MIN,
    tz_offset_hours: int = 9,
) -> List[EligibleVenue]:
    now_min = current_week_minutes(now, tz_offset_hours)
    logger.debug("Closing-time filter at week minute {}", now_min)

    eligible: list[EligibleVenue] = []
    for item in nearby:
        c = item.candidate
        if c.open_now is not True:
            continue
        remaining = remaining_open_minutes(c, now_min)
        if remaining is None:
            logger.debug("Dropping {}: open_now but no period covers now", c.name)
            continue

        is_chain = is_known_chain_brand(c.name)
        threshold = chain_buffer_min if is_chain else buffer_min
        if remaining < threshold:
            logger.debug(
                "Dropping {}: closing soon ({} < {} min, chain={})", c.name, remaining, threshold, is_chain
            )
            continue

        eligible.append(
            EligibleVenue(
                candidate=c,
                remaining_open_minutes=min(remaining, ALWAYS_OPEN_MINUTES),
                distance_m=item.distance_m,
            )
        )
    return eligible
