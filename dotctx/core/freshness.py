"""Staleness and expiry of time-stamped records."""

import re
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union

from .models import OpenLoop

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
DEFAULT_DURATION_MS = 48 * HOUR_MS
EXPIRY_WARNING_WINDOW_MS = DAY_MS

DURATION_PATTERN = re.compile(r'^(\d+)(h|d|w|m)$')

_UNIT_MS = {
    'h': HOUR_MS,
    'd': DAY_MS,
    'w': 7 * DAY_MS,
    'm': 30 * DAY_MS,
}

Timestamp = Union[str, date, datetime, None]


def parse_duration(duration: Optional[str]) -> int:
    """
    Parse a duration like '48h', '14d', '2w' or '1m' into milliseconds.

    Anything that does not match falls back to 48 hours.
    """
    match = DURATION_PATTERN.match(duration or '')
    if not match:
        return DEFAULT_DURATION_MS
    return int(match.group(1)) * _UNIT_MS[match.group(2)]


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse an ISO date/datetime into an aware UTC datetime; None when unparseable."""
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_stale(updated_at: Timestamp, threshold_hours: float = 48, now: Optional[datetime] = None) -> bool:
    """True when the timestamp is missing, unparseable, or older than the threshold."""
    updated = parse_timestamp(updated_at)
    if updated is None:
        return True
    now = now or utc_now()
    return now - updated > timedelta(hours=threshold_hours)


def loop_expires_at(loop: OpenLoop, default_ttl: str = '14d') -> Optional[datetime]:
    """Expiry instant of a loop, or None when its creation date is unparseable."""
    created = parse_timestamp(loop.created_at)
    if created is None:
        return None
    return created + timedelta(milliseconds=parse_duration(loop.ttl or default_ttl))


def get_expiring_loops(loops: List[OpenLoop], default_ttl: str = '14d',
                       now: Optional[datetime] = None) -> List[OpenLoop]:
    """Open loops that expire within the next 24 hours but have not expired yet."""
    now = now or utc_now()
    window = timedelta(milliseconds=EXPIRY_WARNING_WINDOW_MS)
    expiring = []

    for loop in loops:
        if not loop.is_open:
            continue
        expires_at = loop_expires_at(loop, default_ttl)
        if expires_at is None:
            continue
        if expires_at > now and expires_at - now <= window:
            expiring.append(loop)

    return expiring


def get_expired_loops(loops: List[OpenLoop], default_ttl: str = '14d',
                      now: Optional[datetime] = None) -> List[OpenLoop]:
    """Open loops whose TTL has run out."""
    now = now or utc_now()
    expired = []

    for loop in loops:
        if not loop.is_open:
            continue
        expires_at = loop_expires_at(loop, default_ttl)
        # The instant expires_at == now is neither expiring nor expired
        if expires_at is not None and now > expires_at:
            expired.append(loop)

    return expired
