"""Tests for durations, staleness and loop expiry."""

from datetime import date, datetime, timedelta, timezone

from dotctx.core.freshness import (
    get_expired_loops, get_expiring_loops, is_stale, loop_expires_at, parse_duration, parse_timestamp,
)
from dotctx.core.models import OpenLoop

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_loop(age: timedelta, ttl: str = "14d", status: str = "open") -> OpenLoop:
    return OpenLoop(id=1, description="Finish migration", created_at=(NOW - age).isoformat(), ttl=ttl, status=status)


class TestParseDuration:
    """Test cases for duration parsing."""

    def test_units(self):
        """Hours, days, weeks and months convert to milliseconds."""
        assert parse_duration("48h") == 172800000
        assert parse_duration("14d") == 1209600000
        assert parse_duration("2w") == 1209600000
        assert parse_duration("1m") == 30 * 86400000

    def test_invalid_falls_back_to_48h(self):
        """Anything outside the grammar is 48 hours."""
        assert parse_duration("invalid") == 172800000
        assert parse_duration("") == 172800000
        assert parse_duration(None) == 172800000
        assert parse_duration("5y") == 172800000


class TestParseTimestamp:
    """Test cases for timestamp parsing."""

    def test_z_suffix_and_naive_values_are_utc(self):
        """Both forms come back timezone-aware in UTC."""
        assert parse_timestamp("2026-03-01T12:00:00Z") == NOW
        assert parse_timestamp("2026-03-01T12:00:00") == NOW

    def test_dates_are_midnight_utc(self):
        """YAML dates parse to midnight UTC."""
        assert parse_timestamp(date(2026, 3, 1)) == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_unparseable_is_none(self):
        """Garbage and empty values are None."""
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None


class TestIsStale:
    """Test cases for staleness."""

    def test_recent_is_fresh(self):
        """An hour-old timestamp is not stale at 48h."""
        assert is_stale((NOW - timedelta(hours=1)).isoformat(), 48, now=NOW) is False

    def test_old_is_stale(self):
        """Three days exceeds 48 hours."""
        assert is_stale((NOW - timedelta(days=3)).isoformat(), 48, now=NOW) is True

    def test_missing_or_bad_is_stale(self):
        """Missing data is treated as stale."""
        assert is_stale("", now=NOW) is True
        assert is_stale("yesterday-ish", now=NOW) is True


class TestLoopExpiry:
    """Test cases for expiring and expired loops."""

    def test_old_open_loop_is_expired(self):
        """Thirty days past a 14d TTL is expired."""
        loop = make_loop(timedelta(days=30))
        assert get_expired_loops([loop], now=NOW) == [loop]
        assert get_expiring_loops([loop], now=NOW) == []

    def test_resolved_loop_is_excluded(self):
        """Resolved loops are never reported."""
        loop = make_loop(timedelta(days=30), status="resolved")
        assert get_expired_loops([loop], now=NOW) == []
        assert get_expiring_loops([loop], now=NOW) == []

    def test_loop_within_last_day_is_expiring(self):
        """Twelve hours left on a 14d TTL is expiring, not expired."""
        loop = make_loop(timedelta(days=13.5))
        assert get_expiring_loops([loop], now=NOW) == [loop]
        assert get_expired_loops([loop], now=NOW) == []

    def test_young_loop_is_neither(self):
        """A day-old loop is in neither set."""
        loop = make_loop(timedelta(days=1))
        assert get_expiring_loops([loop], now=NOW) == []
        assert get_expired_loops([loop], now=NOW) == []

    def test_exact_expiry_instant_is_in_neither_set(self):
        """At expires_at == now a loop is neither expiring nor expired."""
        loop = make_loop(timedelta(days=14))
        assert loop_expires_at(loop) == NOW
        assert get_expiring_loops([loop], now=NOW) == []
        assert get_expired_loops([loop], now=NOW) == []

    def test_unparseable_created_at_is_skipped(self):
        """Loops without a usable creation date are excluded."""
        loop = OpenLoop(id=2, description="x", created_at="someday")
        assert get_expired_loops([loop], now=NOW) == []
        assert get_expiring_loops([loop], now=NOW) == []

    def test_default_ttl_applies_when_loop_has_none(self):
        """An empty ttl falls back to the configured default."""
        loop = make_loop(timedelta(days=3), ttl="")
        assert get_expired_loops([loop], default_ttl="2d", now=NOW) == [loop]
