"""Date/time helpers shared by the cycles and flows.

Timestamps are stored and compared naive; clock readings are UTC.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through unchanged."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_slot(slot: str) -> time:
    """Parse an "HH:MM" slot label into a time."""
    hours, minutes = slot.strip().split(":")[:2]
    return time(int(hours), int(minutes))


def slot_label(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def slot_datetime(target_date: date, slot: str) -> datetime:
    """Combine a target date with an "HH:MM" slot (naive, club-local)."""
    return datetime.combine(target_date, parse_slot(slot))


def next_day(now: datetime) -> date:
    return (now + timedelta(days=1)).date()


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def parse_requested_time(value: Optional[str]) -> Optional[datetime]:
    """Accept "YYYY-MM-DDTHH:MM[:SS]" or None."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def format_match_time(moment: datetime) -> str:
    """Human form used in texts, e.g. "Thu 13 Feb 10:00"."""
    return moment.strftime("%a %d %b %H:%M")
