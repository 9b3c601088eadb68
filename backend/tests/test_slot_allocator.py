"""Tests for the (court, time) slot pool used by the daily cycle."""

from datetime import date, datetime

from padelmatch.models import Court
from padelmatch.services.slot_allocator import (
    SlotCursor,
    SlotOffer,
    build_slot_pool,
    courts_open_on,
)

TUESDAY = date(2025, 2, 11)


def _court(court_id, days=None, slots=None, is_active=True):
    return Court(
        id=court_id,
        name=f"Court {court_id}",
        days_available=list(range(7)) if days is None else days,
        time_slots=slots or ["18:00", "19:30"],
        is_active=is_active,
    )


class TestCourtsOpenOn:
    def test_filters_by_weekday(self):
        monday_only = _court(1, days=[0])
        tuesday = _court(2, days=[1])
        assert courts_open_on([monday_only, tuesday], TUESDAY) == [tuesday]

    def test_inactive_court_is_closed(self):
        assert courts_open_on([_court(1, is_active=False)], TUESDAY) == []


class TestBuildSlotPool:
    def test_slots_outer_courts_inner(self):
        courts = [_court(1), _court(2)]
        pool = build_slot_pool(courts, TUESDAY, ["18:00", "19:30"])
        assert pool == [
            SlotOffer(1, datetime(2025, 2, 11, 18, 0)),
            SlotOffer(2, datetime(2025, 2, 11, 18, 0)),
            SlotOffer(1, datetime(2025, 2, 11, 19, 30)),
            SlotOffer(2, datetime(2025, 2, 11, 19, 30)),
        ]

    def test_court_without_slot_is_skipped(self):
        courts = [_court(1, slots=["19:30"]), _court(2)]
        pool = build_slot_pool(courts, TUESDAY, ["18:00", "19:30"])
        assert [(o.court_id, o.scheduled_at.hour) for o in pool] == [(2, 18), (1, 19), (2, 19)]

    def test_club_slot_order_wins(self):
        pool = build_slot_pool([_court(1)], TUESDAY, ["19:30", "18:00"])
        assert [o.scheduled_at.hour for o in pool] == [19, 18]

    def test_to_dict(self):
        offer = SlotOffer(3, datetime(2025, 2, 11, 18, 0))
        assert offer.to_dict() == {"court_id": 3, "scheduled_at": "2025-02-11T18:00:00"}


class TestSlotCursor:
    def test_hands_out_in_order_then_none(self):
        pool = build_slot_pool([_court(1)], TUESDAY, ["18:00", "19:30"])
        cursor = SlotCursor(pool)
        assert cursor.remaining == 2
        assert cursor.next() == pool[0]
        assert cursor.next() == pool[1]
        assert cursor.exhausted
        assert cursor.next() is None

    def test_empty_pool(self):
        cursor = SlotCursor([])
        assert cursor.exhausted
        assert cursor.next() is None
