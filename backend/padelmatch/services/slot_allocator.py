"""
Slot allocation for the daily cycle.

The pool for a date is built slots-outer, courts-inner so consecutive
groups spread across courts at the same time before moving to the next
start time. Offers are handed out strictly in order; running out is a
shortfall the caller reports, not an error.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from padelmatch.models.court import Court
from padelmatch.utils.datetime_utils import slot_datetime


@dataclass(frozen=True)
class SlotOffer:
    court_id: int
    scheduled_at: datetime

    def to_dict(self) -> dict:
        return {"court_id": self.court_id, "scheduled_at": self.scheduled_at.isoformat()}


def courts_open_on(courts: Iterable[Court], target_date: date) -> List[Court]:
    weekday = target_date.weekday()
    return [c for c in courts if c.is_open_on(weekday)]


def build_slot_pool(courts: Sequence[Court], target_date: date, club_slots: Sequence[str]) -> List[SlotOffer]:
    """
    Ordered (court, time) offers for `target_date`.

    `courts` must already be filtered to the ones open that day.
    A pair is included only when the court offers that slot.
    """
    pool: List[SlotOffer] = []
    for slot in club_slots:
        for court in courts:
            if court.offers_slot(slot):
                pool.append(SlotOffer(court_id=court.id, scheduled_at=slot_datetime(target_date, slot)))
    return pool


class SlotCursor:
    """Hands out offers from a pool, one per call, in order."""

    def __init__(self, pool: Sequence[SlotOffer]):
        self._pool = list(pool)
        self._index = 0

    def next(self) -> Optional[SlotOffer]:
        if self._index >= len(self._pool):
            return None
        offer = self._pool[self._index]
        self._index += 1
        return offer

    @property
    def remaining(self) -> int:
        return len(self._pool) - self._index

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0
