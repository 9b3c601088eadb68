"""Builders shared by the engine and route tests."""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlmodel import Session

from padelmatch.config import DEFAULT_CLUB_SLOTS
from padelmatch.models import (
    Court,
    Match,
    MatchNotification,
    MatchStatus,
    NotificationState,
    Player,
)
from padelmatch.services.level_policy import average_level, category_for

# Monday morning; the daily cycle targets Tuesday 2025-02-11
NOW = datetime(2025, 2, 10, 9, 0)
TOMORROW_18 = datetime(2025, 2, 11, 18, 0)


def phone_for(n: int) -> str:
    return f"+54911000000{n:02d}"


def make_player(session: Session, n: int, level: float, name: Optional[str] = None, available: bool = True) -> Player:
    player = Player(
        name=name or f"Player {n}",
        level=level,
        category=category_for([level]),
        available=available,
        phone=phone_for(n),
    )
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


def make_players(session: Session, levels: Sequence[float], start: int = 1) -> List[Player]:
    return [make_player(session, start + i, level) for i, level in enumerate(levels)]


def make_court(
    session: Session,
    name: str = "Court 1",
    days: Optional[List[int]] = None,
    slots: Optional[List[str]] = None,
    is_active: bool = True,
) -> Court:
    court = Court(
        name=name,
        days_available=list(range(7)) if days is None else days,
        time_slots=list(DEFAULT_CLUB_SLOTS) if slots is None else slots,
        is_active=is_active,
    )
    session.add(court)
    session.commit()
    session.refresh(court)
    return court


def make_notified_match(
    session: Session,
    players: Sequence[Player],
    court: Court,
    scheduled_at: datetime = TOMORROW_18,
    now: datetime = NOW,
    minutes: int = 60,
    confirmed: Sequence[int] = (),
) -> Match:
    """Notified match with one record per player; ids in `confirmed` start confirmed."""
    levels = [p.level for p in players]
    match = Match(
        player_ids=[p.id for p in players],
        confirmed_ids=list(confirmed),
        scheduled_at=scheduled_at,
        court_id=court.id,
        status=MatchStatus.notified,
        category=category_for(levels),
        average_level=average_level(levels),
        created_at=now,
    )
    for p in players:
        record = MatchNotification.pending_for(p.id, minutes, now)
        if p.id in confirmed:
            record.state = NotificationState.confirmed
            record.responded_at = now
        match.notifications.append(record)
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def make_open_match(
    session: Session,
    players: Sequence[Player],
    court: Court,
    scheduled_at: datetime = TOMORROW_18,
    now: datetime = NOW,
    status: MatchStatus = MatchStatus.waiting,
    confirmed: Sequence[int] = (),
) -> Match:
    """Open-play match (no confirmation records)."""
    levels = [p.level for p in players]
    match = Match(
        player_ids=[p.id for p in players],
        confirmed_ids=list(confirmed),
        scheduled_at=scheduled_at,
        court_id=court.id,
        status=status,
        category=category_for(levels),
        average_level=average_level(levels),
        created_at=now,
    )
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def minutes_after(moment: datetime, minutes: float) -> datetime:
    return moment + timedelta(minutes=minutes)
