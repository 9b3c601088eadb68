"""
Open play: a player asks to play and is seated in a compatible open match,
or a new one is opened for them.

Open matches stay in waiting while they fill. Attendance is confirmed with
the same YES/NO answers as batch matches (see confirmation.respond_to_invitation);
they track confirmed_ids instead of per-player records.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Set, Tuple

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import CancellationReason, Court, Match, MatchStatus, Player
from padelmatch.services.cancellation import recompute_match_levels
from padelmatch.services.level_policy import average_level, category_for, is_compatible
from padelmatch.services.messages import MessageType, match_full_text
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.results import EngineError, EngineFailure
from padelmatch.utils.datetime_utils import (
    format_match_time,
    parse_requested_time,
    slot_datetime,
    slot_label,
)
from padelmatch.utils.locks import match_lock

logger = logging.getLogger(__name__)

# How far ahead to look for a free slot when no time is requested
SEARCH_DAYS = 7


class JoinAction(str, Enum):
    created = "created"
    joined = "joined"
    full = "full"
    error = "error"


@dataclass
class JoinResult:
    action: JoinAction
    message: str
    match_id: Optional[int] = None
    player_id: Optional[int] = None
    players_missing: int = 0
    failure: Optional[EngineFailure] = None

    @property
    def success(self) -> bool:
        return self.action != JoinAction.error

    @classmethod
    def fail(cls, error: EngineError, message: str, reason: Optional[CancellationReason] = None, **kwargs) -> "JoinResult":
        return cls(action=JoinAction.error, message=message, failure=EngineFailure(error, message, reason), **kwargs)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "action": self.action.value,
            "message": self.message,
            "match_id": self.match_id,
            "player_id": self.player_id,
            "players_missing": self.players_missing,
            "error": self.failure.to_dict() if self.failure else None,
        }


def _parse_request(requested_time: Optional[str]) -> Tuple[Optional[date], Optional[datetime]]:
    """
    Split a request into (day, exact start).

    "2025-02-12" asks for any slot that day; "2025-02-12T18:00" for that
    start. Raises ValueError on anything else.
    """
    if not requested_time:
        return None, None
    if "T" in requested_time:
        moment = parse_requested_time(requested_time)
        return moment.date(), moment
    return date.fromisoformat(requested_time), None


def _can_join(match: Match, player: Player, now: datetime, settings: EngineSettings) -> bool:
    return (
        match.status == MatchStatus.waiting
        and not match.notifications
        and not match.has_player(player.id)
        and len(match.player_ids) < settings.players_to_close
        and match.scheduled_at > now
        and is_compatible(player.level, match.average_level, settings.default_tolerance)
    )


def find_compatible_match(
    repo: MatchRepository,
    player: Player,
    now: datetime,
    requested_time: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    exclude: Optional[Set[int]] = None,
) -> Optional[Match]:
    """Open match closest to full whose average suits the player."""
    settings = settings or get_settings()
    candidates = [
        m
        for m in repo.open_play_matches()
        if m.id not in (exclude or ())
        and _can_join(m, player, now, settings)
        and (not requested_time or m.scheduled_at.isoformat().startswith(requested_time))
    ]
    if not candidates:
        return None
    return sorted(candidates, key=lambda m: (-len(m.player_ids), m.id))[0]


def _take_open_seat(
    repo: MatchRepository,
    player: Player,
    now: datetime,
    requested_time: Optional[str],
    settings: EngineSettings,
) -> Optional[Match]:
    """
    Add the player to the best open match and commit.

    The pick is made from this session's view; the seat is re-checked on a
    fresh read under the match lock, and the next candidate is tried when
    the match filled up or drifted out of range meanwhile.
    """
    tried: Set[int] = set()
    while True:
        match = find_compatible_match(repo, player, now, requested_time, settings, exclude=tried)
        if match is None:
            return None
        with match_lock(match.id):
            match = repo.reload_match(match)
            if _can_join(match, player, now, settings):
                match.player_ids = list(match.player_ids) + [player.id]
                recompute_match_levels(repo, match)
                repo.add(match)
                repo.commit()
                return match
        logger.info(f"Open match {match.id} changed before player {player.id} could join, trying the next one")
        tried.add(match.id)


def find_open_slot(
    repo: MatchRepository,
    now: datetime,
    requested_time: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> Optional[Tuple[Court, datetime]]:
    """First free (court, start) for the request, in court id order."""
    settings = settings or get_settings()
    day, exact = _parse_request(requested_time)
    taken = repo.taken_slots()

    def first_court(moment: datetime) -> Optional[Court]:
        if moment <= now:
            return None
        for court in repo.courts_open_on(moment.date()):
            if court.offers_slot(slot_label(moment)) and (court.id, moment) not in taken:
                return court
        return None

    if exact is not None:
        court = first_court(exact)
        return (court, exact) if court else None

    days = [day] if day else [now.date() + timedelta(days=i) for i in range(SEARCH_DAYS)]
    for target in days:
        for slot in settings.club_time_slots:
            moment = slot_datetime(target, slot)
            court = first_court(moment)
            if court:
                return court, moment
    return None


def join_open_match(
    repo: MatchRepository,
    notifier: Notifier,
    phone: str,
    now: datetime,
    requested_time: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> JoinResult:
    """Seat the player in a compatible open match, or open a new one."""
    settings = settings or get_settings()

    try:
        _parse_request(requested_time)
    except ValueError:
        return JoinResult.fail(
            EngineError.unrecoverable,
            f"'{requested_time}' is not a valid day (YYYY-MM-DD) or start time (YYYY-MM-DDTHH:MM).",
        )

    player = repo.get_player_by_phone(phone)
    if player is None:
        return JoinResult.fail(EngineError.not_found, "We could not find your number. Please contact the club.")
    if not player.available:
        return JoinResult.fail(
            EngineError.unrecoverable,
            f"{player.name}, your account is marked as unavailable. Message us to turn it back on.",
            player_id=player.id,
        )
    if player.id in repo.busy_player_ids():
        return JoinResult.fail(
            EngineError.invalid_state,
            f"{player.name}, you already have an active match or a pending offer.",
            player_id=player.id,
        )

    match = _take_open_seat(repo, player, now, requested_time, settings)
    if match is not None:
        missing = settings.players_to_close - len(match.player_ids)
        when = format_match_time(match.scheduled_at)
        court = repo.court_name(match.court_id)
        logger.info(f"Player {player.id} joined open match {match.id} ({missing} seats left)")
        if missing > 0:
            return JoinResult(
                JoinAction.joined,
                f"You are in the match on {when} at {court}. {missing} more player(s) needed.",
                match_id=match.id,
                player_id=player.id,
                players_missing=missing,
            )
        others = [p for p in repo.players_by_ids(match.player_ids) if p.id != player.id]
        notifier.send_to_players(
            others,
            match_full_text(match.scheduled_at, court),
            MessageType.match_full,
            match_id=match.id,
            now=now,
        )
        repo.commit()
        return JoinResult(
            JoinAction.full,
            f"The match is full! {when} at {court}. Reply YES to confirm your attendance.",
            match_id=match.id,
            player_id=player.id,
        )

    slot = find_open_slot(repo, now, requested_time, settings)
    if slot is None:
        return JoinResult.fail(
            EngineError.unrecoverable,
            "No courts are available for that time. Try another one.",
            reason=CancellationReason.court_unavailable,
            player_id=player.id,
        )

    court, scheduled_at = slot
    match = Match(
        player_ids=[player.id],
        confirmed_ids=[],
        scheduled_at=scheduled_at,
        court_id=court.id,
        status=MatchStatus.waiting,
        category=category_for([player.level]),
        average_level=average_level([player.level]),
        created_at=now,
    )
    repo.add(match)
    repo.commit()
    repo.refresh(match)
    logger.info(f"Open match {match.id} created for player {player.id} at {scheduled_at.isoformat()}")
    return JoinResult(
        JoinAction.created,
        f"Done, {player.name}! We opened a match on {format_match_time(scheduled_at)} at {court.name}. "
        f"Looking for players around level {player.level}.",
        match_id=match.id,
        player_id=player.id,
        players_missing=settings.players_to_close - 1,
    )
