"""
Cancellation policy.

Two entry points:
- leave_match: a player drops out of their match. The departure is flagged
  last-minute when it lands within the configured window before the match
  (inclusive, future only). If enough players remain the seat goes to the
  replacement resolver, otherwise the whole match is canceled.
- cancel_match: the system closes a match with an explicit reason code.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import (
    CancellationReason,
    Match,
    MatchStatus,
    NotificationState,
    ReplacementStatus,
)
from padelmatch.services.level_policy import average_level, category_for
from padelmatch.services.messages import MessageType, cancellation_text
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.results import EngineError, EngineFailure
from padelmatch.utils.datetime_utils import hours_between
from padelmatch.utils.locks import match_lock

logger = logging.getLogger(__name__)


@dataclass
class DepartureAssessment:
    last_minute: bool
    remaining_players: int
    recoverable: bool


@dataclass
class CancellationResult:
    success: bool
    message: str
    match_id: Optional[int] = None
    player_id: Optional[int] = None
    reason: Optional[CancellationReason] = None
    last_minute: bool = False
    needs_replacement: bool = False
    match_canceled: bool = False
    failure: Optional[EngineFailure] = None
    # ReplacementOutcome dicts when the seat went to the resolver
    replacement: List[dict] = field(default_factory=list)

    @classmethod
    def fail(cls, error: EngineError, message: str, **kwargs) -> "CancellationResult":
        return cls(success=False, message=message, failure=EngineFailure(error, message), **kwargs)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "match_id": self.match_id,
            "player_id": self.player_id,
            "reason": self.reason.value if self.reason else None,
            "last_minute": self.last_minute,
            "needs_replacement": self.needs_replacement,
            "match_canceled": self.match_canceled,
            "error": self.failure.to_dict() if self.failure else None,
            "replacement": self.replacement,
        }


def is_last_minute(scheduled_at: datetime, now: datetime, window_hours: float) -> bool:
    """True when 0 <= hours until the match <= window. Past matches never qualify."""
    hours_left = hours_between(now, scheduled_at)
    return 0 <= hours_left <= window_hours


def evaluate_departure(
    match: Match, now: datetime, settings: Optional[EngineSettings] = None
) -> DepartureAssessment:
    settings = settings or get_settings()
    remaining = max(len(match.player_ids or []) - 1, 0)
    return DepartureAssessment(
        last_minute=is_last_minute(match.scheduled_at, now, settings.last_minute_hours),
        remaining_players=remaining,
        recoverable=remaining >= settings.recovery_min_players,
    )


def cancel_match(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    reason: CancellationReason,
    now: datetime,
    note: Optional[str] = None,
    exclude_player_id: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> CancellationResult:
    """
    Move a match to canceled with a reason code.

    Open replacement offers on the match are closed as exhausted. Every
    member except `exclude_player_id` is texted when cancellation notices
    are enabled. Does not commit.
    """
    settings = settings or get_settings()
    reason = CancellationReason(reason)

    if match.is_terminal:
        return CancellationResult.fail(
            EngineError.invalid_state,
            f"Match {match.id} is already {MatchStatus(match.status).value}.",
            match_id=match.id,
        )

    court = repo.court_name(match.court_id)
    text = cancellation_text(reason, match.scheduled_at, court)

    match.status = MatchStatus.canceled
    match.cancellation_reason = reason.value
    match.cancellation_note = note or text
    repo.add(match)

    for request in repo.open_proposals_for_match(match.id):
        request.status = ReplacementStatus.exhausted
        request.resolved_at = now
        repo.add(request)

    if settings.notify_cancellation:
        members = [
            p for p in repo.players_by_ids(match.player_ids) if p.id != exclude_player_id
        ]
        notifier.send_to_players(members, text, MessageType.match_canceled, match_id=match.id, now=now)

    logger.info(f"Match {match.id} canceled: {reason.value}")
    return CancellationResult(
        success=True,
        message=text,
        match_id=match.id,
        reason=reason,
        last_minute=is_last_minute(match.scheduled_at, now, settings.last_minute_hours),
        match_canceled=True,
    )


def _vacate_seat(match: Match, player_id: int, now: datetime) -> None:
    """Take the player out of the match; their record becomes history."""
    match.player_ids = [pid for pid in match.player_ids if pid != player_id]
    match.confirmed_ids = [pid for pid in (match.confirmed_ids or []) if pid != player_id]
    record = match.notification_for(player_id)
    if record is not None:
        record.state = NotificationState.replaced
        record.responded_at = record.responded_at or now
    if match.status == MatchStatus.confirmed:
        # Promoted again once the seat is filled
        match.status = MatchStatus.notified if match.notifications else MatchStatus.waiting


def recompute_match_levels(repo: MatchRepository, match: Match) -> None:
    levels = [p.level for p in repo.players_by_ids(match.player_ids)]
    if levels:
        match.average_level = average_level(levels)
        match.category = category_for(levels)


def _find_active_match(repo: MatchRepository, player_id: int) -> Optional[Match]:
    active = repo.matches_for_player(
        player_id, [MatchStatus.waiting, MatchStatus.notified, MatchStatus.confirmed]
    )
    return active[0] if active else None


def leave_match(
    repo: MatchRepository,
    notifier: Notifier,
    phone: str,
    now: datetime,
    match_id: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> CancellationResult:
    """
    Player-initiated departure.

    Without `match_id` the player's soonest active match is used. An open
    match that is not yet full simply loses the player; a full match sends
    the seat to the replacement resolver; a match that cannot be repaired
    is canceled with player_left.
    """
    from padelmatch.services.replacement import resolve_vacancy

    settings = settings or get_settings()

    player = repo.get_player_by_phone(phone)
    if player is None:
        return CancellationResult.fail(EngineError.not_found, "We could not find your number. Please contact the club.")

    if match_id is not None:
        match = repo.get_match(match_id)
        if match is None:
            return CancellationResult.fail(EngineError.not_found, f"Match {match_id} does not exist.", player_id=player.id)
    else:
        match = _find_active_match(repo, player.id)
        if match is None:
            return CancellationResult.fail(
                EngineError.not_found,
                f"{player.name}, you have no active matches to leave.",
                player_id=player.id,
            )

    with match_lock(match.id):
        match = repo.reload_match(match)
        if not match.has_player(player.id):
            return CancellationResult.fail(
                EngineError.not_a_member,
                f"{player.name}, you are not in match {match.id}.",
                match_id=match.id,
                player_id=player.id,
            )
        if match.is_terminal:
            return CancellationResult.fail(
                EngineError.invalid_state,
                f"The match is already {MatchStatus(match.status).value}. Nothing to cancel.",
                match_id=match.id,
                player_id=player.id,
            )

        assessment = evaluate_departure(match, now, settings)
        result = CancellationResult(
            success=True,
            message="",
            match_id=match.id,
            player_id=player.id,
            reason=CancellationReason.player_left,
            last_minute=assessment.last_minute,
        )
        if assessment.last_minute:
            logger.warning(f"Last-minute departure: player {player.id} left match {match.id}")

        if not assessment.recoverable:
            canceled = cancel_match(
                repo,
                notifier,
                match,
                CancellationReason.player_left,
                now,
                note=f"{player.name} left and too few players remained.",
                exclude_player_id=player.id,
                settings=settings,
            )
            result.match_canceled = canceled.match_canceled
            result.message = "Cancellation confirmed. Not enough players remained, so the match was canceled."
            repo.commit()
            return result

        open_and_unfilled = (
            match.status == MatchStatus.waiting and len(match.player_ids) < settings.players_to_close
        )
        _vacate_seat(match, player.id, now)
        recompute_match_levels(repo, match)
        repo.add(match)

        if open_and_unfilled:
            result.message = f"Cancellation confirmed, {player.name}. Your seat was released."
        else:
            result.needs_replacement = True
            outcomes = resolve_vacancy(repo, notifier, match, player.id, now, settings=settings)
            result.replacement = [o.to_dict() for o in outcomes]
            result.match_canceled = match.is_terminal
            if result.match_canceled:
                result.message = "Cancellation confirmed. No replacement was found, so the match was canceled."
            else:
                result.message = f"Cancellation confirmed, {player.name}. We are looking for a replacement."

        if assessment.last_minute:
            result.message = (
                f"You canceled less than {settings.last_minute_hours:g}h before the match. " + result.message
            )

        repo.commit()
        logger.info(f"Player {player.id} left match {match.id} (replacement={result.needs_replacement})")
        return result
