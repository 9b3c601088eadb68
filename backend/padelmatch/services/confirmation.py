"""
Confirmation state machine.

Each member of a notified match carries one active MatchNotification.
Records move out of pending exactly once (confirmed, rejected or timeout);
the resolver later marks a vacated record as replaced.

The periodic scan only looks at notified matches:
- every active record confirmed and the match is full: promote to confirmed
- pending records past their deadline (strictly): time them out, then
  cancel the match when too few players are still in, or look for
  replacements for each timed-out seat
- no records, or records that do not match the member list: inconsistent,
  logged and skipped

Running the scan twice with the same `now` changes nothing the second time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import (
    CancellationReason,
    Match,
    MatchNotification,
    MatchStatus,
    NotificationState,
)
from padelmatch.services.cancellation import cancel_match
from padelmatch.services.messages import MessageType, match_confirmed_text
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.results import EngineError, EngineFailure
from padelmatch.utils.locks import match_lock

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record transitions
# ---------------------------------------------------------------------------


def _leave_pending(record: MatchNotification, state: NotificationState, now: datetime) -> bool:
    if record.state != NotificationState.pending:
        return False
    record.state = state
    record.responded_at = now
    return True


def accept_record(record: MatchNotification, now: datetime) -> bool:
    return _leave_pending(record, NotificationState.confirmed, now)


def decline_record(record: MatchNotification, now: datetime) -> bool:
    return _leave_pending(record, NotificationState.rejected, now)


def expire_record(record: MatchNotification, now: datetime) -> bool:
    return _leave_pending(record, NotificationState.timeout, now)


def mark_replaced(record: MatchNotification, now: datetime) -> bool:
    """Retire the record of a player who left the match."""
    if record.state == NotificationState.replaced:
        return False
    record.state = NotificationState.replaced
    record.responded_at = record.responded_at or now
    return True


def sync_confirmed_ids(match: Match) -> None:
    match.confirmed_ids = [
        n.player_id for n in match.active_notifications if n.state == NotificationState.confirmed
    ]


# ---------------------------------------------------------------------------
# Derived match state
# ---------------------------------------------------------------------------


class MatchState(str, Enum):
    awaiting = "awaiting"  # Answers still inside their window
    all_confirmed = "all_confirmed"
    expired_pending = "expired_pending"
    inconsistent = "inconsistent"
    not_scanned = "not_scanned"  # Not a notified match


def records_consistent(match: Match) -> bool:
    active = match.active_notifications
    record_ids = [n.player_id for n in active]
    return (
        bool(active)
        and len(record_ids) == len(set(record_ids))
        and sorted(record_ids) == sorted(match.player_ids or [])
    )


def derive_match_state(
    match: Match, now: datetime, settings: Optional[EngineSettings] = None
) -> MatchState:
    settings = settings or get_settings()
    if match.status != MatchStatus.notified:
        return MatchState.not_scanned
    if not records_consistent(match):
        return MatchState.inconsistent

    active = match.active_notifications
    if len(active) == settings.players_to_close and all(
        n.state == NotificationState.confirmed for n in active
    ):
        return MatchState.all_confirmed
    if any(n.is_expired(now) for n in active):
        return MatchState.expired_pending
    return MatchState.awaiting


def _open_play_complete(match: Match, settings: EngineSettings) -> bool:
    members = set(match.player_ids or [])
    return (
        match.status == MatchStatus.waiting
        and not match.notifications
        and len(members) == settings.players_to_close
        and members == set(match.confirmed_ids or [])
    )


def promote_if_complete(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> bool:
    """Promote a fully confirmed match and text everyone. Returns True on promotion."""
    settings = settings or get_settings()
    if match.status == MatchStatus.notified:
        if derive_match_state(match, now, settings) != MatchState.all_confirmed:
            return False
        sync_confirmed_ids(match)
    elif not _open_play_complete(match, settings):
        return False

    match.status = MatchStatus.confirmed
    repo.add(match)

    players = repo.players_by_ids(match.player_ids)
    court = repo.court_name(match.court_id)
    for player in players:
        others = [p.name for p in players if p.id != player.id]
        notifier.send(
            player,
            match_confirmed_text(match.scheduled_at, court, others),
            MessageType.match_confirmed,
            match_id=match.id,
            now=now,
        )
    logger.info(f"Match {match.id} confirmed by all players")
    return True


# ---------------------------------------------------------------------------
# Direct answers
# ---------------------------------------------------------------------------


class ResponseAction(str, Enum):
    confirmed = "confirmed"
    rejected = "rejected"
    already_confirmed = "already_confirmed"
    error = "error"


@dataclass
class ConfirmationResult:
    action: ResponseAction
    message: str
    match_id: Optional[int] = None
    player_id: Optional[int] = None
    match_complete: bool = False
    failure: Optional[EngineFailure] = None
    # ReplacementOutcome dicts started by a decline
    replacement: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.action != ResponseAction.error

    @classmethod
    def fail(cls, error: EngineError, message: str, **kwargs) -> "ConfirmationResult":
        return cls(
            action=ResponseAction.error,
            message=message,
            failure=EngineFailure(error, message),
            **kwargs,
        )

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "action": self.action.value,
            "message": self.message,
            "match_id": self.match_id,
            "player_id": self.player_id,
            "match_complete": self.match_complete,
            "error": self.failure.to_dict() if self.failure else None,
            "replacement": self.replacement,
        }


def _pick_match_for_answer(repo: MatchRepository, player_id: int) -> Optional[Match]:
    """The match an unqualified YES/NO refers to."""
    active = repo.matches_for_player(
        player_id, [MatchStatus.notified, MatchStatus.waiting, MatchStatus.confirmed]
    )
    for match in active:
        record = match.notification_for(player_id)
        if match.status == MatchStatus.notified and record and record.state == NotificationState.pending:
            return match
    return active[0] if active else None


def respond_to_invitation(
    repo: MatchRepository,
    notifier: Notifier,
    phone: str,
    accepted: bool,
    now: datetime,
    match_id: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> ConfirmationResult:
    """
    Apply a player's YES/NO to their match.

    Notified matches move the player's record; open-play matches (no
    records) track confirmed_ids directly. A decline sends the seat to the
    replacement resolver.
    """
    from padelmatch.services.replacement import resolve_vacancy

    settings = settings or get_settings()

    player = repo.get_player_by_phone(phone)
    if player is None:
        return ConfirmationResult.fail(EngineError.not_found, "We could not find your number in the system.")

    if match_id is not None:
        match = repo.get_match(match_id)
        if match is None:
            return ConfirmationResult.fail(
                EngineError.not_found, f"Match {match_id} does not exist.", player_id=player.id
            )
    else:
        match = _pick_match_for_answer(repo, player.id)
        if match is None:
            return ConfirmationResult.fail(
                EngineError.not_found,
                f"{player.name}, you have no match waiting for an answer.",
                player_id=player.id,
            )

    base = {"match_id": match.id, "player_id": player.id}

    with match_lock(match.id):
        match = repo.reload_match(match)
        if not match.has_player(player.id):
            return ConfirmationResult.fail(EngineError.not_a_member, "You are not in that match.", **base)
        if match.is_terminal:
            return ConfirmationResult.fail(
                EngineError.invalid_state,
                f"This match is already {MatchStatus(match.status).value}.",
                **base,
            )

        if match.notifications:
            result = _answer_record(repo, notifier, match, player.id, accepted, now, settings, base)
        else:
            result = _answer_open_play(repo, notifier, match, player.id, accepted, now, settings, base)

        if result.action == ResponseAction.rejected:
            outcomes = resolve_vacancy(repo, notifier, match, player.id, now, settings=settings)
            result.replacement = [o.to_dict() for o in outcomes]
            if match.is_terminal:
                result.message += " No replacement was found and the match was canceled."
            else:
                result.message += " We are looking for a replacement."

        if result.success:
            repo.commit()
        return result


def _answer_record(repo, notifier, match, player_id, accepted, now, settings, base) -> ConfirmationResult:
    record = match.notification_for(player_id)
    if record is None:
        return ConfirmationResult.fail(EngineError.not_a_member, "You are not in that match.", **base)

    if record.state == NotificationState.confirmed and accepted:
        return ConfirmationResult(
            ResponseAction.already_confirmed, "You already confirmed. See you there!", **base
        )
    if record.state != NotificationState.pending:
        return ConfirmationResult.fail(
            EngineError.invalid_state,
            f"Your answer was already recorded ({NotificationState(record.state).value}).",
            **base,
        )

    if not accepted:
        decline_record(record, now)
        sync_confirmed_ids(match)
        repo.add(match)
        logger.info(f"Player {player_id} declined match {match.id}")
        return ConfirmationResult(ResponseAction.rejected, "Understood, your seat was released.", **base)

    accept_record(record, now)
    sync_confirmed_ids(match)
    repo.add(match)
    complete = promote_if_complete(repo, notifier, match, now, settings)
    missing = len(match.player_ids) - len(match.confirmed_ids)
    message = (
        "Everyone confirmed. The match is on!"
        if complete
        else f"Confirmed! Waiting for {missing} more player(s) to confirm."
    )
    return ConfirmationResult(ResponseAction.confirmed, message, match_complete=complete, **base)


def _answer_open_play(repo, notifier, match, player_id, accepted, now, settings, base) -> ConfirmationResult:
    confirmed = list(match.confirmed_ids or [])

    if accepted:
        if player_id in confirmed:
            return ConfirmationResult(
                ResponseAction.already_confirmed, "You already confirmed. See you there!", **base
            )
        match.confirmed_ids = confirmed + [player_id]
        repo.add(match)
        complete = promote_if_complete(repo, notifier, match, now, settings)
        missing = len(match.player_ids) - len(match.confirmed_ids)
        message = (
            "Everyone confirmed. The match is on!"
            if complete
            else f"Confirmed! Waiting for {missing} more player(s) to confirm."
        )
        return ConfirmationResult(ResponseAction.confirmed, message, match_complete=complete, **base)

    match.confirmed_ids = [pid for pid in confirmed if pid != player_id]
    if match.status == MatchStatus.confirmed:
        match.status = MatchStatus.waiting
    repo.add(match)
    logger.info(f"Player {player_id} dropped out of open match {match.id}")
    return ConfirmationResult(ResponseAction.rejected, "Understood, your seat was released.", **base)


# ---------------------------------------------------------------------------
# Periodic scan
# ---------------------------------------------------------------------------


@dataclass
class MatchScanResult:
    match_id: int
    state: MatchState
    promoted: bool = False
    timed_out: List[int] = field(default_factory=list)
    canceled: bool = False
    replacement: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "state": self.state.value,
            "promoted": self.promoted,
            "timed_out": self.timed_out,
            "canceled": self.canceled,
            "replacement": self.replacement,
        }


@dataclass
class ScanResult:
    scanned_at: datetime
    matches: List[MatchScanResult] = field(default_factory=list)
    proposals_expired: int = 0
    proposal_outcomes: List[dict] = field(default_factory=list)
    errors: List[EngineFailure] = field(default_factory=list)

    @property
    def transitions(self) -> int:
        """Number of state changes this scan made."""
        return (
            sum(int(m.promoted) + len(m.timed_out) + int(m.canceled) for m in self.matches)
            + self.proposals_expired
        )

    def to_dict(self) -> dict:
        return {
            "scanned_at": self.scanned_at.isoformat(),
            "matches": [m.to_dict() for m in self.matches],
            "proposals_expired": self.proposals_expired,
            "proposal_outcomes": self.proposal_outcomes,
            "transitions": self.transitions,
            "errors": [e.to_dict() for e in self.errors],
        }


def _handle_timeouts(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    entry: MatchScanResult,
    now: datetime,
    settings: EngineSettings,
) -> None:
    from padelmatch.services.replacement import resolve_vacancy

    for record in match.active_notifications:
        if record.is_expired(now) and expire_record(record, now):
            entry.timed_out.append(record.player_id)
    sync_confirmed_ids(match)
    repo.add(match)
    logger.info(f"Match {match.id}: confirmation timed out for players {entry.timed_out}")

    still_in = sum(
        1
        for n in match.active_notifications
        if n.state in (NotificationState.confirmed, NotificationState.pending)
    )
    if still_in < settings.recovery_min_players:
        cancel_match(
            repo,
            notifier,
            match,
            CancellationReason.no_confirmations,
            now,
            note=f"Only {still_in} player(s) still in after confirmation deadline.",
            settings=settings,
        )
        entry.canceled = True
        return

    for player_id in entry.timed_out:
        if match.is_terminal:
            break
        outcomes = resolve_vacancy(repo, notifier, match, player_id, now, settings=settings)
        entry.replacement.extend(o.to_dict() for o in outcomes)
    entry.canceled = match.is_terminal


def scan_confirmations(
    repo: MatchRepository,
    notifier: Notifier,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> ScanResult:
    from padelmatch.services.replacement import expire_stale_proposals

    settings = settings or get_settings()
    result = ScanResult(scanned_at=now)

    for match in repo.notified_matches():
        with match_lock(match.id):
            match = repo.reload_match(match)
            if match.status != MatchStatus.notified:
                continue
            state = derive_match_state(match, now, settings)
            entry = MatchScanResult(match_id=match.id, state=state)

            if state == MatchState.inconsistent:
                message = (
                    f"Match {match.id} is notified but its confirmation records do not match "
                    f"its players ({len(match.active_notifications)} records, {len(match.player_ids)} players)."
                )
                logger.error(message)
                result.errors.append(EngineFailure(EngineError.inconsistent, message))
            elif state == MatchState.all_confirmed:
                entry.promoted = promote_if_complete(repo, notifier, match, now, settings)
            elif state == MatchState.expired_pending:
                _handle_timeouts(repo, notifier, match, entry, now, settings)

            result.matches.append(entry)
            repo.commit()

    expired, outcomes = expire_stale_proposals(repo, notifier, now, settings)
    result.proposals_expired = expired
    result.proposal_outcomes = [o.to_dict() for o in outcomes]

    repo.commit()
    logger.info(
        f"Confirmation scan at {now.isoformat()}: {len(result.matches)} matches, "
        f"{result.transitions} transitions, {len(result.errors)} errors"
    )
    return result


# ---------------------------------------------------------------------------
# Inbound replies
# ---------------------------------------------------------------------------

ACCEPT_WORDS = {"si", "sí", "yes", "y", "accept", "ok", "1"}
DECLINE_WORDS = {"no", "n", "decline", "2"}

HELP_TEXT = "Reply YES to confirm or NO to drop out."


def parse_reply(body: str) -> Optional[bool]:
    """True for an accept keyword, False for a decline keyword, None otherwise."""
    words = (body or "").strip().lower().split()
    if not words:
        return None
    word = words[0].strip(".,!?")
    if word in ACCEPT_WORDS:
        return True
    if word in DECLINE_WORDS:
        return False
    return None


@dataclass
class InboundResult:
    kind: str  # replacement | invitation | unrecognized
    reply: str
    accepted: Optional[bool] = None
    result: Optional[dict] = None
    failure: Optional[EngineFailure] = None

    @property
    def success(self) -> bool:
        return self.failure is None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "kind": self.kind,
            "accepted": self.accepted,
            "reply": self.reply,
            "result": self.result,
            "error": self.failure.to_dict() if self.failure else None,
        }


def handle_inbound_reply(
    repo: MatchRepository,
    notifier: Notifier,
    phone: str,
    body: str,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> InboundResult:
    """
    Route a free-text reply to the right engine operation.

    An open replacement offer to the player takes precedence over their
    own match. The reply text is sent back to the player.
    """
    from padelmatch.services.replacement import respond_to_replacement

    settings = settings or get_settings()
    accepted = parse_reply(body)
    player = repo.get_player_by_phone(phone)
    if player is None:
        message = "We could not find your number in the system."
        return InboundResult("unrecognized", message, accepted, failure=EngineFailure(EngineError.not_found, message))

    if accepted is None:
        inbound = InboundResult("unrecognized", f"Sorry, I did not get that. {HELP_TEXT}")
    else:
        request = repo.open_proposal_for_candidate(player.id)
        if request is not None:
            response = respond_to_replacement(repo, notifier, request, accepted, now, settings)
            inbound = InboundResult("replacement", response.message, accepted, response.to_dict(), response.failure)
        else:
            answer = respond_to_invitation(repo, notifier, phone, accepted, now, settings=settings)
            inbound = InboundResult("invitation", answer.message, accepted, answer.to_dict(), answer.failure)

    notifier.send(player, inbound.reply, MessageType.reply, now=now)
    repo.commit()
    return inbound
