"""
Replacement resolver.

Filling a vacated seat is a two-phase protocol:

    propose  find_replacement picks the closest compatible free player,
             stores a ReplacementRequest(proposed) and texts them.
    confirm  respond_to_replacement applies the candidate's answer:
             accept substitutes them into the match, decline moves on to
             the next attempt.

Attempts run in an explicit loop (resolve_vacancy) until a candidate is
proposed, the match is canceled, or an error stops it. Only attempt 2
widens the search to the extended tolerance. Past the attempt cap the match
is canceled with no_replacement.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import (
    CancellationReason,
    Match,
    MatchNotification,
    MatchStatus,
    NotificationState,
    Player,
    ReplacementRequest,
    ReplacementStatus,
)
from padelmatch.services.cancellation import cancel_match, recompute_match_levels
from padelmatch.services.confirmation import mark_replaced, promote_if_complete
from padelmatch.services.level_policy import is_compatible, level_distance
from padelmatch.services.messages import (
    MessageType,
    replacement_joined_text,
    replacement_offer_text,
)
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.results import EngineError, EngineFailure
from padelmatch.utils.locks import match_lock

logger = logging.getLogger(__name__)

ESCALATION_ATTEMPT = 2


class ReplacementAction(str, Enum):
    found = "found"
    not_found = "not_found"
    match_canceled = "match_canceled"
    error = "error"


@dataclass
class ReplacementOutcome:
    action: ReplacementAction
    match_id: int
    vacated_player_id: int
    attempt: int
    candidate_id: Optional[int] = None
    tolerance_used: Optional[float] = None
    request_id: Optional[int] = None
    failure: Optional[EngineFailure] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "match_id": self.match_id,
            "vacated_player_id": self.vacated_player_id,
            "attempt": self.attempt,
            "candidate_id": self.candidate_id,
            "tolerance_used": self.tolerance_used,
            "request_id": self.request_id,
            "error": self.failure.to_dict() if self.failure else None,
            "message": self.message,
        }


@dataclass
class ReplacementResponse:
    success: bool
    accepted: bool
    message: str
    match_id: Optional[int] = None
    request_id: Optional[int] = None
    match_complete: bool = False
    failure: Optional[EngineFailure] = None
    outcomes: List[ReplacementOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "accepted": self.accepted,
            "message": self.message,
            "match_id": self.match_id,
            "request_id": self.request_id,
            "match_complete": self.match_complete,
            "error": self.failure.to_dict() if self.failure else None,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# ---------------------------------------------------------------------------
# Propose
# ---------------------------------------------------------------------------


def candidate_pool(
    repo: MatchRepository, match: Match, vacated_player_id: int, tolerance: float
) -> List[Player]:
    """
    Free players compatible with the match average, closest first.

    Excludes members, the vacated player, anyone busy in another active
    match or holding an offer, and anyone who already passed on this match.
    """
    busy = repo.busy_player_ids()
    passed = repo.passed_candidates(match.id)
    pool = [
        p
        for p in repo.list_players()
        if p.available
        and not match.has_player(p.id)
        and p.id != vacated_player_id
        and p.id not in busy
        and p.id not in passed
        and is_compatible(p.level, match.average_level, tolerance)
    ]
    return sorted(pool, key=lambda p: (level_distance(p.level, match.average_level), p.id))


def find_replacement(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    vacated_player_id: int,
    attempt: int,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> ReplacementOutcome:
    settings = settings or get_settings()
    outcome = ReplacementOutcome(
        action=ReplacementAction.not_found,
        match_id=match.id,
        vacated_player_id=vacated_player_id,
        attempt=attempt,
    )

    if match.is_terminal:
        outcome.action = ReplacementAction.error
        outcome.message = f"Match {match.id} is {MatchStatus(match.status).value}; no replacement attempted."
        outcome.failure = EngineFailure(EngineError.invalid_state, outcome.message)
        return outcome

    if attempt > settings.max_replacement_attempts:
        repo.add(
            ReplacementRequest(
                match_id=match.id,
                vacated_player_id=vacated_player_id,
                attempt=attempt,
                status=ReplacementStatus.exhausted,
                created_at=now,
                resolved_at=now,
            )
        )
        cancel_match(
            repo,
            notifier,
            match,
            CancellationReason.no_replacement,
            now,
            note=f"No replacement found after {settings.max_replacement_attempts} attempts.",
            settings=settings,
        )
        outcome.action = ReplacementAction.match_canceled
        outcome.message = f"Attempt cap reached; match {match.id} canceled."
        outcome.failure = EngineFailure(
            EngineError.unrecoverable, outcome.message, reason=CancellationReason.no_replacement
        )
        logger.warning(outcome.message)
        return outcome

    tolerances = [settings.default_tolerance]
    if attempt == ESCALATION_ATTEMPT:
        tolerances.append(settings.extended_tolerance)

    pool: List[Player] = []
    for tolerance in tolerances:
        pool = candidate_pool(repo, match, vacated_player_id, tolerance)
        outcome.tolerance_used = tolerance
        if pool:
            break

    if not pool:
        outcome.message = (
            f"No candidate within {outcome.tolerance_used} of level {match.average_level} "
            f"(attempt {attempt})."
        )
        logger.info(f"Match {match.id}: {outcome.message}")
        return outcome

    candidate = pool[0]
    request = ReplacementRequest(
        match_id=match.id,
        vacated_player_id=vacated_player_id,
        candidate_player_id=candidate.id,
        attempt=attempt,
        status=ReplacementStatus.proposed,
        tolerance_used=outcome.tolerance_used,
        created_at=now,
        deadline=now + timedelta(minutes=settings.replacement_response_minutes),
    )
    repo.add(request)
    repo.flush()

    body = replacement_offer_text(
        match.scheduled_at,
        repo.court_name(match.court_id),
        match.average_level,
        settings.replacement_response_minutes,
    )
    notifier.send(candidate, body, MessageType.replacement_offer, match_id=match.id, now=now)

    outcome.action = ReplacementAction.found
    outcome.candidate_id = candidate.id
    outcome.request_id = request.id
    outcome.message = f"Proposed player {candidate.id} (level {candidate.level}) for match {match.id}."
    logger.info(outcome.message)
    return outcome


def resolve_vacancy(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    vacated_player_id: int,
    now: datetime,
    start_attempt: int = 1,
    settings: Optional[EngineSettings] = None,
) -> List[ReplacementOutcome]:
    """Run attempts from `start_attempt` until one is not `not_found`."""
    settings = settings or get_settings()
    outcomes: List[ReplacementOutcome] = []
    attempt = start_attempt
    while True:
        outcome = find_replacement(repo, notifier, match, vacated_player_id, attempt, now, settings)
        outcomes.append(outcome)
        if outcome.action != ReplacementAction.not_found:
            return outcomes
        attempt += 1


# ---------------------------------------------------------------------------
# Confirm
# ---------------------------------------------------------------------------


def substitute_player(
    repo: MatchRepository,
    match: Match,
    request: ReplacementRequest,
    candidate: Player,
    now: datetime,
) -> None:
    """Swap the candidate into the vacated seat and recompute levels."""
    vacated_id = request.vacated_player_id
    if match.has_player(vacated_id):
        match.player_ids = [candidate.id if pid == vacated_id else pid for pid in match.player_ids]
    else:
        match.player_ids = list(match.player_ids) + [candidate.id]

    confirmed = [pid for pid in (match.confirmed_ids or []) if pid != vacated_id]
    match.confirmed_ids = confirmed + [candidate.id]

    if match.notifications:
        old_record = match.notification_for(vacated_id)
        if old_record is not None:
            mark_replaced(old_record, now)
        match.notifications.append(
            MatchNotification(
                player_id=candidate.id,
                state=NotificationState.confirmed,
                sent_at=request.created_at,
                responded_at=now,
                deadline=request.deadline or now,
            )
        )

    recompute_match_levels(repo, match)
    repo.add(match)


def _seat_still_open(match: Match, request: ReplacementRequest, settings: EngineSettings) -> bool:
    return match.has_player(request.vacated_player_id) or len(match.player_ids) < settings.players_to_close


def respond_to_replacement(
    repo: MatchRepository,
    notifier: Notifier,
    request: ReplacementRequest,
    accepted: bool,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> ReplacementResponse:
    settings = settings or get_settings()
    response = ReplacementResponse(success=False, accepted=accepted, message="", request_id=request.id, match_id=request.match_id)

    match = repo.get_match(request.match_id)
    if match is None:
        response.message = f"Match {request.match_id} does not exist."
        response.failure = EngineFailure(EngineError.not_found, response.message)
        return response

    with match_lock(match.id):
        # Also re-reads `request`, which belongs to this match
        match = repo.reload_match(match)
        if request.status != ReplacementStatus.proposed:
            response.message = f"This offer is already {ReplacementStatus(request.status).value}."
            response.failure = EngineFailure(EngineError.invalid_state, response.message)
            return response

        if match.is_terminal or (accepted and not _seat_still_open(match, request, settings)):
            request.status = ReplacementStatus.expired
            request.resolved_at = now
            repo.add(request)
            repo.commit()
            response.message = "Sorry, that seat is no longer available."
            response.failure = EngineFailure(EngineError.invalid_state, response.message)
            return response

        candidate = repo.get_player(request.candidate_player_id)
        if candidate is None:
            response.message = f"Player {request.candidate_player_id} does not exist."
            response.failure = EngineFailure(EngineError.not_found, response.message)
            return response

        request.resolved_at = now
        if accepted:
            request.status = ReplacementStatus.accepted
            repo.add(request)
            substitute_player(repo, match, request, candidate, now)

            others = [p for p in repo.players_by_ids(match.player_ids) if p.id != candidate.id]
            notifier.send_to_players(
                others,
                replacement_joined_text(candidate.name, match.scheduled_at),
                MessageType.replacement_joined,
                match_id=match.id,
                now=now,
            )
            response.match_complete = promote_if_complete(repo, notifier, match, now, settings)
            response.success = True
            response.message = f"You are in, {candidate.name}! See you on the court."
            logger.info(f"Player {candidate.id} replaced {request.vacated_player_id} in match {match.id}")
        else:
            request.status = ReplacementStatus.declined
            repo.add(request)
            response.outcomes = resolve_vacancy(
                repo,
                notifier,
                match,
                request.vacated_player_id,
                now,
                start_attempt=request.attempt + 1,
                settings=settings,
            )
            response.success = True
            response.message = "No problem, thanks for letting us know."
            logger.info(f"Player {candidate.id} declined seat in match {match.id}")

        repo.commit()
        return response


def expire_stale_proposals(
    repo: MatchRepository,
    notifier: Notifier,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> Tuple[int, List[ReplacementOutcome]]:
    """
    Close offers past their deadline and continue each vacancy at the next attempt.

    Returns the number of offers expired and the resolver outcomes.
    """
    settings = settings or get_settings()
    expired = 0
    outcomes: List[ReplacementOutcome] = []
    for request in repo.open_proposals():
        if not request.is_expired(now):
            continue
        match = repo.get_match(request.match_id)
        if match is None:
            continue
        with match_lock(match.id):
            match = repo.reload_match(match)
            # The candidate may have answered since the offer list was read
            if not request.is_expired(now):
                continue
            expired += 1
            request.status = ReplacementStatus.expired
            request.resolved_at = now
            repo.add(request)
            logger.info(f"Replacement offer {request.id} to player {request.candidate_player_id} expired")

            if not match.is_terminal:
                outcomes.extend(
                    resolve_vacancy(
                        repo,
                        notifier,
                        match,
                        request.vacated_player_id,
                        now,
                        start_attempt=request.attempt + 1,
                        settings=settings,
                    )
                )
            repo.commit()
    return expired, outcomes
