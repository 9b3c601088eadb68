"""Match endpoints: listing, open play, attendance and departures.

Every mutating endpoint accepts an optional `now` so callers (and tests)
can pin the clock.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from padelmatch.models import CancellationReason, Match, MatchStatus, NotificationState
from padelmatch.routes.deps import (
    get_notifier,
    get_repository,
    raise_for_failure,
    resolve_now,
)
from padelmatch.services.cancellation import cancel_match, leave_match
from padelmatch.services.confirmation import respond_to_invitation
from padelmatch.services.notifier import Notifier
from padelmatch.services.open_play import join_open_match
from padelmatch.services.replacement import respond_to_replacement
from padelmatch.services.repository import MatchRepository
from padelmatch.utils.locks import match_lock

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    state: NotificationState
    sent_at: datetime
    responded_at: Optional[datetime] = None
    deadline: datetime


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    player_ids: List[int]
    confirmed_ids: List[int]
    scheduled_at: datetime
    court_id: int
    status: MatchStatus
    category: int
    average_level: float
    created_at: datetime
    cancellation_reason: Optional[str] = None
    cancellation_note: Optional[str] = None
    notifications: List[NotificationResponse] = []


class JoinRequest(BaseModel):
    phone: str
    requested_time: Optional[str] = None  # "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM"
    now: Optional[datetime] = None


class LeaveRequest(BaseModel):
    phone: str
    match_id: Optional[int] = None
    now: Optional[datetime] = None


class ConfirmRequest(BaseModel):
    phone: str
    accepted: bool = True
    match_id: Optional[int] = None
    now: Optional[datetime] = None


class CancelRequest(BaseModel):
    reason: CancellationReason
    note: Optional[str] = None
    now: Optional[datetime] = None


class ReplacementAnswer(BaseModel):
    accepted: bool
    now: Optional[datetime] = None


def _get_match_or_404(repo: MatchRepository, match_id: int) -> Match:
    match = repo.get_match(match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/matches", response_model=List[MatchResponse])
def list_matches(
    status: Optional[MatchStatus] = None,
    player_id: Optional[int] = None,
    repo: MatchRepository = Depends(get_repository),
):
    if player_id is not None:
        return repo.matches_for_player(player_id, [status] if status else None)
    return repo.list_matches(status)


@router.get("/matches/{match_id}", response_model=MatchResponse)
def get_match(match_id: int, repo: MatchRepository = Depends(get_repository)):
    return _get_match_or_404(repo, match_id)


# ---------------------------------------------------------------------------
# Player actions
# ---------------------------------------------------------------------------


@router.post("/matches/join")
def join_match(
    request: JoinRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Join a compatible open match or open a new one."""
    result = join_open_match(repo, notifier, request.phone, resolve_now(request.now), request.requested_time)
    raise_for_failure(result.failure)
    return result.to_dict()


@router.post("/matches/leave")
def leave(
    request: LeaveRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Drop out of a match (the soonest active one when match_id is omitted)."""
    result = leave_match(repo, notifier, request.phone, resolve_now(request.now), match_id=request.match_id)
    raise_for_failure(result.failure)
    return result.to_dict()


@router.post("/matches/confirm")
def confirm(
    request: ConfirmRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Record a YES/NO answer for the player's match."""
    result = respond_to_invitation(
        repo,
        notifier,
        request.phone,
        request.accepted,
        resolve_now(request.now),
        match_id=request.match_id,
    )
    raise_for_failure(result.failure)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------


@router.post("/matches/{match_id}/cancel")
def cancel(
    match_id: int,
    request: CancelRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """System-initiated cancellation (e.g. court_unavailable)."""
    match = _get_match_or_404(repo, match_id)
    with match_lock(match.id):
        match = repo.reload_match(match)
        result = cancel_match(repo, notifier, match, request.reason, resolve_now(request.now), note=request.note)
        raise_for_failure(result.failure)
        repo.commit()
    return result.to_dict()


@router.post("/replacements/{request_id}/respond")
def answer_replacement(
    request_id: int,
    answer: ReplacementAnswer,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Apply a candidate's answer to a replacement offer."""
    request = repo.get_replacement(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Replacement request not found")
    result = respond_to_replacement(repo, notifier, request, answer.accepted, resolve_now(answer.now))
    # A closed offer or a taken seat comes back as invalid_state (409)
    raise_for_failure(result.failure)
    return result.to_dict()
