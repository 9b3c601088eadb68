"""Answers to the fixed set of questions a player can text in."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import Match, MatchStatus
from padelmatch.services.repository import MatchRepository
from padelmatch.utils.datetime_utils import format_match_time

# Matches a player can still ask about
UPCOMING_STATUSES = [MatchStatus.waiting, MatchStatus.notified, MatchStatus.confirmed]


class QuestionType(str, Enum):
    next_match = "next_match"
    opponents = "opponents"
    court = "court"
    time = "time"
    my_matches = "my_matches"
    match_status = "match_status"


@dataclass
class QuestionAnswer:
    success: bool
    question: Optional[QuestionType]
    answer: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "question": self.question.value if self.question else None,
            "answer": self.answer,
            "data": self.data,
        }


def _resolve_match(repo: MatchRepository, player_id: int, match_id: Optional[int]) -> Optional[Match]:
    if match_id is not None:
        match = repo.get_match(match_id)
        return match if match is not None and match.has_player(player_id) else None
    upcoming = repo.matches_for_player(player_id, UPCOMING_STATUSES)
    return upcoming[0] if upcoming else None


def _status_line(match: Match, players_to_close: int = 4) -> str:
    status = MatchStatus(match.status)
    if status == MatchStatus.waiting:
        return (
            f"Waiting for players ({len(match.player_ids)}/{players_to_close} in, "
            f"{len(match.confirmed_ids or [])} confirmed)"
        )
    if status == MatchStatus.notified:
        return f"Waiting for confirmations ({len(match.confirmed_ids or [])}/{len(match.player_ids)} confirmed)"
    if status == MatchStatus.confirmed:
        return "Confirmed, every player accepted"
    if status == MatchStatus.canceled:
        return f"Canceled: {match.cancellation_reason}" if match.cancellation_reason else "Canceled"
    return "Completed, this match was already played"


def answer_question(
    repo: MatchRepository,
    phone: str,
    question: str,
    match_id: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> QuestionAnswer:
    settings = settings or get_settings()
    player = repo.get_player_by_phone(phone)
    if player is None:
        return QuestionAnswer(False, None, "We could not find your number. Please contact the club.")

    try:
        kind = QuestionType(question)
    except ValueError:
        return QuestionAnswer(
            False,
            None,
            "Sorry, I did not get that. You can ask: next match, opponents, court, time, "
            "my matches or match status.",
        )

    if kind == QuestionType.my_matches:
        matches = repo.matches_for_player(player.id)
        if not matches:
            return QuestionAnswer(True, kind, "You have no matches yet. Text PLAY to join one.", {"total": 0})
        lines: List[str] = [
            f"- {format_match_time(m.scheduled_at)}: {MatchStatus(m.status).value.upper()} "
            f"({repo.court_name(m.court_id)})"
            for m in matches
        ]
        return QuestionAnswer(True, kind, "Your matches:\n" + "\n".join(lines), {"total": len(matches)})

    match = _resolve_match(repo, player.id, match_id)
    if match is None:
        return QuestionAnswer(
            kind == QuestionType.next_match,
            kind,
            "You have no upcoming matches. Text PLAY to join one.",
        )

    when = format_match_time(match.scheduled_at)

    if kind == QuestionType.next_match:
        return QuestionAnswer(
            True,
            kind,
            f"Your next match is on {when} at {repo.court_name(match.court_id)}. "
            f"Status: {MatchStatus(match.status).value}.",
            {"match_id": match.id, "scheduled_at": match.scheduled_at.isoformat(), "court_id": match.court_id},
        )

    if kind == QuestionType.opponents:
        others = [p.name for p in repo.players_by_ids(match.player_ids) if p.id != player.id]
        if not others:
            return QuestionAnswer(True, kind, "Nobody else has joined yet. We are looking for players.", {"match_id": match.id})
        missing = settings.players_to_close - len(match.player_ids)
        answer = (
            f"So far: {', '.join(others)}. {missing} more player(s) needed."
            if missing > 0
            else f"You play with/against: {', '.join(others)}. Match on {when}."
        )
        return QuestionAnswer(True, kind, answer, {"match_id": match.id, "players": others})

    if kind == QuestionType.court:
        court = repo.get_court(match.court_id)
        if court is None:
            return QuestionAnswer(True, kind, f"Your court is #{match.court_id}.", {"court_id": match.court_id})
        return QuestionAnswer(
            True,
            kind,
            f"Your match is on {court.name} ({court.court_type}).",
            {"court_id": court.id, "name": court.name, "court_type": court.court_type},
        )

    if kind == QuestionType.time:
        return QuestionAnswer(
            True,
            kind,
            f"Your match is on {when}.",
            {"match_id": match.id, "scheduled_at": match.scheduled_at.isoformat()},
        )

    return QuestionAnswer(
        True,
        kind,
        f"Match on {when}: {_status_line(match, settings.players_to_close)}.",
        {"match_id": match.id, "status": MatchStatus(match.status).value},
    )
