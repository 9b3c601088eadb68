"""Outbound text catalogue.

Every text the engine sends is rendered here from a fixed template. The
cancellation table is keyed by CancellationReason and must cover every
member; a missing entry fails at import time.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable

from padelmatch.models.match import CancellationReason
from padelmatch.utils.datetime_utils import format_match_time


class MessageType(str, Enum):
    invitation = "invitation"
    match_confirmed = "match_confirmed"
    replacement_offer = "replacement_offer"
    replacement_joined = "replacement_joined"
    match_full = "match_full"
    match_canceled = "match_canceled"
    reply = "reply"


TEMPLATES: Dict[MessageType, str] = {
    MessageType.invitation: (
        "Your match is ready! {time} on {court}. Partner: {partner}. "
        "Rivals: {rivals}. Reply YES to confirm or NO to drop out. "
        "You have {minutes} minutes to answer."
    ),
    MessageType.match_confirmed: (
        "Match confirmed, everyone accepted! {time} on {court}. "
        "Playing with: {others}. Good luck!"
    ),
    MessageType.replacement_offer: (
        "A seat opened up: {time} on {court} (level {level}). "
        "Reply YES to join or NO to pass. You have {minutes} minutes to answer."
    ),
    MessageType.replacement_joined: (
        "{name} is joining your match on {time}. The match is still on."
    ),
    MessageType.match_full: (
        "Your match on {time} at {court} is full. Reply YES to confirm you will play or NO to drop out."
    ),
}

CANCELLATION_TEMPLATES: Dict[CancellationReason, str] = {
    CancellationReason.player_left: "The match on {time} was canceled because a player left.",
    CancellationReason.no_confirmations: "Nobody confirmed in time. The match on {time} was canceled.",
    CancellationReason.not_enough_players: "We could not get 4 players for the match on {time}. It was canceled.",
    CancellationReason.court_unavailable: "{court} is not available. The match on {time} was canceled.",
    CancellationReason.match_expired: (
        "The match on {time} waited too long for players and was canceled automatically."
    ),
    CancellationReason.no_replacement: (
        "We could not find a replacement. The match on {time} was canceled. Sorry!"
    ),
}

_missing = set(CancellationReason) - set(CANCELLATION_TEMPLATES)
if _missing:
    raise RuntimeError(f"No cancellation text for: {sorted(r.value for r in _missing)}")


def _join(names: Iterable[str]) -> str:
    return ", ".join(names) or "-"


def invitation_text(
    scheduled_at: datetime, court: str, partner: str, rivals: Iterable[str], minutes: int
) -> str:
    return TEMPLATES[MessageType.invitation].format(
        time=format_match_time(scheduled_at),
        court=court,
        partner=partner,
        rivals=_join(rivals),
        minutes=minutes,
    )


def match_confirmed_text(scheduled_at: datetime, court: str, others: Iterable[str]) -> str:
    return TEMPLATES[MessageType.match_confirmed].format(
        time=format_match_time(scheduled_at), court=court, others=_join(others)
    )


def replacement_offer_text(scheduled_at: datetime, court: str, level: float, minutes: int) -> str:
    return TEMPLATES[MessageType.replacement_offer].format(
        time=format_match_time(scheduled_at), court=court, level=level, minutes=minutes
    )


def replacement_joined_text(name: str, scheduled_at: datetime) -> str:
    return TEMPLATES[MessageType.replacement_joined].format(
        name=name, time=format_match_time(scheduled_at)
    )


def cancellation_text(reason: CancellationReason, scheduled_at: datetime, court: str) -> str:
    return CANCELLATION_TEMPLATES[CancellationReason(reason)].format(
        time=format_match_time(scheduled_at), court=court
    )


def match_full_text(scheduled_at: datetime, court: str) -> str:
    return TEMPLATES[MessageType.match_full].format(time=format_match_time(scheduled_at), court=court)
