"""Tests for the outbound text catalogue."""

from datetime import datetime

from padelmatch.models import CancellationReason
from padelmatch.services.messages import (
    CANCELLATION_TEMPLATES,
    cancellation_text,
    invitation_text,
    match_confirmed_text,
    replacement_joined_text,
    replacement_offer_text,
)
from padelmatch.utils.datetime_utils import format_match_time

WHEN = datetime(2025, 2, 11, 18, 0)


def test_every_reason_has_a_text():
    assert set(CANCELLATION_TEMPLATES) == set(CancellationReason)
    for reason in CancellationReason:
        assert "Tue 11 Feb 18:00" in cancellation_text(reason, WHEN, "Court 1")


def test_court_unavailable_names_the_court():
    assert "Court 7" in cancellation_text(CancellationReason.court_unavailable, WHEN, "Court 7")


def test_match_time_format():
    assert format_match_time(WHEN) == "Tue 11 Feb 18:00"


def test_invitation_text():
    body = invitation_text(WHEN, "Court 1", "Diego", ["Bruno", "Carla"], 60)
    assert "Partner: Diego" in body
    assert "Rivals: Bruno, Carla" in body
    assert "60 minutes" in body


def test_other_texts():
    assert "Bruno, Carla" in match_confirmed_text(WHEN, "Court 1", ["Bruno", "Carla"])
    assert "level 4.15" in replacement_offer_text(WHEN, "Court 1", 4.15, 30)
    assert replacement_joined_text("Eva", WHEN).startswith("Eva is joining")
