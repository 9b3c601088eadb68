"""Timestamps are stored and compared as naive UTC."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import DateTime

from padelmatch.models import Match, MatchNotification, Player, ReplacementRequest, SmsLog
from padelmatch.routes.deps import resolve_now
from padelmatch.utils.datetime_utils import to_naive_utc, utcnow
from tests.factories import NOW, make_court, make_notified_match, make_player, make_players


@pytest.mark.parametrize(
    "model, columns",
    [
        (Player, ["created_at"]),
        (Match, ["scheduled_at", "created_at"]),
        (MatchNotification, ["sent_at", "responded_at", "deadline"]),
        (ReplacementRequest, ["created_at", "deadline", "resolved_at"]),
        (SmsLog, ["sent_at"]),
    ],
)
def test_datetime_columns_are_naive(model, columns):
    for name in columns:
        column_type = model.__table__.c[name].type
        assert isinstance(column_type, DateTime)
        assert column_type.timezone is False


def test_utcnow_is_naive():
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    moment = utcnow()
    assert moment.tzinfo is None
    assert moment - before < timedelta(seconds=5)


def test_to_naive_utc():
    aware = datetime(2025, 2, 10, 6, 0, tzinfo=timezone(timedelta(hours=-3)))
    assert to_naive_utc(aware) == datetime(2025, 2, 10, 9, 0)
    assert to_naive_utc(NOW) is NOW


def test_resolve_now_normalizes_aware_input():
    assert resolve_now(datetime(2025, 2, 10, 9, 0, tzinfo=timezone.utc)) == NOW
    assert resolve_now(None).tzinfo is None


def test_defaults_persist_and_compare(session):
    player = make_player(session, 1, 4.0)
    assert player.created_at.tzinfo is None

    players = [player] + make_players(session, [4.1, 4.2, 4.3], start=2)
    match = make_notified_match(session, players, make_court(session))
    session.expire_all()

    stored = session.get(Match, match.id)
    assert stored.scheduled_at > NOW
    assert all(not n.is_expired(NOW) for n in stored.notifications)
    assert all(n.is_expired(NOW + timedelta(hours=2)) for n in stored.notifications)
