"""Tests for phone normalization, the Twilio wrapper and the notifier."""

from types import SimpleNamespace

import pytest
from sqlmodel import select

from padelmatch.models import SmsLog
from padelmatch.services.messages import MessageType
from padelmatch.services.twilio_service import (
    TwilioService,
    format_e164,
    get_player_phone,
    validate_e164,
)
from tests.factories import make_player


# ---------------------------------------------------------------------------
# Phone number formatting tests
# ---------------------------------------------------------------------------


class TestFormatE164:
    """Test phone number formatting to E.164."""

    def test_national_number(self):
        assert format_e164("1122334455") == "+541122334455"

    def test_already_e164(self):
        assert format_e164("+5491122334455") == "+5491122334455"

    def test_missing_plus(self):
        assert format_e164("5491122334455") == "+5491122334455"

    def test_spaces_and_dashes(self):
        assert format_e164("11 2233-4455") == "+541122334455"

    def test_parens(self):
        assert format_e164("(11) 2233 4455") == "+541122334455"

    def test_other_country(self):
        assert format_e164("5551234567", default_country="1") == "+15551234567"

    def test_invalid_short(self):
        with pytest.raises(ValueError, match="Cannot parse"):
            format_e164("12345")

    def test_invalid_empty(self):
        with pytest.raises(ValueError, match="empty"):
            format_e164("   ")


class TestValidateE164:
    def test_valid(self):
        assert validate_e164("+5491122334455") is True

    def test_missing_plus(self):
        assert validate_e164("5491122334455") is False

    def test_too_short(self):
        assert validate_e164("+1234") is False


class TestGetPlayerPhone:
    def _player(self, phone):
        return SimpleNamespace(id=1, phone=phone)

    def test_normalizes(self):
        assert get_player_phone(self._player("11 2233-4455")) == "+541122334455"

    def test_placeholder(self):
        assert get_player_phone(self._player("-")) is None

    def test_blank(self):
        assert get_player_phone(self._player("   ")) is None

    def test_unparseable(self):
        assert get_player_phone(self._player("123")) is None


# ---------------------------------------------------------------------------
# TwilioService (dry-run)
# ---------------------------------------------------------------------------


class TestTwilioService:
    def test_dry_run_without_credentials(self):
        twilio = TwilioService()
        assert twilio.dry_run
        assert not twilio.is_configured
        result = twilio.send_sms("+5491122334455", "Hola")
        assert result["status"] == "dry_run"
        assert result["sid"].startswith("DRY_RUN_")

    def test_explicit_credentials_configure_client(self):
        twilio = TwilioService(account_sid="AC" + "0" * 32, auth_token="token", from_number="+15550001111")
        assert twilio.is_configured
        assert not twilio.dry_run

    def test_long_body_is_truncated(self):
        result = TwilioService().send_sms("+5491122334455", "x" * 2000)
        assert result["status"] == "dry_run"

    def test_invalid_number_fails_without_sending(self):
        result = TwilioService().send_sms("12345", "Hola")
        assert result["status"] == "failed"
        assert "Invalid phone" in result["error"]


class TestNotifier:
    def test_send_logs_entry(self, session, notifier):
        player = make_player(session, 1, 4.0)

        entry = notifier.send(player, "Hola", MessageType.reply, match_id=None)
        session.commit()

        logs = session.exec(select(SmsLog)).all()
        assert entry is not None
        assert len(logs) == 1
        assert logs[0].player_id == player.id
        assert logs[0].message_type == "reply"
        assert logs[0].status == "dry_run"
        assert logs[0].trigger == "auto"

    def test_player_without_phone_is_skipped(self, session, notifier):
        ghost = SimpleNamespace(id=99, phone="")

        assert notifier.send(ghost, "Hola", MessageType.reply) is None
        session.commit()

        assert session.exec(select(SmsLog)).all() == []

    def test_send_to_players(self, session, notifier):
        players = [make_player(session, 1, 4.0), make_player(session, 2, 4.0)]
        sent = notifier.send_to_players(players, "Hola", MessageType.match_canceled, match_id=None)
        assert len(sent) == 2
