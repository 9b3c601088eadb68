"""Twilio SMS service wrapper.

Players are reached by phone only. Numbers are stored as typed by the admin
and normalized to E.164 at send time; without credentials every send is a
logged dry run.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional

from twilio.rest import Client

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 1600
PLACEHOLDER_PHONES = ("—", "-", "N/A", "n/a", "none", "None")

_E164_RE = re.compile(r"^\+[1-9]\d{6,14}$")


def format_e164(phone: str, default_country: str = "54") -> str:
    """
    Normalize a phone number to E.164.

    "+5491122334455", "5491122334455", "1122334455", "11 2233-4455" and
    "(11) 2233 4455" are all accepted; a bare 10-digit number gets the
    default country code. Raises ValueError when nothing sensible is left.
    """
    if not phone or not phone.strip():
        raise ValueError("Phone number is empty")

    explicit_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)

    if explicit_plus and len(digits) >= 10:
        return "+" + digits
    if len(digits) == 10:
        return f"+{default_country}{digits}"
    if len(digits) > 10 and digits.startswith(default_country):
        return "+" + digits
    raise ValueError(
        f"Cannot parse phone number: '{phone}'. Expected 10-digit national number or E.164 format."
    )


def validate_e164(phone: str) -> bool:
    return bool(_E164_RE.match(phone))


def get_player_phone(player, default_country: str = "54") -> Optional[str]:
    """Player phone in E.164, or None when blank, a placeholder or unparseable."""
    raw = (player.phone or "").strip()
    if not raw or raw in PLACEHOLDER_PHONES:
        return None
    try:
        return format_e164(raw, default_country)
    except ValueError:
        logger.warning(f"Skipping invalid phone number on player {player.id}: '{raw}'")
        return None


def _send_result(sid: Optional[str], status: str, error: Optional[str] = None) -> dict:
    return {"sid": sid, "status": status, "error": error}


class TwilioService:
    """
    Sends texts through the Twilio REST API.

    Credentials default to TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and
    TWILIO_FROM_NUMBER. Missing credentials (or a client that fails to
    build) put the service in dry-run mode.

    send_sms never raises; it returns {"sid", "status", "error"} where
    status is Twilio's own status, "dry_run" or "failed".
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        self.account_sid = account_sid if account_sid is not None else os.getenv("TWILIO_ACCOUNT_SID", "")
        self.auth_token = auth_token if auth_token is not None else os.getenv("TWILIO_AUTH_TOKEN", "")
        self.from_number = from_number if from_number is not None else os.getenv("TWILIO_FROM_NUMBER", "")
        self.client: Optional[Client] = None

        if not (self.account_sid and self.auth_token and self.from_number):
            logger.warning(
                "Twilio credentials not configured, texts will only be logged. "
                "Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER."
            )
            return
        try:
            self.client = Client(self.account_sid, self.auth_token)
            logger.info("Twilio client initialized")
        except Exception as e:
            logger.error(f"Failed to initialize Twilio client: {e}")
            self.client = None

    @property
    def dry_run(self) -> bool:
        return self.client is None

    @property
    def is_configured(self) -> bool:
        return not self.dry_run

    def send_sms(self, to: str, body: str) -> dict:
        if not validate_e164(to):
            return _send_result(None, "failed", f"Invalid phone number format: {to}")

        if len(body) > MAX_BODY_CHARS:
            body = body[: MAX_BODY_CHARS - 3] + "..."

        if self.dry_run:
            logger.info(f"[DRY RUN] SMS to {to}: {body[:80]}")
            return _send_result(f"DRY_RUN_{datetime.now(timezone.utc).isoformat()}", "dry_run")

        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
        except Exception as e:
            logger.error(f"Failed to send SMS to {to}: {e}")
            return _send_result(None, "failed", str(e))

        logger.info(f"SMS sent to {to}: SID={message.sid}, status={message.status}")
        return _send_result(message.sid, message.status)


_twilio_service: Optional[TwilioService] = None


def get_twilio_service() -> TwilioService:
    """Process-wide TwilioService, built on first use."""
    global _twilio_service
    if _twilio_service is None:
        _twilio_service = TwilioService()
    return _twilio_service
