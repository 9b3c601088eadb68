"""Outbound text channel.

Every send goes through TwilioService and is logged to sms_log. Delivery
outcome is recorded but never fed back into match state.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from padelmatch.models.player import Player
from padelmatch.models.sms_log import SmsLog
from padelmatch.services.messages import MessageType
from padelmatch.services.repository import MatchRepository
from padelmatch.services.twilio_service import (
    TwilioService,
    get_player_phone,
    get_twilio_service,
)
from padelmatch.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(
        self,
        repo: MatchRepository,
        twilio: Optional[TwilioService] = None,
        country_code: str = "54",
    ):
        self.repo = repo
        self.twilio = twilio or get_twilio_service()
        self.country_code = country_code

    def send(
        self,
        player: Player,
        body: str,
        message_type: MessageType,
        match_id: Optional[int] = None,
        trigger: str = "auto",
        now: Optional[datetime] = None,
    ) -> Optional[SmsLog]:
        """
        Text one player and log the attempt.

        Returns the log entry, or None when the player has no usable phone.
        """
        phone = get_player_phone(player, self.country_code)
        if phone is None:
            logger.warning(f"Player {player.id} has no usable phone, {message_type.value} not sent")
            return None

        send_result = self.twilio.send_sms(phone, body)
        status = send_result.get("status", "failed")
        if status == "failed":
            logger.error(f"SMS to player {player.id} failed: {send_result.get('error')}")

        log_entry = SmsLog(
            player_id=player.id,
            match_id=match_id,
            phone_number=phone,
            message_body=body,
            message_type=MessageType(message_type).value,
            twilio_sid=send_result.get("sid"),
            status=status,
            error_message=send_result.get("error"),
            trigger=trigger,
            sent_at=now or utcnow(),
        )
        self.repo.add(log_entry)
        return log_entry

    def send_to_players(
        self,
        players: Iterable[Player],
        body: str,
        message_type: MessageType,
        match_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[SmsLog]:
        sent: List[SmsLog] = []
        for player in players:
            entry = self.send(player, body, message_type, match_id=match_id, now=now)
            if entry is not None:
                sent.append(entry)
        return sent
