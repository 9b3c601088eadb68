from padelmatch.models.court import Court
from padelmatch.models.match import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    CancellationReason,
    Match,
    MatchStatus,
)
from padelmatch.models.match_notification import MatchNotification, NotificationState
from padelmatch.models.player import Player
from padelmatch.models.replacement_request import ReplacementRequest, ReplacementStatus
from padelmatch.models.sms_log import SmsLog

__all__ = [
    "Player",
    "Court",
    "Match",
    "MatchStatus",
    "CancellationReason",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "MatchNotification",
    "NotificationState",
    "ReplacementRequest",
    "ReplacementStatus",
    "SmsLog",
]
