from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, DateTime, String
from sqlmodel import Column, Field, Relationship, SQLModel

from padelmatch.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from padelmatch.models.match_notification import MatchNotification


class MatchStatus(str, Enum):
    waiting = "waiting"  # Open match, filling up through open play
    notified = "notified"  # Built by the daily cycle, confirmations outstanding
    confirmed = "confirmed"  # Every player confirmed
    canceled = "canceled"
    completed = "completed"


TERMINAL_STATUSES = (MatchStatus.canceled, MatchStatus.completed)
ACTIVE_STATUSES = (MatchStatus.waiting, MatchStatus.notified, MatchStatus.confirmed)


class CancellationReason(str, Enum):
    player_left = "player_left"
    no_confirmations = "no_confirmations"
    not_enough_players = "not_enough_players"
    court_unavailable = "court_unavailable"
    match_expired = "match_expired"
    no_replacement = "no_replacement"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    player_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    # Legacy view kept in sync with the notification records
    confirmed_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    scheduled_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    court_id: int = Field(foreign_key="court.id", index=True)
    status: MatchStatus = Field(default=MatchStatus.waiting, sa_column=Column(String, index=True))
    category: int
    average_level: float
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    cancellation_reason: Optional[str] = Field(default=None)  # CancellationReason value
    cancellation_note: Optional[str] = Field(default=None)

    # Only present for matches created by the daily cycle
    notifications: List["MatchNotification"] = Relationship(
        back_populates="match",
        sa_relationship_kwargs={"order_by": "MatchNotification.id"},
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def active_notifications(self) -> List["MatchNotification"]:
        """One record per current member; replaced records are history."""
        from padelmatch.models.match_notification import NotificationState

        return [n for n in self.notifications if n.state != NotificationState.replaced]

    def notification_for(self, player_id: int) -> Optional["MatchNotification"]:
        for n in self.active_notifications:
            if n.player_id == player_id:
                return n
        return None

    def has_player(self, player_id: int) -> bool:
        return player_id in (self.player_ids or [])
