"""
Per-player confirmation record inside a match.

Lifecycle:

    pending --accept--> confirmed
            --decline-> rejected --(resolver)--> replaced
            --deadline> timeout  --(resolver)--> replaced

A record leaves pending exactly once. The deadline is fixed when the
record is created and never recomputed.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from padelmatch.models.match import Match


class NotificationState(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"
    timeout = "timeout"
    replaced = "replaced"


class MatchNotification(SQLModel, table=True):
    __tablename__ = "match_notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    state: NotificationState = Field(default=NotificationState.pending, sa_column=Column(String))
    sent_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    responded_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    deadline: datetime = Field(sa_column=Column(DateTime, nullable=False))

    match: "Match" = Relationship(back_populates="notifications")

    @classmethod
    def pending_for(cls, player_id: int, confirmation_minutes: int, now: datetime) -> "MatchNotification":
        """New pending record for a freshly invited player."""
        return cls(
            player_id=player_id,
            state=NotificationState.pending,
            sent_at=now,
            deadline=now + timedelta(minutes=confirmation_minutes),
        )

    def is_expired(self, now: datetime) -> bool:
        # Strict: a record whose deadline equals now is still in time
        return self.state == NotificationState.pending and self.deadline < now
