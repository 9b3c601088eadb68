"""Replacement proposal sent to a candidate for a vacated seat."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String
from sqlmodel import Column, Field, SQLModel

from padelmatch.utils.datetime_utils import utcnow


class ReplacementStatus(str, Enum):
    proposed = "proposed"  # Candidate texted, waiting for an answer
    accepted = "accepted"  # Candidate took the seat
    declined = "declined"  # Candidate said no
    expired = "expired"  # Candidate never answered
    exhausted = "exhausted"  # Attempts ran out, match canceled


OPEN_REPLACEMENT_STATUSES = (ReplacementStatus.proposed,)


class ReplacementRequest(SQLModel, table=True):
    __tablename__ = "replacement_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    vacated_player_id: int = Field(foreign_key="player.id")
    candidate_player_id: Optional[int] = Field(default=None, foreign_key="player.id", index=True)
    attempt: int = Field(default=1)
    status: ReplacementStatus = Field(default=ReplacementStatus.proposed, sa_column=Column(String, index=True))
    tolerance_used: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    deadline: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    resolved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    def is_expired(self, now: datetime) -> bool:
        return (
            self.status == ReplacementStatus.proposed
            and self.deadline is not None
            and self.deadline < now
        )
