"""SMS log model for tracking sent messages."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

from padelmatch.utils.datetime_utils import utcnow


class SmsLog(SQLModel, table=True):
    """Log of every SMS sent through the system."""

    __tablename__ = "sms_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: Optional[int] = Field(default=None, foreign_key="player.id", index=True)
    match_id: Optional[int] = Field(default=None, foreign_key="match.id", index=True)
    phone_number: str  # Recipient phone in E.164 format
    message_body: str  # The actual message text sent
    message_type: str  # invitation|match_confirmed|replacement_offer|replacement_joined|match_canceled|reply|...
    twilio_sid: Optional[str] = Field(default=None)  # Twilio message SID for tracking
    status: str = Field(default="queued")  # queued|sent|delivered|failed|dry_run
    error_message: Optional[str] = Field(default=None)  # Error details if failed
    trigger: str = Field(default="auto")  # manual|auto
    sent_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
