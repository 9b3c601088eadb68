"""SMS routes.

Provides endpoints for:
- Receiving inbound player replies (YES/NO)
- Viewing send history (log)
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from padelmatch.database import get_session
from padelmatch.models.sms_log import SmsLog
from padelmatch.routes.deps import get_notifier, get_repository, resolve_now
from padelmatch.services.confirmation import handle_inbound_reply
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.twilio_service import get_twilio_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["sms"])


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class InboundSms(BaseModel):
    """A reply forwarded by the SMS gateway."""

    phone: str
    body: str
    now: Optional[datetime] = None


class SmsLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    player_id: Optional[int]
    match_id: Optional[int]
    phone_number: str
    message_body: str
    message_type: str
    status: str
    error_message: Optional[str]
    trigger: str
    sent_at: datetime


class SmsStatusResponse(BaseModel):
    configured: bool
    dry_run: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/status", response_model=SmsStatusResponse)
def sms_status():
    twilio = get_twilio_service()
    return SmsStatusResponse(configured=twilio.is_configured, dry_run=twilio.dry_run)


@router.post("/inbound")
def inbound_sms(
    message: InboundSms,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Interpret a player's reply; unrecognized text gets a help message back."""
    result = handle_inbound_reply(repo, notifier, message.phone, message.body, resolve_now(message.now))
    logger.info(f"Inbound SMS from {message.phone} handled as {result.kind}")
    return result.to_dict()


@router.get("/log", response_model=List[SmsLogResponse])
def sms_log(
    limit: int = Query(100, ge=1, le=1000),
    message_type: Optional[str] = None,
    player_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    query = select(SmsLog)
    if message_type:
        query = query.where(SmsLog.message_type == message_type)
    if player_id is not None:
        query = query.where(SmsLog.player_id == player_id)
    return session.exec(query.order_by(SmsLog.id.desc()).limit(limit)).all()
