"""Request-scoped engine wiring shared by the routers."""
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException
from sqlmodel import Session

from padelmatch.config import EngineSettings, get_settings
from padelmatch.database import get_session
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.results import EngineError, EngineFailure
from padelmatch.utils.datetime_utils import to_naive_utc, utcnow

ERROR_STATUS = {
    EngineError.not_found: 404,
    EngineError.invalid_state: 409,
    EngineError.not_a_member: 403,
    EngineError.unrecoverable: 422,
    EngineError.inconsistent: 409,
}


def get_repository(
    session: Session = Depends(get_session),
    settings: EngineSettings = Depends(get_settings),
) -> MatchRepository:
    return MatchRepository(session, country_code=settings.country_code)


def get_notifier(
    repo: MatchRepository = Depends(get_repository),
    settings: EngineSettings = Depends(get_settings),
) -> Notifier:
    return Notifier(repo, country_code=settings.country_code)


def resolve_now(now: Optional[datetime]) -> datetime:
    """Callers may pin the clock; aware values are converted to naive UTC."""
    return to_naive_utc(now) if now is not None else utcnow()


def raise_for_failure(failure: Optional[EngineFailure]) -> None:
    if failure is None:
        return
    raise HTTPException(status_code=ERROR_STATUS.get(failure.error, 400), detail=failure.message)
