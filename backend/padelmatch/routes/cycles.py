"""Scheduled jobs exposed as endpoints so an external scheduler can trigger them."""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from padelmatch.routes.deps import get_notifier, get_repository, resolve_now
from padelmatch.services.confirmation import scan_confirmations
from padelmatch.services.matchmaking import run_daily_cycle
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository

logger = logging.getLogger(__name__)

router = APIRouter()


class DailyCycleRequest(BaseModel):
    now: Optional[datetime] = None
    target_date: Optional[date] = None  # defaults to the day after `now`


class ScanRequest(BaseModel):
    now: Optional[datetime] = None


@router.post("/cycles/daily")
def daily_cycle(
    request: DailyCycleRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    result = run_daily_cycle(repo, notifier, resolve_now(request.now), target_date=request.target_date)
    return result.to_dict()


@router.post("/cycles/confirmation-scan")
def confirmation_scan(
    request: ScanRequest,
    repo: MatchRepository = Depends(get_repository),
    notifier: Notifier = Depends(get_notifier),
):
    """Promote complete matches, time out silent players and expire stale offers."""
    result = scan_confirmations(repo, notifier, resolve_now(request.now))
    if result.errors:
        logger.warning(f"Confirmation scan finished with {len(result.errors)} errors")
    return result.to_dict()
