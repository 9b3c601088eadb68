from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from padelmatch.database import get_session
from padelmatch.models.court import Court
from padelmatch.utils.datetime_utils import parse_slot

router = APIRouter()


def _check_days(days: List[int]) -> List[int]:
    if any(d < 0 or d > 6 for d in days):
        raise ValueError("days_available must be weekday numbers 0 (Monday) to 6 (Sunday)")
    return sorted(set(days))


def _check_slots(slots: List[str]) -> List[str]:
    """Normalize to zero-padded HH:MM, keeping the given order."""
    normalized = []
    for slot in slots:
        try:
            normalized.append(parse_slot(slot).strftime("%H:%M"))
        except ValueError:
            raise ValueError(f"Invalid time slot '{slot}', expected HH:MM")
    return normalized


class CourtCreate(BaseModel):
    name: str
    court_type: str = "indoor"
    is_active: bool = True
    days_available: List[int] = []
    time_slots: List[str] = []
    description: Optional[str] = None

    @field_validator("court_type")
    @classmethod
    def validate_court_type(cls, v):
        if v not in ("indoor", "outdoor"):
            raise ValueError("court_type must be indoor or outdoor")
        return v

    @field_validator("days_available")
    @classmethod
    def validate_days(cls, v):
        return _check_days(v)

    @field_validator("time_slots")
    @classmethod
    def validate_slots(cls, v):
        return _check_slots(v)


class CourtUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    days_available: Optional[List[int]] = None
    time_slots: Optional[List[str]] = None
    description: Optional[str] = None

    @field_validator("days_available")
    @classmethod
    def validate_days(cls, v):
        return _check_days(v) if v is not None else v

    @field_validator("time_slots")
    @classmethod
    def validate_slots(cls, v):
        return _check_slots(v) if v is not None else v


class CourtResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    court_type: str
    is_active: bool
    days_available: List[int]
    time_slots: List[str]
    capacity: int
    description: Optional[str]


@router.get("/courts", response_model=List[CourtResponse])
def list_courts(session: Session = Depends(get_session)):
    return session.exec(select(Court).order_by(Court.id)).all()


@router.post("/courts", response_model=CourtResponse, status_code=201)
def create_court(court_data: CourtCreate, session: Session = Depends(get_session)):
    court = Court(**court_data.model_dump())
    session.add(court)
    session.commit()
    session.refresh(court)
    return court


@router.put("/courts/{court_id}", response_model=CourtResponse)
def update_court(court_id: int, court_data: CourtUpdate, session: Session = Depends(get_session)):
    court = session.get(Court, court_id)
    if not court:
        raise HTTPException(status_code=404, detail="Court not found")
    for key, value in court_data.model_dump(exclude_unset=True).items():
        setattr(court, key, value)
    session.add(court)
    session.commit()
    session.refresh(court)
    return court
