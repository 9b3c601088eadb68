from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from padelmatch.config import get_settings
from padelmatch.database import get_session
from padelmatch.models.player import Player
from padelmatch.routes.deps import get_repository
from padelmatch.services.player_queries import answer_question
from padelmatch.services.repository import MatchRepository
from padelmatch.services.twilio_service import format_e164

router = APIRouter()

SUBLEVELS = ("base", "intermediate", "advanced")


def _normalize_phone(v: str) -> str:
    # ValueError surfaces as a 422 from the validator
    return format_e164(v, get_settings().country_code)


class PlayerCreate(BaseModel):
    name: str
    level: float
    category: int
    sublevel: Optional[str] = None
    available: bool = True
    phone: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        if v < 0:
            raise ValueError("level must be >= 0")
        return v

    @field_validator("sublevel")
    @classmethod
    def validate_sublevel(cls, v):
        if v is not None and v not in SUBLEVELS:
            raise ValueError(f"sublevel must be one of {', '.join(SUBLEVELS)}")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _normalize_phone(v)


class PlayerUpdate(BaseModel):
    name: Optional[str] = None
    level: Optional[float] = None
    category: Optional[int] = None
    sublevel: Optional[str] = None
    available: Optional[bool] = None
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _normalize_phone(v) if v is not None else v


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    level: float
    category: int
    sublevel: Optional[str]
    available: bool
    phone: str
    created_at: datetime


class QuestionRequest(BaseModel):
    phone: str
    question: str
    match_id: Optional[int] = None


def _get_player_or_404(session: Session, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


def _ensure_phone_free(session: Session, phone: str, player_id: Optional[int] = None) -> None:
    existing = session.exec(select(Player).where(Player.phone == phone)).first()
    if existing and existing.id != player_id:
        raise HTTPException(status_code=409, detail=f"Phone {phone} already belongs to player {existing.id}")


@router.get("/players", response_model=List[PlayerResponse])
def list_players(available: Optional[bool] = None, session: Session = Depends(get_session)):
    query = select(Player)
    if available is not None:
        query = query.where(Player.available == available)
    return session.exec(query.order_by(Player.id)).all()


@router.post("/players", response_model=PlayerResponse, status_code=201)
def create_player(player_data: PlayerCreate, session: Session = Depends(get_session)):
    _ensure_phone_free(session, player_data.phone)
    player = Player(**player_data.model_dump())
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@router.get("/players/{player_id}", response_model=PlayerResponse)
def get_player(player_id: int, session: Session = Depends(get_session)):
    return _get_player_or_404(session, player_id)


@router.put("/players/{player_id}", response_model=PlayerResponse)
def update_player(player_id: int, player_data: PlayerUpdate, session: Session = Depends(get_session)):
    """Update a player. Only provided fields change."""
    player = _get_player_or_404(session, player_id)
    updates = player_data.model_dump(exclude_unset=True)
    if updates.get("phone"):
        _ensure_phone_free(session, updates["phone"], player_id)
    for key, value in updates.items():
        setattr(player, key, value)
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@router.post("/questions")
def ask_question(request: QuestionRequest, repo: MatchRepository = Depends(get_repository)):
    """Answer one of the fixed player questions (next_match, opponents, court, time, my_matches, match_status)."""
    answer = answer_question(repo, request.phone, request.question, match_id=request.match_id)
    return answer.to_dict()
