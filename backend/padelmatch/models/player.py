from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

from padelmatch.utils.datetime_utils import utcnow


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    level: float  # Continuous skill level used for matching (e.g. 4.2)
    category: int  # Club category band (3 = best .. 8 = beginner)
    sublevel: Optional[str] = Field(default=None)  # "base" | "intermediate" | "advanced"
    available: bool = Field(default=True)  # General willingness to be called up
    phone: str = Field(index=True, unique=True)  # E.164, e.g. +5491122334455
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
