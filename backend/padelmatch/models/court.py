from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Court(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    court_type: str = Field(default="indoor")  # "indoor" | "outdoor"
    is_active: bool = Field(default=True)
    # Weekdays the court operates (0=Monday, 6=Sunday)
    days_available: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    # Ordered "HH:MM" start times the court offers
    time_slots: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    capacity: int = Field(default=4)
    description: Optional[str] = None

    def is_open_on(self, weekday: int) -> bool:
        return self.is_active and weekday in (self.days_available or [])

    def offers_slot(self, start: str) -> bool:
        return start in (self.time_slots or [])
