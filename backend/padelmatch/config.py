"""
Process-wide engine settings.

Values come from the environment (a local .env is loaded first) and are
read once; every engine entry point receives the same frozen instance.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# Club opening slots (start times, 90-minute turns)
DEFAULT_CLUB_SLOTS: Tuple[str, ...] = (
    "07:00",
    "08:30",
    "10:00",
    "11:30",
    "13:00",
    "15:00",
    "16:30",
    "18:00",
    "19:30",
    "21:00",
)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.lower() in ("true", "1", "yes")


def _env_slots(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    slots = tuple(s.strip() for s in raw.split(",") if s.strip())
    return slots or DEFAULT_CLUB_SLOTS


@dataclass(frozen=True)
class EngineSettings:
    # Level matching
    default_tolerance: float = 1.0
    extended_tolerance: float = 1.5

    # Match sizing
    min_players_to_open: int = 1
    players_to_close: int = 4
    # Remaining players needed for a match to be worth repairing.
    # Defaults to min_players_to_open; see DESIGN.md (open question).
    recovery_min_players: int = 1

    # Timing
    confirmation_minutes: int = 60
    replacement_response_minutes: int = 60
    last_minute_hours: float = 2
    max_waiting_hours: float = 48

    # Policy toggles
    max_replacement_attempts: int = 3
    balance_pairs: bool = True
    notify_cancellation: bool = True

    club_time_slots: Tuple[str, ...] = field(default=DEFAULT_CLUB_SLOTS)
    country_code: str = "54"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        confirmation_minutes = _env_int("PADEL_CONFIRMATION_MINUTES", 60)
        min_to_open = _env_int("PADEL_MIN_PLAYERS_TO_OPEN", 1)
        return cls(
            default_tolerance=_env_float("PADEL_DEFAULT_TOLERANCE", 1.0),
            extended_tolerance=_env_float("PADEL_EXTENDED_TOLERANCE", 1.5),
            min_players_to_open=min_to_open,
            players_to_close=_env_int("PADEL_PLAYERS_TO_CLOSE", 4),
            recovery_min_players=_env_int("PADEL_RECOVERY_MIN_PLAYERS", min_to_open),
            confirmation_minutes=confirmation_minutes,
            replacement_response_minutes=_env_int(
                "PADEL_REPLACEMENT_RESPONSE_MINUTES", confirmation_minutes
            ),
            last_minute_hours=_env_float("PADEL_LAST_MINUTE_HOURS", 2),
            max_waiting_hours=_env_float("PADEL_MAX_WAITING_HOURS", 48),
            max_replacement_attempts=_env_int("PADEL_MAX_REPLACEMENT_ATTEMPTS", 3),
            balance_pairs=_env_bool("PADEL_BALANCE_PAIRS", True),
            notify_cancellation=_env_bool("PADEL_NOTIFY_CANCELLATION", True),
            club_time_slots=_env_slots("PADEL_CLUB_SLOTS"),
            country_code=os.getenv("PADEL_COUNTRY_CODE", "54"),
        )

    @property
    def tolerance_ladder(self) -> List[float]:
        """Tolerances in the order callers should try them."""
        return [self.default_tolerance, self.extended_tolerance]


_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get or create the singleton EngineSettings instance."""
    global _settings
    if _settings is None:
        _settings = EngineSettings.from_env()
    return _settings
