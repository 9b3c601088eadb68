"""Shared error taxonomy for engine results."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from padelmatch.models.match import CancellationReason


class EngineError(str, Enum):
    not_found = "not_found"  # Unknown player, match or court
    invalid_state = "invalid_state"  # Match already canceled/completed, or wrong phase
    not_a_member = "not_a_member"  # Player answering for a match they are not in
    unrecoverable = "unrecoverable"  # Business shortfall: players, courts or candidates
    inconsistent = "inconsistent"  # Notified match with missing/malformed records


@dataclass
class EngineFailure:
    error: EngineError
    message: str
    reason: Optional[CancellationReason] = None

    def to_dict(self) -> dict:
        return {
            "error": self.error.value,
            "message": self.message,
            "reason": self.reason.value if self.reason else None,
        }
