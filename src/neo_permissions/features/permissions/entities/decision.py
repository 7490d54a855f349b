"""Permission decision value object."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ....core.exceptions import PermissionResolutionError


class DecisionReason(str, Enum):
    """Why a decision came out the way it did."""

    SUPERADMIN = "superadmin"
    ROLE_GRANT = "role_grant"
    DIRECT_GRANT = "direct_grant"
    CACHED = "cached"
    NO_GRANT = "no_grant"
    NOT_A_MEMBER = "not_a_member"
    ERROR = "error"


@dataclass(frozen=True)
class PermissionDecision:
    """Outcome of one permission evaluation.

    ``allowed`` is never True when ``error`` is set.
    """

    allowed: bool
    reason: DecisionReason
    error: Optional[PermissionResolutionError] = None
    cached: bool = False

    def __post_init__(self):
        if self.allowed and self.error is not None:
            raise ValueError("A decision carrying an error cannot allow access")

    @property
    def is_determined(self) -> bool:
        """False when the engine could not reach an answer."""
        return self.error is None

    @classmethod
    def denied_by(cls, error: PermissionResolutionError) -> "PermissionDecision":
        return cls(allowed=False, reason=DecisionReason.ERROR, error=error)
