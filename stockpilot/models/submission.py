"""Submission result data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class SubmissionState(str, Enum):
    """States of one submission intent."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class SubmissionOutcome(str, Enum):
    """What happened to a submit attempt."""

    SUBMITTED = "submitted"      # request accepted by the backend
    INVALID = "invalid"          # blocked by form validation, nothing sent
    IN_FLIGHT = "in_flight"      # a request for this intent is outstanding
    DUPLICATE = "duplicate"      # this intent was already accepted
    FAILED = "failed"            # request sent and rejected, or never answered


# Failures a retry can clear without any change to the request.
TRANSIENT_ERRORS = ("NetworkError", "RateLimitError")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubmissionResult:
    """Represents the result of one submit attempt."""

    outcome: SubmissionOutcome
    token: Optional[str] = None
    message: str = ""
    error_type: Optional[str] = None
    status_code: Optional[int] = None
    resource: Optional[Dict[str, Any]] = None
    validation_errors: Optional[Any] = None
    dispatched: bool = False
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def success(self) -> bool:
        return self.outcome == SubmissionOutcome.SUBMITTED

    @property
    def retryable(self) -> bool:
        """
        A transient failure worth replaying automatically under the same token.

        Conflicts, rejected credentials and missing entities need a person
        to look at them first.
        """
        if self.outcome != SubmissionOutcome.FAILED:
            return False
        if self.error_type in TRANSIENT_ERRORS:
            return True
        return self.error_type == "StockPilotAPIError" and (self.status_code or 0) >= 500

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        errors = self.validation_errors
        return {
            "outcome": self.outcome.value,
            "success": self.success,
            "token": self.token,
            "message": self.message,
            "error_type": self.error_type,
            "status_code": self.status_code,
            "resource": self.resource,
            "validation_errors": errors.to_dict() if errors is not None else None,
            "dispatched": self.dispatched,
            "timestamp": self.timestamp.isoformat(),
        }
