"""
Checker Result Models

Defines the tri-state result every checker run produces.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


# Default codes used when a result carries no specific error code
HEALTHY_CODE = "Healthy"
UNKNOWN_CODE = "Unknown"


class Status(Enum):
    """Health status of a checker run."""
    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ErrorDetail:
    """
    Error information attached to a non-healthy result.

    Attributes:
        code: Machine readable error code (e.g. "CompleteNetworkFailure")
        message: Human readable explanation
    """
    code: str
    message: str


@dataclass(frozen=True)
class Result:
    """
    Result of running a health check.

    A healthy result never carries a detail; unhealthy and unknown results
    always do. Use the ``healthy``/``unhealthy``/``unknown`` helpers rather
    than building instances by hand.

    Attributes:
        status: Tri-state verdict
        detail: Error detail (None when healthy)
    """
    status: Status
    detail: Optional[ErrorDetail] = None

    def __post_init__(self):
        if self.status == Status.HEALTHY and self.detail is not None:
            raise ValueError("healthy result must not carry an error detail")
        if self.status != Status.HEALTHY and self.detail is None:
            raise ValueError(f"{self.status.value} result requires an error detail")

    @property
    def is_healthy(self) -> bool:
        return self.status == Status.HEALTHY

    @property
    def code(self) -> str:
        """Error code, or the status-specific default."""
        if self.detail:
            return self.detail.code
        return HEALTHY_CODE

    @property
    def message(self) -> str:
        return self.detail.message if self.detail else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {"status": self.status.value}
        if self.detail:
            data["errorDetail"] = {
                "code": self.detail.code,
                "message": self.detail.message,
            }
        return data


def healthy() -> Result:
    """Build a healthy result."""
    return Result(status=Status.HEALTHY)


def unhealthy(code: str, message: str) -> Result:
    """Build an unhealthy result with the given error code."""
    return Result(status=Status.UNHEALTHY, detail=ErrorDetail(code=code, message=message))


def unknown(message: str, code: str = UNKNOWN_CODE) -> Result:
    """Build an inconclusive result."""
    return Result(status=Status.UNKNOWN, detail=ErrorDetail(code=code, message=message))
