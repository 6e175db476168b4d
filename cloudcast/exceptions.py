"""
Custom exceptions for Cloudcast.

Provides structured error handling with recovery hints and error codes.

Missing readings, zero wind and sub-threshold propagation are NOT errors —
the engine treats them as expected steady-state inputs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for Cloudcast."""
    # General errors (1xxx)
    UNKNOWN_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"

    # Data errors (2xxx)
    DATA_NOT_FOUND = "E2000"
    DATA_INVALID = "E2001"

    # Geometry errors (3xxx)
    DEGENERATE_INPUT = "E3000"

    # Alert errors (4xxx)
    ALERT_NOT_FOUND = "E4000"
    INVALID_ALERT_TRANSITION = "E4001"


@dataclass
class RecoveryHint:
    """A hint for recovering from an error."""
    action: str
    description: str
    auto_retry: bool = False
    requires_human: bool = False


class CloudcastError(Exception):
    """
    Base exception for Cloudcast.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        recovery_hint: Optional[RecoveryHint] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recovery_hint = recovery_hint
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.recovery_hint:
            result["recovery"] = {
                "action": self.recovery_hint.action,
                "description": self.recovery_hint.description,
                "auto_retry": self.recovery_hint.auto_retry,
            }
        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class DegenerateInputError(CloudcastError):
    """
    Raised when a node set cannot be partitioned.

    Zero nodes, duplicate ids, coincident coordinates, or a cell that
    collapses to zero area. Never retried: the caller must supply a
    corrected node set.
    """

    def __init__(self, message: str, node_ids: Optional[list[str]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.DEGENERATE_INPUT,
            recovery_hint=RecoveryHint(
                action="fix_node_set",
                description="Remove duplicate or coincident nodes and retry with corrected input",
                requires_human=True,
            ),
        )
        self.node_ids = node_ids or []


class DataNotFoundError(CloudcastError):
    """Error raised when requested data is not found."""

    def __init__(self, message: str, resource_type: str = "", resource_id: str = ""):
        super().__init__(
            message=message,
            error_code=ErrorCode.DATA_NOT_FOUND,
            recovery_hint=RecoveryHint(
                action="verify_id",
                description="Verify the resource ID exists",
            ),
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AlertNotFoundError(DataNotFoundError):
    """Error raised when an alert id is unknown to the history."""

    def __init__(self, alert_id: str):
        super().__init__(
            message=f"Alert not found: {alert_id}",
            resource_type="alert",
            resource_id=alert_id,
        )
        self.error_code = ErrorCode.ALERT_NOT_FOUND


class InvalidAlertTransitionError(CloudcastError):
    """Alerts move only active→acknowledged or active→dismissed."""

    def __init__(self, alert_id: str, current: str, requested: str):
        super().__init__(
            message=f"Alert {alert_id} cannot move from '{current}' to '{requested}'",
            error_code=ErrorCode.INVALID_ALERT_TRANSITION,
        )
        self.alert_id = alert_id
        self.current = current
        self.requested = requested
