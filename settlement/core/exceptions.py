"""
Domain errors raised by the settlement engine.

Every error carries the entity it concerns and the state that entity was in,
so the caller can decide between a retry and a user-facing message. The API
layer maps them to JSON responses in settlement.core.errors.
"""
from typing import Any, Optional


class SettlementError(Exception):
    """Base class for recoverable engine errors."""

    code = "SettlementError"
    http_status = 400

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        current_state: Optional[str] = None,
    ):
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "detail": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "current_state": self.current_state,
        }


class NotFound(SettlementError):
    code = "NotFound"
    http_status = 404


class NotAuthorized(SettlementError):
    code = "NotAuthorized"
    http_status = 403


class AlreadyDecided(SettlementError):
    code = "AlreadyDecided"
    http_status = 409


class RequestAlreadyClosed(SettlementError):
    code = "RequestAlreadyClosed"
    http_status = 409


class TooLateToCancel(SettlementError):
    code = "TooLateToCancel"
    http_status = 409


class InsufficientBalance(SettlementError):
    code = "InsufficientBalance"
    http_status = 400


class OverlappingDelegation(SettlementError):
    code = "OverlappingDelegation"
    http_status = 409


class CycleDetected(SettlementError):
    """Reporting lines loop back on themselves; the directory needs fixing."""

    code = "CycleDetected"
    http_status = 422

    def __init__(self, path, entity_id=None):
        self.path = list(path)
        super().__init__(
            "Reporting hierarchy cycle detected: " + " -> ".join(str(p) for p in self.path),
            entity_type="employee",
            entity_id=entity_id,
        )


class MonthNotEditable(SettlementError):
    code = "MonthNotEditable"
    http_status = 409


class MissingReason(SettlementError):
    code = "MissingReason"
    http_status = 400


class InvalidTransition(SettlementError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    code = "InvalidTransition"
    http_status = 409

    def __init__(self, from_status: str, to_status: str, entity_type=None, entity_id=None, reason=None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, entity_type=entity_type, entity_id=entity_id, current_state=from_status)


class DuplicateEntry(SettlementError):
    code = "DuplicateEntry"
    http_status = 409


class InvalidSettings(SettlementError):
    code = "InvalidSettings"
    http_status = 422


class ConcurrentModification(SettlementError):
    code = "ConcurrentModification"
    http_status = 409


class AuditWriteError(SettlementError):
    code = "AuditWriteError"
    http_status = 500
