"""Typed errors raised by the timekeeping services.

Every error carries a machine-readable ``code``, the HTTP status the API
layer answers with, and structured ``details`` so callers can correct their
input without parsing messages::

    TimekeepingError
    +-- ValidationError        bad input shape or values
    +-- NotFoundError          unknown id
    +-- ConflictError          duplicate active sign-in, double approval
    |   +-- InvalidStateError  operation not legal in the current state
    |       +-- AlreadySignedOutError
    +-- InternalError          storage or transaction failure
"""

from __future__ import annotations

from typing import Any, Dict


class TimekeepingError(Exception):
    code = "TIMEKEEPING_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


class ValidationError(TimekeepingError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(TimekeepingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(TimekeepingError):
    code = "CONFLICT"
    status_code = 409


class InvalidStateError(ConflictError):
    code = "INVALID_STATE"

    def __init__(self, message: str, *, current: str | None = None, **details: Any) -> None:
        super().__init__(message, current=current, **details)
        self.current = current


class AlreadySignedOutError(InvalidStateError):
    code = "ALREADY_SIGNED_OUT"


class InternalError(TimekeepingError):
    code = "INTERNAL_ERROR"
    status_code = 500
