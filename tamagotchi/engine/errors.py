from __future__ import annotations

from typing import Optional


class PetError(Exception):
    """Base class for every failure surfaced to callers of the pet services."""

    status_code = 400
    retryable = False
    default_message = "Pet operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.retryable:
            body["retryable"] = True
        return body


class PetNotFoundError(PetError):
    status_code = 404
    default_message = "No pet found"


class PetDeadError(PetError):
    default_message = "Pet is dead"


class InvalidActionError(PetError):
    default_message = "Invalid action type"

    def __init__(self, action: object = None) -> None:
        super().__init__(
            f"Invalid action type: {action}" if action is not None else None
        )
        self.action = action


class DuplicatePetError(PetError):
    status_code = 409
    default_message = "User already has a pet"


class ValidationError(PetError):
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, errors: Optional[dict] = None) -> None:
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class ConcurrentUpdateError(PetError):
    status_code = 503
    retryable = True
    default_message = "Pet was modified concurrently, please retry"


class DevModeDisabledError(PetError):
    status_code = 403
    default_message = "Developer mode is disabled"
