# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Oddsvault Contributors

"""Custom exception hierarchy for oddsvault.

Every rejection in the settlement engine is raised synchronously from one of
these types. A raised exception always means the whole operation was rolled
back; nothing is retried automatically.
"""

from __future__ import annotations

from typing import Any


class OddsVaultException(Exception):  # noqa: N818
    """Base exception for all oddsvault errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(OddsVaultException):
    """Exception for malformed input.

    Raised when:
    - An outcome index is out of range
    - An amount is zero or negative
    - Outcome labels are missing, blank or duplicated
    - An event schedule is inconsistent
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidStateError(OddsVaultException):
    """Exception for an operation attempted in the wrong lifecycle state.

    Raised when:
    - Betting after the betting window closed
    - Submitting an outcome twice
    - Claiming while a dispute is open, or claiming twice
    """

    def __init__(self, message: str, current_state: str | None = None):
        details = {}
        if current_state:
            details["current_state"] = current_state
        super().__init__(message, details)
        self.current_state = current_state


class UnauthorizedError(OddsVaultException):
    """Exception for a caller lacking the role an operation requires."""

    def __init__(self, message: str, caller: str | None = None, required_role: str | None = None):
        details = {}
        if caller:
            details["caller"] = caller
        if required_role:
            details["required_role"] = required_role
        super().__init__(message, details)
        self.caller = caller
        self.required_role = required_role


class CapacityExceeded(OddsVaultException):
    """Exception for stakes that would exceed the event ceiling or per-user cap."""

    def __init__(self, message: str, limit: int, attempted: int):
        super().__init__(message, {"limit": limit, "attempted": attempted})
        self.limit = limit
        self.attempted = attempted


class ArithmeticHazard(OddsVaultException):
    """Exception for arithmetic that would divide by zero or leave its integer range."""

    pass


class TransferFailed(OddsVaultException):
    """Exception for a value transfer the token collaborator refused."""

    def __init__(self, message: str, sender: str | None = None, recipient: str | None = None, amount: int | None = None):
        details: dict[str, Any] = {}
        if sender:
            details["sender"] = sender
        if recipient:
            details["recipient"] = recipient
        if amount is not None:
            details["amount"] = amount
        super().__init__(message, details)
        self.sender = sender
        self.recipient = recipient
        self.amount = amount


class ReentrancyError(OddsVaultException):
    """Exception for a call into an entity that already has an operation in flight."""

    pass


class NotFoundError(OddsVaultException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConfigException(OddsVaultException):
    """Exception for configuration errors.

    Raised when:
    - A basis-point fraction is outside 0..10000
    - A split does not sum to exactly 10000
    - Bounds are inverted
    """

    def __init__(self, message: str, invalid_fields: list[str] | None = None):
        details = {}
        if invalid_fields:
            details["invalid_fields"] = invalid_fields
        super().__init__(message, details)
        self.invalid_fields = invalid_fields or []
