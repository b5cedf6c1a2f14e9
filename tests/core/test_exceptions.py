"""Tests for oddsvault.core.exceptions module."""

from __future__ import annotations

import pytest

from oddsvault.core.exceptions import (
    ArithmeticHazard,
    CapacityExceeded,
    ConfigException,
    InvalidStateError,
    NotFoundError,
    OddsVaultException,
    ReentrancyError,
    TransferFailed,
    UnauthorizedError,
    ValidationException,
)


# ============================================================================
# OddsVaultException Tests
# ============================================================================

class TestOddsVaultException:
    """Tests for base OddsVaultException."""

    def test_create_with_message(self):
        """Create exception with just message."""
        exc = OddsVaultException("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.message == "Something went wrong"
        assert exc.details == {}

    def test_create_with_details(self):
        """Create exception with message and details."""
        exc = OddsVaultException("Error occurred", details={"event_id": 3})
        assert exc.details == {"event_id": 3}

    def test_to_dict_uses_class_name(self):
        """to_dict should report the concrete class name."""
        d = ArithmeticHazard("Division by zero", details={"winning_total": 0}).to_dict()
        assert d == {
            "error": "ArithmeticHazard",
            "message": "Division by zero",
            "details": {"winning_total": 0},
        }

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationException("bad"),
            InvalidStateError("bad"),
            UnauthorizedError("bad"),
            CapacityExceeded("bad", limit=1, attempted=2),
            ArithmeticHazard("bad"),
            TransferFailed("bad"),
            ReentrancyError("bad"),
            NotFoundError("Event", "1"),
            ConfigException("bad"),
        ],
    )
    def test_all_inherit_from_base(self, exc):
        """Every engine error is catchable as OddsVaultException."""
        assert isinstance(exc, OddsVaultException)


# ============================================================================
# Subclass Detail Tests
# ============================================================================

class TestValidationException:
    """Tests for ValidationException."""

    def test_field_and_value_in_details(self):
        """Field and stringified value are recorded."""
        exc = ValidationException("Invalid outcome index", field="outcome", value=7)
        assert exc.field == "outcome"
        assert exc.value == 7
        assert exc.details == {"field": "outcome", "value": "7"}

    def test_no_field(self):
        """Details stay empty without field or value."""
        exc = ValidationException("Bad input")
        assert exc.details == {}


class TestInvalidStateError:
    """Tests for InvalidStateError."""

    def test_current_state(self):
        exc = InvalidStateError("Event is closed", current_state="closed")
        assert exc.current_state == "closed"
        assert exc.details["current_state"] == "closed"


class TestUnauthorizedError:
    """Tests for UnauthorizedError."""

    def test_caller_and_role(self):
        exc = UnauthorizedError("Only the creator", caller="mallory", required_role="creator")
        assert exc.details == {"caller": "mallory", "required_role": "creator"}


class TestCapacityExceeded:
    """Tests for CapacityExceeded."""

    def test_limit_and_attempted(self):
        exc = CapacityExceeded("Over ceiling", limit=1000, attempted=1001)
        assert exc.limit == 1000
        assert exc.attempted == 1001
        assert exc.details == {"limit": 1000, "attempted": 1001}


class TestTransferFailed:
    """Tests for TransferFailed."""

    def test_details(self):
        exc = TransferFailed("refused", sender="event:1", recipient="alice", amount=0)
        assert exc.details == {"sender": "event:1", "recipient": "alice", "amount": 0}


class TestNotFoundError:
    """Tests for NotFoundError."""

    def test_message_format(self):
        exc = NotFoundError("Event", "42")
        assert exc.message == "Event not found: 42"
        assert exc.resource_type == "Event"
        assert exc.resource_id == "42"


class TestConfigException:
    """Tests for ConfigException."""

    def test_invalid_fields(self):
        exc = ConfigException("Invalid", invalid_fields=["fee_bps", "forfeit_split"])
        assert exc.invalid_fields == ["fee_bps", "forfeit_split"]
        assert exc.details["invalid_fields"] == ["fee_bps", "forfeit_split"]

    def test_default_empty(self):
        exc = ConfigException("Invalid")
        assert exc.invalid_fields == []
        assert exc.details == {}
