"""Payroll and pay stub state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hrms_payroll.errors import InvalidTransitionError


class PayrollStatus(str, Enum):
    """Payroll status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"


class PayStubStatus(str, Enum):
    """Pay stub status values."""

    GENERATED = "GENERATED"
    VIEWED = "VIEWED"


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class PayrollStateMachine(_StateMachine):
    """State machine for payroll record status.

    Allowed transitions:
    - PENDING → APPROVED
    - APPROVED → PAID
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.PENDING: [PayrollStatus.APPROVED],
        PayrollStatus.APPROVED: [PayrollStatus.PAID],
        PayrollStatus.PAID: [],  # Terminal state
    }


class PayStubStateMachine(_StateMachine):
    """State machine for pay stub status: GENERATED → VIEWED."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayStubStatus.GENERATED: [PayStubStatus.VIEWED],
        PayStubStatus.VIEWED: [],
    }
