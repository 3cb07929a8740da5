"""Payroll core exceptions.

Every error carries a machine-readable ``code`` so an outer surface can map
it to a response without inspecting message text:

    NOT_FOUND         - period, employee, payroll or pay stub missing for tenant
    CONFLICT          - payroll already exists, duplicate period name
    INVALID_STATE     - no salary configured, bad status transition,
                        stub sequence exhausted
    VALIDATION_ERROR  - malformed input
    INTERNAL_ERROR    - persistence failure
"""

from __future__ import annotations

from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll core errors."""

    code = "INTERNAL_ERROR"


# ===== Not found =====


class NotFoundError(PayrollError):
    """Raised when a tenant-scoped entity does not exist."""

    code = "NOT_FOUND"
    entity = "Entity"

    def __init__(self, entity_id: UUID | str | None, tenant_id: UUID | str | None = None):
        self.entity_id = entity_id
        self.tenant_id = tenant_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class PayrollPeriodNotFoundError(NotFoundError):
    entity = "Payroll period"


class EmployeeNotFoundError(NotFoundError):
    entity = "Employee"


class PayrollNotFoundError(NotFoundError):
    entity = "Payroll"


class PayStubNotFoundError(NotFoundError):
    entity = "Pay stub"


# ===== Conflict =====


class ConflictError(PayrollError):
    """Raised when an operation would violate a uniqueness rule."""

    code = "CONFLICT"


class PayrollExistsError(ConflictError):
    """Raised when a payroll already exists for (employee, period, tenant)."""

    reason = "Payroll already exists"

    def __init__(self, employee_id: UUID, payroll_period_id: UUID):
        self.employee_id = employee_id
        self.payroll_period_id = payroll_period_id
        super().__init__(
            f"Payroll already exists for employee {employee_id} "
            f"in period {payroll_period_id}"
        )


class PeriodNameConflictError(ConflictError):
    """Raised when a tenant already has a payroll period with the same name."""

    def __init__(self, name: str, tenant_id: UUID):
        self.name = name
        self.tenant_id = tenant_id
        super().__init__(f"Payroll period with name '{name}' already exists")


# ===== Invalid state =====


class InvalidStateError(PayrollError):
    """Raised when an entity is not in a state that permits the operation."""

    code = "INVALID_STATE"


class NoSalaryConfiguredError(InvalidStateError):
    """Raised when an employee has no positive salary configured."""

    reason = "No salary configured"

    def __init__(self, employee_id: UUID):
        self.employee_id = employee_id
        super().__init__(f"No salary configured for employee {employee_id}")


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StubSequenceExhaustedError(InvalidStateError):
    """Raised when a tenant has used every stub number for a month."""

    def __init__(self, tenant_id: UUID, prefix: str):
        self.tenant_id = tenant_id
        self.prefix = prefix
        super().__init__(f"Pay stub sequence exhausted for prefix {prefix}")


# ===== Validation / persistence =====


class PayrollValidationError(PayrollError):
    """Raised when input fails validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class PayrollPersistenceError(PayrollError):
    """Raised when writing payroll records fails."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, employee_id: UUID | None = None):
        self.employee_id = employee_id
        super().__init__(message)
