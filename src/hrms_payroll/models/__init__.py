"""ORM models for the payroll core."""

from hrms_payroll.models.base import Base, TimestampMixin
from hrms_payroll.models.company import Tenant
from hrms_payroll.models.employee import Employee, EmployeeStatus
from hrms_payroll.models.payroll import (
    PayStub,
    Payroll,
    PayrollItem,
    PayrollPeriod,
    TaxBracket,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "Employee",
    "EmployeeStatus",
    "PayStub",
    "Payroll",
    "PayrollItem",
    "PayrollPeriod",
    "TaxBracket",
]
