"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ItemType(str, Enum):
    """Payroll item types."""

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"


class ItemCategory(str, Enum):
    """Payroll item categories."""

    BASIC_SALARY = "BASIC_SALARY"
    ALLOWANCE = "ALLOWANCE"
    OVERTIME = "OVERTIME"
    TAX = "TAX"
    INSURANCE = "INSURANCE"
    PENSION = "PENSION"
    OTHER = "OTHER"


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # Percentage, e.g. 25 for 25%
    fixed_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class Allowance:
    """Named allowance added to gross pay."""

    name: str
    amount: Decimal


@dataclass(frozen=True)
class Overtime:
    """Overtime worked in the period."""

    hours: Decimal
    rate: Decimal

    @property
    def amount(self) -> Decimal:
        return self.hours * self.rate


@dataclass(frozen=True)
class OtherDeduction:
    """Non-statutory deduction (loan repayment, garnishment, etc.)."""

    name: str
    amount: Decimal
    category: str = "OTHER"


@dataclass
class PayrollCalculationInput:
    """Inputs for calculating one employee's pay for one period."""

    employee_id: UUID | None
    payroll_period_id: UUID | None
    basic_salary: Decimal
    tenant_id: UUID | None
    allowances: list[Allowance] = field(default_factory=list)
    overtime: Overtime | None = None
    deductions: list[OtherDeduction] = field(default_factory=list)


@dataclass
class PayrollItemCandidate:
    """A payroll item before persistence. Amounts are always positive."""

    item_type: ItemType
    category: str
    name: str
    amount: Decimal
    is_statutory: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.item_type.value,
            "category": self.category,
            "name": self.name,
            "amount": str(self.amount),
            "is_statutory": self.is_statutory,
        }


@dataclass
class PayrollCalculationResult:
    """Earnings/deductions breakdown for one employee."""

    basic_salary: Decimal
    allowances: Decimal
    overtime: Decimal
    gross_salary: Decimal
    income_tax: Decimal
    health_contribution: Decimal
    pension_contribution: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    items: list[PayrollItemCandidate] = field(default_factory=list)

    @property
    def taxable_income(self) -> Decimal:
        """Gross less the pre-tax pension contribution."""
        return self.gross_salary - self.pension_contribution

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation (amounts as strings)."""
        return {
            "basic_salary": str(self.basic_salary),
            "allowances": str(self.allowances),
            "overtime": str(self.overtime),
            "gross_salary": str(self.gross_salary),
            "income_tax": str(self.income_tax),
            "health_contribution": str(self.health_contribution),
            "pension_contribution": str(self.pension_contribution),
            "other_deductions": str(self.other_deductions),
            "total_deductions": str(self.total_deductions),
            "net_salary": str(self.net_salary),
            "items": [item.to_dict() for item in self.items],
        }
