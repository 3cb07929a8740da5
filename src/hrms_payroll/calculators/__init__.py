"""Payroll calculation engine."""

from hrms_payroll.calculators.contributions import (
    calculate_health_contribution,
    calculate_pension_contribution,
)
from hrms_payroll.calculators.engine import PayrollCalculator, calculate_payroll
from hrms_payroll.calculators.line_builder import PayrollItemBuilder
from hrms_payroll.calculators.tax_calculator import (
    TaxBracketResolver,
    resolve_income_tax,
    validate_bracket_table,
)
from hrms_payroll.calculators.types import (
    Allowance,
    ItemCategory,
    ItemType,
    OtherDeduction,
    Overtime,
    PayrollCalculationInput,
    PayrollCalculationResult,
    PayrollItemCandidate,
    TaxBracket,
)

__all__ = [
    "Allowance",
    "ItemCategory",
    "ItemType",
    "OtherDeduction",
    "Overtime",
    "PayrollCalculationInput",
    "PayrollCalculationResult",
    "PayrollCalculator",
    "PayrollItemBuilder",
    "PayrollItemCandidate",
    "TaxBracket",
    "TaxBracketResolver",
    "calculate_health_contribution",
    "calculate_payroll",
    "calculate_pension_contribution",
    "resolve_income_tax",
    "validate_bracket_table",
]
