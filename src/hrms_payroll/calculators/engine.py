"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.contributions import (
    calculate_health_contribution,
    calculate_pension_contribution,
)
from hrms_payroll.calculators.line_builder import PayrollItemBuilder
from hrms_payroll.calculators.tax_calculator import TaxBracketResolver, resolve_income_tax
from hrms_payroll.calculators.types import (
    ItemCategory,
    PayrollCalculationInput,
    PayrollCalculationResult,
    PayrollItemCandidate,
    TaxBracket,
)

if TYPE_CHECKING:
    from hrms_payroll.config import StatutoryConfig

ZERO = Decimal("0")


def calculate_payroll(
    calc_input: PayrollCalculationInput,
    brackets: Sequence[TaxBracket] | None,
    config: StatutoryConfig,
) -> PayrollCalculationResult:
    """Calculate one employee's pay for one period.

    Pipeline (stable order):
    1) Gross = basic + allowances + overtime
    2) Pension on gross (pre-tax)
    3) Income tax on gross less pension
    4) Health on gross
    5) Other deductions as supplied
    6) Net = gross - total deductions

    Pure: never raises for zero or negative salary, the caller decides
    whether such an employee is payable.
    """
    round_cents = PayrollItemBuilder.round_to_cents

    basic = round_cents(calc_input.basic_salary)
    allowance_amounts = [(a.name, round_cents(a.amount)) for a in calc_input.allowances]
    allowances_total = sum((amount for _, amount in allowance_amounts), ZERO)
    overtime = round_cents(calc_input.overtime.amount) if calc_input.overtime else ZERO
    gross = basic + allowances_total + overtime

    pension = calculate_pension_contribution(gross, config)
    taxable = gross - pension
    income_tax = resolve_income_tax(taxable, brackets, config)
    health = calculate_health_contribution(gross, config)

    rounded = [(d.name, d.category, round_cents(d.amount)) for d in calc_input.deductions]
    other = [row for row in rounded if row[2] > 0]
    other_total = sum((amount for _, _, amount in other), ZERO)

    total_deductions = income_tax + health + pension + other_total
    net = gross - total_deductions

    items: list[PayrollItemCandidate] = [
        PayrollItemBuilder.create_earning_item(ItemCategory.BASIC_SALARY, "Basic Salary", basic)
    ]
    for name, amount in allowance_amounts:
        items.append(PayrollItemBuilder.create_earning_item(ItemCategory.ALLOWANCE, name, amount))
    if overtime > 0:
        items.append(
            PayrollItemBuilder.create_earning_item(ItemCategory.OVERTIME, "Overtime", overtime)
        )
    if income_tax > 0:
        items.append(
            PayrollItemBuilder.create_deduction_item(
                ItemCategory.TAX, "Income Tax", income_tax, is_statutory=True
            )
        )
    if health > 0:
        items.append(
            PayrollItemBuilder.create_deduction_item(
                ItemCategory.INSURANCE, "Health Insurance", health, is_statutory=True
            )
        )
    if pension > 0:
        items.append(
            PayrollItemBuilder.create_deduction_item(
                ItemCategory.PENSION, "Pension Contribution", pension, is_statutory=True
            )
        )
    for name, category, amount in other:
        items.append(PayrollItemBuilder.create_deduction_item(category, name, amount))

    return PayrollCalculationResult(
        basic_salary=basic,
        allowances=allowances_total,
        overtime=overtime,
        gross_salary=gross,
        income_tax=income_tax,
        health_contribution=health,
        pension_contribution=pension,
        other_deductions=other_total,
        total_deductions=total_deductions,
        net_salary=net,
        items=items,
    )


class PayrollCalculator:
    """Loads the tenant's tax table and runs ``calculate_payroll``."""

    def __init__(self, session: AsyncSession, config: StatutoryConfig | None = None):
        if config is None:
            from hrms_payroll.config import get_statutory_config

            config = get_statutory_config()
        self.session = session
        self.config = config
        self.tax_resolver = TaxBracketResolver(session, config)

    async def calculate(
        self,
        calc_input: PayrollCalculationInput,
        as_of: date | None = None,
    ) -> PayrollCalculationResult:
        """Calculate pay with the bracket table in force on ``as_of`` (default today)."""
        brackets: list[TaxBracket] = []
        if calc_input.tenant_id is not None:
            brackets = await self.tax_resolver.load_brackets(calc_input.tenant_id, as_of)
        return calculate_payroll(calc_input, brackets, self.config)
