"""Statutory contribution calculators (health and pension)."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from hrms_payroll.calculators.line_builder import PayrollItemBuilder

if TYPE_CHECKING:
    from hrms_payroll.config import StatutoryConfig


def calculate_health_contribution(gross_salary: Decimal, config: StatutoryConfig) -> Decimal:
    """Flat fee of the first band whose inclusive upper bound covers gross.

    Salaries above the top band pay the ceiling fee.
    """
    for band in config.health_bands:
        if gross_salary <= band.upper:
            return band.fee
    return config.health_ceiling_fee


def calculate_pension_contribution(gross_salary: Decimal, config: StatutoryConfig) -> Decimal:
    """Rate applied to pensionable pay, capped; rounded to cents."""
    pension = config.pension
    pensionable = min(max(gross_salary, Decimal("0")), pension.pensionable_cap)
    contribution = min(pensionable * pension.rate, pension.contribution_cap)
    return PayrollItemBuilder.round_to_cents(contribution)
