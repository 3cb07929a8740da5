"""Progressive income tax from tenant bracket tables or the default table."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.line_builder import PayrollItemBuilder
from hrms_payroll.calculators.types import TaxBracket
from hrms_payroll.models import TaxBracket as TaxBracketRecord

if TYPE_CHECKING:
    from hrms_payroll.config import StatutoryConfig

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def walk_brackets(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Sum tax over ascending brackets, unrounded.

    For each bracket the income exceeds, the next slice of the remaining
    income (at most the bracket width) is taxed at the bracket rate and the
    bracket's fixed amount is added.
    """
    tax = ZERO
    remaining = taxable_income
    for bracket in sorted(brackets, key=lambda b: b.min_amount):
        if remaining <= 0:
            break
        if taxable_income <= bracket.min_amount:
            continue
        if bracket.max_amount is None:
            portion = remaining
        else:
            portion = min(remaining, bracket.max_amount - bracket.min_amount)
        tax += bracket.fixed_amount + portion * bracket.rate / HUNDRED
        remaining -= portion
    return tax


def resolve_income_tax(
    taxable_income: Decimal,
    brackets: Sequence[TaxBracket] | None,
    config: StatutoryConfig,
) -> Decimal:
    """Compute income tax in whole currency units.

    Args:
        taxable_income: Gross less pension contribution.
        brackets: Tenant bracket table; empty or None selects the default table.
        config: Statutory tables (default brackets and personal relief).

    Returns:
        Tax rounded half-up to the whole unit, never negative.
    """
    if taxable_income <= 0:
        return ZERO

    if brackets:
        tax = walk_brackets(taxable_income, brackets)
        if config.apply_relief_to_tenant_brackets:
            tax -= config.personal_relief
    else:
        tax = walk_brackets(taxable_income, config.default_tax_brackets)
        tax -= config.personal_relief

    return PayrollItemBuilder.round_to_unit(max(tax, ZERO))


def validate_bracket_table(brackets: Sequence[TaxBracket]) -> list[str]:
    """Check a bracket table for administrator mistakes.

    Returns list of problems (empty if the table is well formed): brackets
    out of order, gaps or overlaps between neighbours, an unbounded bracket
    that is not last, inverted bounds and rates outside 0-100.
    """
    problems: list[str] = []
    if not brackets:
        return problems

    for i, bracket in enumerate(brackets):
        if bracket.rate < 0 or bracket.rate > HUNDRED:
            problems.append(f"Bracket {i} has rate {bracket.rate} outside 0-100")
        if bracket.max_amount is not None and bracket.max_amount <= bracket.min_amount:
            problems.append(f"Bracket {i} has max {bracket.max_amount} <= min {bracket.min_amount}")
        if bracket.fixed_amount < 0:
            problems.append(f"Bracket {i} has negative fixed amount")

    for i in range(1, len(brackets)):
        prev, cur = brackets[i - 1], brackets[i]
        if cur.min_amount < prev.min_amount:
            problems.append(f"Bracket {i} is out of order")
            continue
        if prev.max_amount is None:
            problems.append(f"Bracket {i - 1} is unbounded but not last")
        elif cur.min_amount > prev.max_amount:
            problems.append(f"Gap between bracket {i - 1} and {i}")
        elif cur.min_amount < prev.max_amount:
            problems.append(f"Bracket {i - 1} overlaps bracket {i}")

    return problems


class TaxBracketResolver:
    """Loads a tenant's bracket table and computes income tax from it.

    The table in force on a date is the set of active brackets sharing the
    latest effective_date on or before that date.
    """

    def __init__(self, session: AsyncSession, config: StatutoryConfig | None = None):
        if config is None:
            from hrms_payroll.config import get_statutory_config

            config = get_statutory_config()
        self.session = session
        self.config = config
        self._bracket_cache: dict[tuple[UUID, date], list[TaxBracket]] = {}

    async def load_brackets(self, tenant_id: UUID, as_of: date | None = None) -> list[TaxBracket]:
        """Return the tenant's bracket table in force on ``as_of`` (ascending)."""
        as_of = as_of or date.today()
        cache_key = (tenant_id, as_of)
        if cache_key in self._bracket_cache:
            return self._bracket_cache[cache_key]

        latest = await self.session.execute(
            select(func.max(TaxBracketRecord.effective_date)).where(
                TaxBracketRecord.tenant_id == tenant_id,
                TaxBracketRecord.is_active.is_(True),
                TaxBracketRecord.effective_date <= as_of,
            )
        )
        effective_date = latest.scalar()

        brackets: list[TaxBracket] = []
        if effective_date is not None:
            result = await self.session.execute(
                select(TaxBracketRecord)
                .where(
                    TaxBracketRecord.tenant_id == tenant_id,
                    TaxBracketRecord.is_active.is_(True),
                    TaxBracketRecord.effective_date == effective_date,
                )
                .order_by(TaxBracketRecord.min_amount)
            )
            brackets = [
                TaxBracket(
                    min_amount=Decimal(row.min_amount),
                    max_amount=Decimal(row.max_amount) if row.max_amount is not None else None,
                    rate=Decimal(row.rate),
                    fixed_amount=Decimal(row.fixed_amount or 0),
                )
                for row in result.scalars()
            ]

        self._bracket_cache[cache_key] = brackets
        return brackets

    async def resolve_income_tax(
        self,
        taxable_income: Decimal,
        tenant_id: UUID,
        as_of: date | None = None,
    ) -> Decimal:
        """Compute income tax for a tenant (default table if it has none)."""
        brackets = await self.load_brackets(tenant_id, as_of)
        return resolve_income_tax(taxable_income, brackets, self.config)

    def clear_cache(self) -> None:
        self._bracket_cache.clear()
