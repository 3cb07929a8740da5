"""Payroll item builder."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from hrms_payroll.calculators.types import ItemCategory, ItemType, PayrollItemCandidate


class PayrollItemBuilder:
    """Builds payroll items.

    Conventions:
    - Amounts are stored positive; the item type carries the direction.
    - EARNING items sum to gross salary.
    - DEDUCTION items sum to total deductions.
    - Statutory items are income tax, health and pension only.

    Rounding:
    - Money to 2 decimals (cents) at item creation
    - Income tax is already whole units when it reaches the builder
    """

    OUTPUT_PRECISION = Decimal("0.01")
    WHOLE_UNIT = Decimal("1")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(PayrollItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_to_unit(amount: Decimal) -> Decimal:
        """Round amount to the nearest whole currency unit (half up)."""
        return amount.quantize(PayrollItemBuilder.WHOLE_UNIT, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_item(
        category: ItemCategory | str,
        name: str,
        amount: Decimal,
    ) -> PayrollItemCandidate:
        """Create an earning item."""
        return PayrollItemCandidate(
            item_type=ItemType.EARNING,
            category=_category_value(category),
            name=name,
            amount=PayrollItemBuilder.round_to_cents(amount),
            is_statutory=False,
        )

    @staticmethod
    def create_deduction_item(
        category: ItemCategory | str,
        name: str,
        amount: Decimal,
        is_statutory: bool = False,
    ) -> PayrollItemCandidate:
        """Create a deduction item (amount stored positive)."""
        return PayrollItemCandidate(
            item_type=ItemType.DEDUCTION,
            category=_category_value(category),
            name=name,
            amount=PayrollItemBuilder.round_to_cents(abs(amount)),
            is_statutory=is_statutory,
        )

    @staticmethod
    def calculate_gross_from_items(items: list[PayrollItemCandidate]) -> Decimal:
        """GROSS = Σ(EARNING)."""
        gross = Decimal("0")
        for item in items:
            if item.item_type == ItemType.EARNING:
                gross += item.amount
        return PayrollItemBuilder.round_to_cents(gross)

    @staticmethod
    def calculate_deductions_from_items(items: list[PayrollItemCandidate]) -> Decimal:
        """TOTAL DEDUCTIONS = Σ(DEDUCTION)."""
        total = Decimal("0")
        for item in items:
            if item.item_type == ItemType.DEDUCTION:
                total += item.amount
        return PayrollItemBuilder.round_to_cents(total)

    @staticmethod
    def calculate_net_from_items(items: list[PayrollItemCandidate]) -> Decimal:
        """NET = Σ(EARNING) − Σ(DEDUCTION)."""
        return PayrollItemBuilder.calculate_gross_from_items(
            items
        ) - PayrollItemBuilder.calculate_deductions_from_items(items)

    @staticmethod
    def validate_items(items: list[PayrollItemCandidate]) -> list[str]:
        """Validate item amounts and statutory flags.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []
        statutory_categories = {
            ItemCategory.TAX.value,
            ItemCategory.INSURANCE.value,
            ItemCategory.PENSION.value,
        }

        for i, item in enumerate(items):
            if item.amount < 0:
                errors.append(
                    f"Item {i} ({item.category}) has negative amount {item.amount}"
                )
            if item.is_statutory and item.item_type != ItemType.DEDUCTION:
                errors.append(f"Item {i} ({item.category}) is statutory but not a deduction")
            if item.is_statutory and item.category not in statutory_categories:
                errors.append(f"Item {i} ({item.category}) is not a statutory category")

        return errors

    @staticmethod
    def sum_by_category(items: list[PayrollItemCandidate]) -> dict[str, Decimal]:
        """Sum item amounts by category."""
        totals: dict[str, Decimal] = {}
        for item in items:
            totals[item.category] = totals.get(item.category, Decimal("0")) + item.amount
        return totals


def _category_value(category: ItemCategory | str) -> str:
    return category.value if isinstance(category, ItemCategory) else category
