"""Payroll period, tax bracket, payroll, item and pay stub models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from hrms_payroll.models.employee import Employee


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Named pay period (e.g. "March 2024")."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="payroll_period_tenant_name_unique"),
        CheckConstraint("end_date >= start_date", name="payroll_period_dates_check"),
    )


# ===== Tax configuration =====


class TaxBracket(Base, TimestampMixin):
    """Tenant-scoped, versioned progressive tax bracket."""

    __tablename__ = "tax_bracket"

    tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    fixed_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("rate >= 0 AND rate <= 100", name="tax_bracket_rate_check"),
        CheckConstraint("min_amount >= 0", name="tax_bracket_min_check"),
    )


# ===== Payroll records =====


class Payroll(Base, TimestampMixin):
    """One employee's computed pay for one period. Never recomputed in place."""

    __tablename__ = "payroll"

    payroll_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "payroll_period_id",
            "tenant_id",
            name="payroll_employee_period_tenant_unique",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'PAID')",
            name="payroll_status_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="payrolls", lazy="raise")
    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollItem.sequence",
        lazy="selectin",
    )
    pay_stub: Mapped[PayStub | None] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class PayrollItem(Base, TimestampMixin):
    """Ledger line of a payroll. Amount is positive; item_type carries direction."""

    __tablename__ = "payroll_item"

    payroll_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll.payroll_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    is_statutory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("item_type IN ('EARNING', 'DEDUCTION')", name="payroll_item_type_check"),
        CheckConstraint("amount >= 0", name="payroll_item_amount_check"),
    )

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="items")


class PayStub(Base, TimestampMixin):
    """Numbered document issued for a payroll."""

    __tablename__ = "pay_stub"

    pay_stub_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll.payroll_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stub_number: Mapped[str] = mapped_column(String(14), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="GENERATED")
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "stub_number", name="pay_stub_tenant_number_unique"),
        CheckConstraint("status IN ('GENERATED', 'VIEWED')", name="pay_stub_status_check"),
    )

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="pay_stub")
