"""Payroll period management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.errors import (
    PayrollPeriodNotFoundError,
    PayrollPersistenceError,
    PayrollValidationError,
    PeriodNameConflictError,
)
from hrms_payroll.models import PayStub, Payroll, PayrollPeriod
from hrms_payroll.services.payroll_processor import delete_payroll_rows

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class PeriodSummary:
    """A period with the number of payrolls and pay stubs issued for it."""

    period: PayrollPeriod
    payroll_count: int
    pay_stub_count: int


class PayrollPeriodService:
    """Create, update, list and delete payroll periods for a tenant."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_period(
        self,
        tenant_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        pay_date: date | None = None,
        description: str | None = None,
    ) -> PayrollPeriod:
        """Create a period. Names are unique per tenant."""
        _validate_dates(start_date, end_date)
        await self._ensure_name_available(tenant_id, name)

        period = PayrollPeriod(
            tenant_id=tenant_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            pay_date=pay_date,
            description=description,
        )
        self.session.add(period)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise PeriodNameConflictError(name, tenant_id) from exc

        logger.info("Created payroll period %s (%s)", name, period.payroll_period_id)
        return period

    async def update_period(
        self,
        payroll_period_id: UUID,
        tenant_id: UUID,
        *,
        name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        pay_date: date | None | object = _UNSET,
        description: str | None | object = _UNSET,
    ) -> PayrollPeriod:
        """Update the given fields of a period.

        ``pay_date`` and ``description`` may be set to None explicitly.
        """
        period = await self.get_period(payroll_period_id, tenant_id)

        new_start = start_date or period.start_date
        new_end = end_date or period.end_date
        _validate_dates(new_start, new_end)

        if name is not None and name != period.name:
            await self._ensure_name_available(tenant_id, name)
            period.name = name
        period.start_date = new_start
        period.end_date = new_end
        if pay_date is not _UNSET:
            period.pay_date = pay_date  # type: ignore[assignment]
        if description is not _UNSET:
            period.description = description  # type: ignore[assignment]

        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise PeriodNameConflictError(name or "", tenant_id) from exc
        return period

    async def get_period(self, payroll_period_id: UUID, tenant_id: UUID) -> PayrollPeriod:
        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.payroll_period_id == payroll_period_id,
                PayrollPeriod.tenant_id == tenant_id,
            )
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PayrollPeriodNotFoundError(payroll_period_id, tenant_id)
        return period

    async def list_periods(self, tenant_id: UUID) -> list[PeriodSummary]:
        """List periods, newest start date first, with payroll and stub counts."""
        payroll_counts = (
            select(Payroll.payroll_period_id, func.count().label("n"))
            .where(Payroll.tenant_id == tenant_id)
            .group_by(Payroll.payroll_period_id)
            .subquery()
        )
        stub_counts = (
            select(PayStub.payroll_period_id, func.count().label("n"))
            .where(PayStub.tenant_id == tenant_id)
            .group_by(PayStub.payroll_period_id)
            .subquery()
        )
        result = await self.session.execute(
            select(
                PayrollPeriod,
                func.coalesce(payroll_counts.c.n, 0),
                func.coalesce(stub_counts.c.n, 0),
            )
            .outerjoin(
                payroll_counts,
                payroll_counts.c.payroll_period_id == PayrollPeriod.payroll_period_id,
            )
            .outerjoin(
                stub_counts,
                stub_counts.c.payroll_period_id == PayrollPeriod.payroll_period_id,
            )
            .where(PayrollPeriod.tenant_id == tenant_id)
            .order_by(PayrollPeriod.start_date.desc())
        )
        return [
            PeriodSummary(period=period, payroll_count=int(payrolls), pay_stub_count=int(stubs))
            for period, payrolls, stubs in result.all()
        ]

    async def delete_period(self, payroll_period_id: UUID, tenant_id: UUID) -> None:
        """Delete a period with its pay stubs, payroll items and payrolls."""
        await self.get_period(payroll_period_id, tenant_id)

        try:
            deleted = await delete_payroll_rows(self.session, payroll_period_id, tenant_id)
            await self.session.execute(
                delete(PayrollPeriod)
                .where(
                    PayrollPeriod.payroll_period_id == payroll_period_id,
                    PayrollPeriod.tenant_id == tenant_id,
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PayrollPersistenceError(f"Failed to delete payroll period: {exc}") from exc
        logger.info(
            "Deleted payroll period %s with %d payrolls", payroll_period_id, deleted.payrolls
        )

    async def _ensure_name_available(self, tenant_id: UUID, name: str) -> None:
        result = await self.session.execute(
            select(PayrollPeriod.payroll_period_id).where(
                PayrollPeriod.tenant_id == tenant_id,
                PayrollPeriod.name == name,
            )
        )
        if result.first() is not None:
            raise PeriodNameConflictError(name, tenant_id)


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise PayrollValidationError(
            f"end_date {end_date} is before start_date {start_date}", field="end_date"
        )
