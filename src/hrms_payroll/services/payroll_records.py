"""Payroll record retrieval and status changes."""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms_payroll.errors import PayrollNotFoundError
from hrms_payroll.models import Payroll
from hrms_payroll.models.base import utcnow
from hrms_payroll.services.state_machine import PayrollStateMachine, PayrollStatus

logger = logging.getLogger(__name__)


class PayrollRecordService:
    """Read payroll records and move them through PENDING → APPROVED → PAID."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_payroll(self, payroll_id: UUID, tenant_id: UUID) -> Payroll:
        """Load a payroll with its items and pay stub."""
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.payroll_id == payroll_id, Payroll.tenant_id == tenant_id)
            .options(selectinload(Payroll.items), selectinload(Payroll.pay_stub))
        )
        payroll = result.scalar_one_or_none()
        if payroll is None:
            raise PayrollNotFoundError(payroll_id, tenant_id)
        return payroll

    async def list_payrolls(
        self,
        tenant_id: UUID,
        payroll_period_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Payroll]:
        query = select(Payroll).where(Payroll.tenant_id == tenant_id)
        if payroll_period_id is not None:
            query = query.where(Payroll.payroll_period_id == payroll_period_id)
        if status is not None:
            query = query.where(Payroll.status == status)
        result = await self.session.execute(
            query.options(selectinload(Payroll.items), selectinload(Payroll.pay_stub)).order_by(
                Payroll.created_at
            )
        )
        return list(result.scalars())

    async def approve_payrolls(
        self,
        payroll_ids: Iterable[UUID],
        tenant_id: UUID,
        approver_id: UUID | None = None,
    ) -> int:
        """Approve the tenant's PENDING payrolls among ``payroll_ids``.

        Payrolls in any other status are left alone. Returns the number approved.
        """
        approved = await self._transition(payroll_ids, tenant_id, PayrollStatus.APPROVED)
        now = utcnow()
        for payroll in approved:
            payroll.approved_by = approver_id
            payroll.approved_at = now
        await self.session.commit()
        logger.info("Approved %d payrolls", len(approved))
        return len(approved)

    async def mark_paid(self, payroll_ids: Iterable[UUID], tenant_id: UUID) -> int:
        """Mark the tenant's APPROVED payrolls among ``payroll_ids`` as PAID."""
        paid = await self._transition(payroll_ids, tenant_id, PayrollStatus.PAID)
        await self.session.commit()
        logger.info("Marked %d payrolls paid", len(paid))
        return len(paid)

    async def _transition(
        self,
        payroll_ids: Iterable[UUID],
        tenant_id: UUID,
        to_status: PayrollStatus,
    ) -> list[Payroll]:
        ids = list(payroll_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Payroll).where(Payroll.payroll_id.in_(ids), Payroll.tenant_id == tenant_id)
        )
        moved: list[Payroll] = []
        for payroll in result.scalars():
            if not PayrollStateMachine.can_transition(payroll.status, to_status):
                continue
            payroll.status = to_status.value
            moved.append(payroll)
        return moved
