"""Pay stub retrieval."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.errors import PayStubNotFoundError
from hrms_payroll.models import PayStub
from hrms_payroll.models.base import utcnow
from hrms_payroll.services.state_machine import PayStubStateMachine, PayStubStatus


class PayStubService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_pay_stub(self, pay_stub_id: UUID, tenant_id: UUID) -> PayStub:
        """Fetch a stub; the first read moves it from GENERATED to VIEWED."""
        result = await self.session.execute(
            select(PayStub).where(
                PayStub.pay_stub_id == pay_stub_id,
                PayStub.tenant_id == tenant_id,
            )
        )
        stub = result.scalar_one_or_none()
        if stub is None:
            raise PayStubNotFoundError(pay_stub_id, tenant_id)

        if stub.status == PayStubStatus.GENERATED.value:
            PayStubStateMachine.validate_transition(stub.status, PayStubStatus.VIEWED.value)
            stub.status = PayStubStatus.VIEWED.value
            stub.viewed_at = utcnow()
            await self.session.commit()
        return stub

    async def list_pay_stubs(
        self,
        tenant_id: UUID,
        employee_id: UUID | None = None,
        payroll_period_id: UUID | None = None,
    ) -> list[PayStub]:
        """List stubs, newest number first."""
        query = select(PayStub).where(PayStub.tenant_id == tenant_id)
        if employee_id is not None:
            query = query.where(PayStub.employee_id == employee_id)
        if payroll_period_id is not None:
            query = query.where(PayStub.payroll_period_id == payroll_period_id)
        result = await self.session.execute(query.order_by(PayStub.stub_number.desc()))
        return list(result.scalars())
