"""Pay stub number allocation: PS{YYYY}{MM}{NNNN} per tenant and month."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.errors import StubSequenceExhaustedError
from hrms_payroll.models import PayStub

STUB_PREFIX = "PS"
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10**SEQUENCE_WIDTH - 1


def stub_prefix(on_date: date) -> str:
    return f"{STUB_PREFIX}{on_date.year:04d}{on_date.month:02d}"


def format_stub_number(on_date: date, sequence: int) -> str:
    return f"{stub_prefix(on_date)}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(stub_number: str) -> int:
    """Return the trailing sequence of a stub number."""
    return int(stub_number[-SEQUENCE_WIDTH:])


class PayStubNumberService:
    """Allocates the next stub number for a tenant and calendar month.

    The sequence continues from the highest number already issued for the
    month, so numbers freed by deleted stubs are never handed out again
    while a higher one exists. Two writers can still read the same maximum;
    the (tenant_id, stub_number) unique constraint rejects the loser and the
    processor retries with a fresh number.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_stub_number(self, tenant_id: UUID, on_date: date | None = None) -> str:
        on_date = on_date or date.today()
        prefix = stub_prefix(on_date)

        result = await self.session.execute(
            select(func.max(PayStub.stub_number)).where(
                PayStub.tenant_id == tenant_id,
                PayStub.stub_number.like(f"{prefix}%"),
            )
        )
        highest = result.scalar()
        sequence = parse_sequence(highest) + 1 if highest else 1

        if sequence > MAX_SEQUENCE:
            raise StubSequenceExhaustedError(tenant_id, prefix)
        return format_stub_number(on_date, sequence)
