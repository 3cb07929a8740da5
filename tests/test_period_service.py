"""Tests for payroll period management."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from hrms_payroll.errors import (
    PayrollPeriodNotFoundError,
    PayrollPersistenceError,
    PayrollValidationError,
    PeriodNameConflictError,
)
from hrms_payroll.models import PayStub, Payroll, PayrollItem
from hrms_payroll.services import PayrollPeriodService

pytestmark = pytest.mark.asyncio


class TestCreateAndUpdate:
    async def test_create(self, session, tenant_id):
        service = PayrollPeriodService(session)
        period = await service.create_period(
            tenant_id, "April 2024", date(2024, 4, 1), date(2024, 4, 30), date(2024, 4, 26)
        )

        fetched = await service.get_period(period.payroll_period_id, tenant_id)
        assert fetched.name == "April 2024"
        assert fetched.pay_date == date(2024, 4, 26)

    async def test_duplicate_name_conflicts(self, session, tenant_id, period_id):
        service = PayrollPeriodService(session)
        with pytest.raises(PeriodNameConflictError) as exc_info:
            await service.create_period(tenant_id, "March 2024", date(2024, 3, 1), date(2024, 3, 31))
        assert exc_info.value.code == "CONFLICT"

    async def test_same_name_other_tenant_allowed(self, session, other_tenant_id, period_id):
        service = PayrollPeriodService(session)
        period = await service.create_period(
            other_tenant_id, "March 2024", date(2024, 3, 1), date(2024, 3, 31)
        )
        assert period.tenant_id == other_tenant_id

    async def test_end_before_start(self, session, tenant_id):
        service = PayrollPeriodService(session)
        with pytest.raises(PayrollValidationError) as exc_info:
            await service.create_period(tenant_id, "Bad", date(2024, 4, 30), date(2024, 4, 1))
        assert exc_info.value.field == "end_date"

    async def test_update(self, session, tenant_id, period_id):
        service = PayrollPeriodService(session)
        period = await service.update_period(
            period_id, tenant_id, name="March 2024 (rev)", pay_date=None, description="Revised"
        )

        assert period.name == "March 2024 (rev)"
        assert period.pay_date is None
        assert period.description == "Revised"
        assert period.start_date == date(2024, 3, 1)

    async def test_update_to_taken_name(self, session, tenant_id, period_id):
        service = PayrollPeriodService(session)
        await service.create_period(tenant_id, "April 2024", date(2024, 4, 1), date(2024, 4, 30))

        with pytest.raises(PeriodNameConflictError):
            await service.update_period(period_id, tenant_id, name="April 2024")

    async def test_get_other_tenant(self, session, other_tenant_id, period_id):
        with pytest.raises(PayrollPeriodNotFoundError):
            await PayrollPeriodService(session).get_period(period_id, other_tenant_id)


class TestListAndDelete:
    async def test_list_with_counts_newest_first(
        self, session, processor, tenant_id, staff, period_id
    ):
        service = PayrollPeriodService(session)
        await service.create_period(tenant_id, "April 2024", date(2024, 4, 1), date(2024, 4, 30))
        await processor.process_all(period_id, tenant_id)

        summaries = await service.list_periods(tenant_id)

        assert [s.period.name for s in summaries] == ["April 2024", "March 2024"]
        assert (summaries[0].payroll_count, summaries[0].pay_stub_count) == (0, 0)
        assert (summaries[1].payroll_count, summaries[1].pay_stub_count) == (2, 2)

    async def test_delete_cascades(self, session, processor, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)
        service = PayrollPeriodService(session)

        await service.delete_period(period_id, tenant_id)

        for model in (PayStub, PayrollItem, Payroll):
            total = (await session.execute(select(func.count()).select_from(model))).scalar_one()
            assert total == 0
        with pytest.raises(PayrollPeriodNotFoundError):
            await service.get_period(period_id, tenant_id)

    async def test_delete_unknown(self, session, tenant_id):
        with pytest.raises(PayrollPeriodNotFoundError):
            await PayrollPeriodService(session).delete_period(uuid4(), tenant_id)

    async def test_delete_failure_rolls_back(
        self, session, processor, tenant_id, staff, period_id, monkeypatch
    ):
        await processor.process_all(period_id, tenant_id)
        service = PayrollPeriodService(session)

        async def failing_commit():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(session, "commit", failing_commit)
        with pytest.raises(PayrollPersistenceError) as exc_info:
            await service.delete_period(period_id, tenant_id)
        monkeypatch.undo()

        assert "Failed to delete payroll period" in str(exc_info.value)
        assert (await service.get_period(period_id, tenant_id)).name == "March 2024"
        total = (await session.execute(select(func.count()).select_from(Payroll))).scalar_one()
        assert total == 2
