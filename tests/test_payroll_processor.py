"""Tests for single and bulk payroll processing and period-scoped deletion."""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from hrms_payroll.calculators.types import Allowance, OtherDeduction, Overtime
from hrms_payroll.errors import (
    EmployeeNotFoundError,
    NoSalaryConfiguredError,
    PayrollExistsError,
    PayrollNotFoundError,
    PayrollPeriodNotFoundError,
    PayrollPersistenceError,
)
from hrms_payroll.models import PayStub, Payroll, PayrollItem
from hrms_payroll.models import TaxBracket as TaxBracketRecord
from hrms_payroll.services import PayrollProcessor

pytestmark = pytest.mark.asyncio


async def count(session, model, **filters):
    query = select(func.count()).select_from(model)
    for name, value in filters.items():
        query = query.where(getattr(model, name) == value)
    return (await session.execute(query)).scalar_one()


class TestProcessOne:
    """Single-employee processing."""

    async def test_writes_payroll_items_and_stub(self, processor, session, tenant_id, staff, period_id):
        payroll = await processor.process_one(period_id, staff.basic, tenant_id)

        assert payroll.gross_salary == Decimal("30000")
        assert payroll.total_deductions == Decimal("3210")
        assert payroll.net_salary == Decimal("26790")
        assert payroll.status == "PENDING"
        assert [i.category for i in payroll.items] == ["BASIC_SALARY", "TAX", "INSURANCE", "PENSION"]
        assert [i.sequence for i in payroll.items] == [0, 1, 2, 3]
        assert payroll.pay_stub is not None
        assert payroll.pay_stub.status == "GENERATED"
        assert payroll.pay_stub.stub_number == f"PS{date.today():%Y%m}0001"

        assert await count(session, Payroll) == 1
        assert await count(session, PayrollItem) == 4
        assert await count(session, PayStub) == 1

    async def test_extra_earnings_and_deductions(self, processor, tenant_id, staff, period_id):
        payroll = await processor.process_one(
            period_id,
            staff.basic,
            tenant_id,
            allowances=[Allowance("Housing", Decimal("5000"))],
            overtime=Overtime(hours=Decimal("4"), rate=Decimal("500")),
            deductions=[OtherDeduction("Loan", Decimal("1000"))],
        )

        assert payroll.gross_salary == Decimal("37000")
        categories = [i.category for i in payroll.items]
        assert categories[:3] == ["BASIC_SALARY", "ALLOWANCE", "OVERTIME"]
        assert categories[-1] == "OTHER"
        assert payroll.net_salary == payroll.gross_salary - payroll.total_deductions

    async def test_second_run_conflicts(self, processor, session, tenant_id, staff, period_id):
        await processor.process_one(period_id, staff.basic, tenant_id)

        with pytest.raises(PayrollExistsError) as exc_info:
            await processor.process_one(period_id, staff.basic, tenant_id)

        assert exc_info.value.code == "CONFLICT"
        assert await count(session, Payroll) == 1
        assert await count(session, PayStub) == 1

    async def test_no_salary(self, processor, session, tenant_id, staff, period_id):
        with pytest.raises(NoSalaryConfiguredError) as exc_info:
            await processor.process_one(period_id, staff.unpaid, tenant_id)

        assert exc_info.value.code == "INVALID_STATE"
        assert await count(session, Payroll) == 0

    async def test_unknown_period(self, processor, tenant_id, staff):
        with pytest.raises(PayrollPeriodNotFoundError):
            await processor.process_one(uuid4(), staff.basic, tenant_id)

    async def test_unknown_employee(self, processor, tenant_id, staff, period_id):
        with pytest.raises(EmployeeNotFoundError):
            await processor.process_one(period_id, uuid4(), tenant_id)

    async def test_other_tenant_period_is_not_found(
        self, processor, tenant_id, staff, other_period_id
    ):
        with pytest.raises(PayrollPeriodNotFoundError):
            await processor.process_one(other_period_id, staff.basic, tenant_id)

    async def test_other_tenant_employee_is_not_found(
        self, processor, other_tenant_id, staff, other_period_id
    ):
        with pytest.raises(EmployeeNotFoundError):
            await processor.process_one(other_period_id, staff.basic, other_tenant_id)


class TestStubCollisions:
    """Unique stub number enforced at storage, retried with a fresh number."""

    async def test_collision_is_retried(
        self, processor, session, tenant_id, staff, period_id, caplog
    ):
        first = await processor.process_one(period_id, staff.basic, tenant_id)
        taken = first.pay_stub.stub_number
        fresh = f"PS{date.today():%Y%m}0042"
        numbers = iter([taken, fresh])

        async def fake_next(tenant, on_date=None):
            return next(numbers)

        processor.stub_numbers.next_stub_number = fake_next

        with caplog.at_level(logging.WARNING, logger="hrms_payroll.services.payroll_processor"):
            second = await processor.process_one(period_id, staff.senior, tenant_id)

        assert second.pay_stub.stub_number == fresh
        assert "collided" in caplog.text
        assert await count(session, Payroll) == 2

    async def test_gives_up_after_max_attempts(self, processor, session, tenant_id, staff, period_id):
        first = await processor.process_one(period_id, staff.basic, tenant_id)
        taken = first.pay_stub.stub_number
        calls = []

        async def always_taken(tenant, on_date=None):
            calls.append(tenant)
            return taken

        processor.stub_numbers.next_stub_number = always_taken

        with pytest.raises(PayrollPersistenceError):
            await processor.process_one(period_id, staff.senior, tenant_id)

        assert len(calls) == 3
        assert await count(session, Payroll) == 1

    async def test_other_integrity_errors_are_not_retried(
        self, processor, session, tenant_id, staff, period_id, caplog
    ):
        calls = []
        real_next = processor.stub_numbers.next_stub_number

        async def counting_next(tenant, on_date=None):
            calls.append(tenant)
            return await real_next(tenant, on_date)

        processor.stub_numbers.next_stub_number = counting_next

        with caplog.at_level(logging.WARNING, logger="hrms_payroll.services.payroll_processor"):
            with pytest.raises(PayrollPersistenceError) as exc_info:
                await processor.process_one(
                    period_id,
                    staff.basic,
                    tenant_id,
                    allowances=[Allowance(None, Decimal("10"))],
                )

        assert "Failed to save payroll" in str(exc_info.value)
        assert len(calls) == 1
        assert "collided" not in caplog.text
        assert await count(session, Payroll) == 0
        assert await count(session, PayStub) == 0


class TestProcessAll:
    """Bulk processing over every active employee."""

    async def test_outcomes_per_employee(self, processor, session, tenant_id, staff, period_id):
        batch = await processor.process_all(period_id, tenant_id)

        assert (batch.processed, batch.skipped, batch.errors) == (2, 0, 1)
        assert [d.employee_number for d in batch.details] == ["E001", "E002", "E003"]
        assert batch.details[0].net_salary == Decimal("26790")
        assert batch.details[1].net_salary == Decimal("40661")
        assert batch.details[2].status == "error"
        assert batch.details[2].reason == "No salary configured"
        assert await count(session, Payroll, employee_id=staff.inactive) == 0

    async def test_rerun_skips_processed(self, processor, session, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)
        batch = await processor.process_all(period_id, tenant_id)

        assert (batch.processed, batch.skipped, batch.errors) == (0, 2, 1)
        assert batch.details[0].reason == "Payroll already exists"
        assert await count(session, Payroll) == 2

    async def test_resumes_after_single_employee(self, processor, tenant_id, staff, period_id):
        await processor.process_one(period_id, staff.senior, tenant_id)
        batch = await processor.process_all(period_id, tenant_id)

        statuses = {d.employee_number: d.status for d in batch.details}
        assert statuses == {"E001": "processed", "E002": "skipped", "E003": "error"}

    async def test_unexpected_failure_does_not_stop_batch(
        self, processor, session, tenant_id, staff, period_id, monkeypatch
    ):
        real_calculate = processor.calculator.calculate

        async def flaky(calc_input, as_of=None):
            if calc_input.employee_id == staff.basic:
                raise RuntimeError("boom")
            return await real_calculate(calc_input, as_of)

        monkeypatch.setattr(processor.calculator, "calculate", flaky)
        batch = await processor.process_all(period_id, tenant_id)

        assert batch.details[0].status == "error"
        assert batch.details[0].reason == "Processing failed"
        assert batch.details[1].status == "processed"
        assert await count(session, Payroll) == 1

    async def test_unknown_period_propagates(self, processor, tenant_id, staff):
        with pytest.raises(PayrollPeriodNotFoundError):
            await processor.process_all(uuid4(), tenant_id)

    async def test_stub_numbers_unique_and_sequential(self, processor, session, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)

        result = await session.execute(select(PayStub.stub_number).order_by(PayStub.stub_number))
        prefix = f"PS{date.today():%Y%m}"
        assert list(result.scalars()) == [f"{prefix}0001", f"{prefix}0002"]

    async def test_to_dict(self, processor, tenant_id, staff, period_id):
        data = (await processor.process_all(period_id, tenant_id)).to_dict()

        assert data["processed"] == 2
        assert data["details"][0]["net_salary"] == "26790.00"
        assert "reason" not in data["details"][0]
        assert data["details"][2]["reason"] == "No salary configured"


class TestDeletion:
    """Period-scoped deletion for reprocessing."""

    async def test_delete_for_period(self, processor, session, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)

        deleted = await processor.delete_for_period(period_id, tenant_id)

        assert (deleted.payrolls, deleted.pay_stubs, deleted.payroll_items) == (2, 2, 8)
        assert await count(session, Payroll) == 0
        assert await count(session, PayrollItem) == 0
        assert await count(session, PayStub) == 0

    async def test_reprocess_after_delete(self, processor, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)
        await processor.delete_for_period(period_id, tenant_id)

        batch = await processor.process_all(period_id, tenant_id)
        assert batch.processed == 2

    async def test_delete_leaves_other_tenant(
        self,
        processor,
        session,
        tenant_id,
        other_tenant_id,
        staff,
        period_id,
        other_period_id,
    ):
        await processor.process_all(period_id, tenant_id)

        with pytest.raises(PayrollPeriodNotFoundError):
            await processor.delete_for_period(period_id, other_tenant_id)
        deleted = await processor.delete_for_period(other_period_id, other_tenant_id)

        assert deleted.payrolls == 0
        assert await count(session, Payroll) == 2

    async def test_delete_for_employee_period(self, processor, session, tenant_id, staff, period_id):
        await processor.process_all(period_id, tenant_id)

        deleted = await processor.delete_for_employee_period(staff.basic, period_id, tenant_id)

        assert deleted.payrolls == 1
        assert await count(session, Payroll, employee_id=staff.senior) == 1

        with pytest.raises(PayrollNotFoundError):
            await processor.delete_for_employee_period(staff.basic, period_id, tenant_id)

    async def test_stub_sequence_continues_past_deleted(
        self, processor, session, tenant_id, staff, period_id
    ):
        await processor.process_all(period_id, tenant_id)
        await processor.delete_for_employee_period(staff.basic, period_id, tenant_id)

        payroll = await processor.process_one(period_id, staff.basic, tenant_id)

        assert payroll.pay_stub.stub_number == f"PS{date.today():%Y%m}0003"


class TestTaxTableRefresh:
    async def test_bracket_changes_apply_to_next_call(
        self, processor, session, tenant_id, staff, period_id
    ):
        first = await processor.process_one(period_id, staff.basic, tenant_id)
        assert [i.amount for i in first.items if i.category == "TAX"] == [Decimal("1230")]

        session.add(
            TaxBracketRecord(
                tenant_id=tenant_id,
                name="Flat",
                min_amount=Decimal("0"),
                max_amount=None,
                rate=Decimal("10"),
                effective_date=date(2024, 1, 1),
            )
        )
        await session.commit()

        second = await processor.process_one(period_id, staff.senior, tenant_id)
        assert [i.amount for i in second.items if i.category == "TAX"] == [Decimal("4892")]


class TestProcessorConfig:
    async def test_max_attempts_from_settings(self, session, monkeypatch):
        from hrms_payroll import config

        monkeypatch.setenv("STUB_NUMBER_MAX_ATTEMPTS", "5")
        config.get_settings.cache_clear()
        try:
            processor = PayrollProcessor(session)
            assert processor.max_stub_attempts == 5
        finally:
            config.get_settings.cache_clear()
