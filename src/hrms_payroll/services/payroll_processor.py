"""Payroll period processor - single and bulk payroll generation.

Each processed employee is committed on its own: a failure rolls back only
that employee's payroll, so earlier employees stay persisted and a crashed
batch can simply be rerun (already processed employees are skipped).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms_payroll.calculators.engine import PayrollCalculator
from hrms_payroll.calculators.line_builder import PayrollItemBuilder
from hrms_payroll.calculators.types import (
    Allowance,
    OtherDeduction,
    Overtime,
    PayrollCalculationInput,
    PayrollCalculationResult,
)
from hrms_payroll.errors import (
    EmployeeNotFoundError,
    NoSalaryConfiguredError,
    PayrollExistsError,
    PayrollNotFoundError,
    PayrollPeriodNotFoundError,
    PayrollPersistenceError,
    PayrollValidationError,
)
from hrms_payroll.models import (
    Employee,
    EmployeeStatus,
    PayStub,
    Payroll,
    PayrollItem,
    PayrollPeriod,
)
from hrms_payroll.services.state_machine import PayrollStatus, PayStubStatus
from hrms_payroll.services.stub_numbering import PayStubNumberService

if TYPE_CHECKING:
    from hrms_payroll.config import StatutoryConfig

logger = logging.getLogger(__name__)

PROCESSING_FAILED = "Processing failed"


class OutcomeStatus:
    PROCESSED = "processed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class _PeriodSnapshot:
    payroll_period_id: UUID
    name: str
    start_date: date
    end_date: date
    pay_date: date | None

    @property
    def as_of(self) -> date:
        """Date that selects the tax table for this period."""
        return self.pay_date or self.end_date


@dataclass(frozen=True)
class _EmployeeSnapshot:
    employee_id: UUID
    employee_number: str
    name: str
    salary: Decimal | None


@dataclass
class ProcessingOutcome:
    """Per-employee outcome of a bulk run."""

    employee_id: UUID
    employee_number: str
    name: str
    status: str
    net_salary: Decimal | None = None
    reason: str | None = None
    payroll_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "employee_id": str(self.employee_id),
            "employee_number": self.employee_number,
            "name": self.name,
            "status": self.status,
        }
        if self.net_salary is not None:
            data["net_salary"] = str(self.net_salary)
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class BatchProcessingResult:
    """Summary of a bulk run over a period."""

    payroll_period_id: UUID
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    details: list[ProcessingOutcome] = field(default_factory=list)

    def add(self, outcome: ProcessingOutcome) -> None:
        if outcome.status == OutcomeStatus.PROCESSED:
            self.processed += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1
        self.details.append(outcome)

    def to_dict(self) -> dict[str, Any]:
        return {
            "payroll_period_id": str(self.payroll_period_id),
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "details": [d.to_dict() for d in self.details],
        }


@dataclass
class DeletionResult:
    """Row counts removed by a period-scoped deletion."""

    payrolls: int = 0
    payroll_items: int = 0
    pay_stubs: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "payrolls": self.payrolls,
            "payroll_items": self.payroll_items,
            "pay_stubs": self.pay_stubs,
        }


class PayrollProcessor:
    """Generates payrolls, items and pay stubs for a payroll period.

    Operations:
    - process_one: One employee, raises on any precondition failure
    - process_all: Every active employee, outcomes collected per employee
    - delete_for_period: Remove a period's payroll output for reprocessing
    - delete_for_employee_period: Same, for one employee

    Tax tables are cached for the duration of one process_one or
    process_all call, so bracket changes apply from the next call.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: StatutoryConfig | None = None,
        max_stub_attempts: int | None = None,
    ):
        if max_stub_attempts is None:
            from hrms_payroll.config import get_settings

            max_stub_attempts = get_settings().stub_number_max_attempts
        self.session = session
        self.calculator = PayrollCalculator(session, config)
        self.stub_numbers = PayStubNumberService(session)
        self.max_stub_attempts = max(1, max_stub_attempts)

    # ===== Processing =====

    async def process_one(
        self,
        payroll_period_id: UUID,
        employee_id: UUID,
        tenant_id: UUID,
        allowances: Sequence[Allowance] = (),
        overtime: Overtime | None = None,
        deductions: Sequence[OtherDeduction] = (),
    ) -> Payroll:
        """Process one employee for a period.

        Raises:
            PayrollPeriodNotFoundError: Period missing for tenant.
            EmployeeNotFoundError: Employee missing for tenant.
            PayrollExistsError: Employee already has a payroll for the period.
            NoSalaryConfiguredError: Salary missing or not positive.
            PayrollPersistenceError: Writing failed.
        """
        self.calculator.tax_resolver.clear_cache()
        period = await self._get_period(payroll_period_id, tenant_id)
        employee = await self._get_employee(employee_id, tenant_id)
        return await self._process_employee(
            period, employee, tenant_id, allowances, overtime, deductions
        )

    async def process_all(self, payroll_period_id: UUID, tenant_id: UUID) -> BatchProcessingResult:
        """Process every active employee of the tenant, in employee-number order.

        Per-employee failures are recorded in the result and never stop the
        batch. Failure to load the period or the employee list propagates.
        """
        self.calculator.tax_resolver.clear_cache()
        period = await self._get_period(payroll_period_id, tenant_id)
        employees = await self._list_active_employees(tenant_id)
        batch = BatchProcessingResult(payroll_period_id=payroll_period_id)

        logger.info(
            "Processing payroll period %s (%s) for %d employees",
            period.name,
            payroll_period_id,
            len(employees),
        )

        for employee in employees:
            batch.add(await self._process_for_batch(period, employee, tenant_id))

        logger.info(
            "Payroll period %s done: processed=%d skipped=%d errors=%d",
            payroll_period_id,
            batch.processed,
            batch.skipped,
            batch.errors,
        )
        return batch

    async def _process_for_batch(
        self,
        period: _PeriodSnapshot,
        employee: _EmployeeSnapshot,
        tenant_id: UUID,
    ) -> ProcessingOutcome:
        outcome = ProcessingOutcome(
            employee_id=employee.employee_id,
            employee_number=employee.employee_number,
            name=employee.name,
            status=OutcomeStatus.ERROR,
        )
        try:
            payroll = await self._process_employee(period, employee, tenant_id)
        except PayrollExistsError:
            logger.info("Skipping employee %s: payroll already exists", employee.employee_number)
            outcome.status = OutcomeStatus.SKIPPED
            outcome.reason = PayrollExistsError.reason
        except NoSalaryConfiguredError:
            logger.warning("Employee %s has no salary configured", employee.employee_number)
            outcome.reason = NoSalaryConfiguredError.reason
        except Exception:
            logger.exception("Failed to process payroll for employee %s", employee.employee_number)
            await self.session.rollback()
            outcome.reason = PROCESSING_FAILED
        else:
            outcome.status = OutcomeStatus.PROCESSED
            outcome.net_salary = payroll.net_salary
            outcome.payroll_id = payroll.payroll_id
        return outcome

    async def _process_employee(
        self,
        period: _PeriodSnapshot,
        employee: _EmployeeSnapshot,
        tenant_id: UUID,
        allowances: Sequence[Allowance] = (),
        overtime: Overtime | None = None,
        deductions: Sequence[OtherDeduction] = (),
    ) -> Payroll:
        if await self._payroll_exists(employee.employee_id, period.payroll_period_id, tenant_id):
            raise PayrollExistsError(employee.employee_id, period.payroll_period_id)
        if employee.salary is None or employee.salary <= 0:
            raise NoSalaryConfiguredError(employee.employee_id)

        result = await self.calculator.calculate(
            PayrollCalculationInput(
                employee_id=employee.employee_id,
                payroll_period_id=period.payroll_period_id,
                basic_salary=Decimal(employee.salary),
                tenant_id=tenant_id,
                allowances=list(allowances),
                overtime=overtime,
                deductions=list(deductions),
            ),
            as_of=period.as_of,
        )
        problems = PayrollItemBuilder.validate_items(result.items)
        if problems:
            raise PayrollValidationError("; ".join(problems), field="items")

        last_error: Exception | None = None
        for attempt in range(1, self.max_stub_attempts + 1):
            stub_number = await self.stub_numbers.next_stub_number(tenant_id)
            payroll = self._build_payroll(period, employee, tenant_id, result, stub_number)
            self.session.add(payroll)
            try:
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                if await self._payroll_exists(
                    employee.employee_id, period.payroll_period_id, tenant_id
                ):
                    raise PayrollExistsError(employee.employee_id, period.payroll_period_id) from exc
                if not await self._stub_number_taken(stub_number, tenant_id):
                    raise PayrollPersistenceError(
                        f"Failed to save payroll: {exc}", employee.employee_id
                    ) from exc
                logger.warning(
                    "Pay stub number %s collided (attempt %d/%d)",
                    stub_number,
                    attempt,
                    self.max_stub_attempts,
                )
                last_error = exc
                continue
            except SQLAlchemyError as exc:
                await self.session.rollback()
                raise PayrollPersistenceError(
                    f"Failed to save payroll: {exc}", employee.employee_id
                ) from exc

            logger.debug(
                "Processed employee %s: net=%s stub=%s",
                employee.employee_number,
                result.net_salary,
                stub_number,
            )
            return await self._load_payroll(payroll.payroll_id)

        raise PayrollPersistenceError(
            f"Could not allocate a unique pay stub number after {self.max_stub_attempts} attempts",
            employee.employee_id,
        ) from last_error

    def _build_payroll(
        self,
        period: _PeriodSnapshot,
        employee: _EmployeeSnapshot,
        tenant_id: UUID,
        result: PayrollCalculationResult,
        stub_number: str,
    ) -> Payroll:
        payroll_id = uuid4()
        return Payroll(
            payroll_id=payroll_id,
            tenant_id=tenant_id,
            employee_id=employee.employee_id,
            payroll_period_id=period.payroll_period_id,
            basic_salary=result.basic_salary,
            gross_salary=result.gross_salary,
            total_deductions=result.total_deductions,
            net_salary=result.net_salary,
            status=PayrollStatus.PENDING.value,
            items=[
                PayrollItem(
                    payroll_id=payroll_id,
                    item_type=item.item_type.value,
                    category=item.category,
                    name=item.name,
                    amount=item.amount,
                    is_statutory=item.is_statutory,
                    sequence=sequence,
                )
                for sequence, item in enumerate(result.items)
            ],
            pay_stub=PayStub(
                tenant_id=tenant_id,
                payroll_id=payroll_id,
                employee_id=employee.employee_id,
                payroll_period_id=period.payroll_period_id,
                stub_number=stub_number,
                status=PayStubStatus.GENERATED.value,
            ),
        )

    # ===== Deletion =====

    async def delete_for_period(self, payroll_period_id: UUID, tenant_id: UUID) -> DeletionResult:
        """Delete stubs, items and payrolls of a period for the tenant's employees."""
        await self._get_period(payroll_period_id, tenant_id)
        deleted = await self._delete_payrolls(payroll_period_id, tenant_id)
        logger.info(
            "Deleted %d payrolls for period %s",
            deleted.payrolls,
            payroll_period_id,
        )
        return deleted

    async def delete_for_employee_period(
        self,
        employee_id: UUID,
        payroll_period_id: UUID,
        tenant_id: UUID,
    ) -> DeletionResult:
        """Delete one employee's payroll output for a period.

        Raises PayrollNotFoundError if the employee had no payroll.
        """
        deleted = await self._delete_payrolls(payroll_period_id, tenant_id, employee_id)
        if deleted.payrolls == 0:
            raise PayrollNotFoundError(
                f"employee {employee_id} period {payroll_period_id}", tenant_id
            )
        return deleted

    async def _delete_payrolls(
        self,
        payroll_period_id: UUID,
        tenant_id: UUID,
        employee_id: UUID | None = None,
    ) -> DeletionResult:
        try:
            deleted = await delete_payroll_rows(
                self.session, payroll_period_id, tenant_id, employee_id
            )
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PayrollPersistenceError(f"Failed to delete payrolls: {exc}") from exc
        return deleted

    # ===== Loading =====

    async def _get_period(self, payroll_period_id: UUID, tenant_id: UUID) -> _PeriodSnapshot:
        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.payroll_period_id == payroll_period_id,
                PayrollPeriod.tenant_id == tenant_id,
            )
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PayrollPeriodNotFoundError(payroll_period_id, tenant_id)
        return _PeriodSnapshot(
            payroll_period_id=period.payroll_period_id,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            pay_date=period.pay_date,
        )

    async def _get_employee(self, employee_id: UUID, tenant_id: UUID) -> _EmployeeSnapshot:
        result = await self.session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                Employee.tenant_id == tenant_id,
            )
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundError(employee_id, tenant_id)
        return _snapshot_employee(employee)

    async def _list_active_employees(self, tenant_id: UUID) -> list[_EmployeeSnapshot]:
        result = await self.session.execute(
            select(Employee)
            .where(
                Employee.tenant_id == tenant_id,
                Employee.status == EmployeeStatus.ACTIVE.value,
            )
            .order_by(Employee.employee_number)
        )
        return [_snapshot_employee(e) for e in result.scalars()]

    async def _payroll_exists(
        self,
        employee_id: UUID,
        payroll_period_id: UUID,
        tenant_id: UUID,
    ) -> bool:
        result = await self.session.execute(
            select(Payroll.payroll_id).where(
                Payroll.employee_id == employee_id,
                Payroll.payroll_period_id == payroll_period_id,
                Payroll.tenant_id == tenant_id,
            )
        )
        return result.first() is not None

    async def _stub_number_taken(self, stub_number: str, tenant_id: UUID) -> bool:
        result = await self.session.execute(
            select(PayStub.pay_stub_id).where(
                PayStub.tenant_id == tenant_id,
                PayStub.stub_number == stub_number,
            )
        )
        return result.first() is not None

    async def _load_payroll(self, payroll_id: UUID) -> Payroll:
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.payroll_id == payroll_id)
            .options(selectinload(Payroll.items), selectinload(Payroll.pay_stub))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


async def delete_payroll_rows(
    session: AsyncSession,
    payroll_period_id: UUID,
    tenant_id: UUID,
    employee_id: UUID | None = None,
) -> DeletionResult:
    """Delete stubs, items and payrolls of a period for the tenant's employees.

    Does not commit. Optionally narrowed to one employee.
    """
    tenant_employees = select(Employee.employee_id).where(Employee.tenant_id == tenant_id)
    if employee_id is not None:
        tenant_employees = tenant_employees.where(Employee.employee_id == employee_id)

    payroll_ids = select(Payroll.payroll_id).where(
        Payroll.payroll_period_id == payroll_period_id,
        Payroll.tenant_id == tenant_id,
        Payroll.employee_id.in_(tenant_employees),
    )

    stubs = await session.execute(
        delete(PayStub)
        .where(PayStub.payroll_id.in_(payroll_ids))
        .execution_options(synchronize_session=False)
    )
    items = await session.execute(
        delete(PayrollItem)
        .where(PayrollItem.payroll_id.in_(payroll_ids))
        .execution_options(synchronize_session=False)
    )
    payrolls = await session.execute(
        delete(Payroll)
        .where(
            Payroll.payroll_period_id == payroll_period_id,
            Payroll.tenant_id == tenant_id,
            Payroll.employee_id.in_(tenant_employees),
        )
        .execution_options(synchronize_session=False)
    )
    return DeletionResult(
        payrolls=payrolls.rowcount or 0,
        payroll_items=items.rowcount or 0,
        pay_stubs=stubs.rowcount or 0,
    )


def _snapshot_employee(employee: Employee) -> _EmployeeSnapshot:
    # Plain copies survive the rollback that expires ORM instances
    return _EmployeeSnapshot(
        employee_id=employee.employee_id,
        employee_number=employee.employee_number,
        name=employee.full_name,
        salary=employee.salary,
    )
