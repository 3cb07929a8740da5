"""Payroll core services."""

from hrms_payroll.services.pay_stub_service import PayStubService
from hrms_payroll.services.payroll_processor import (
    BatchProcessingResult,
    DeletionResult,
    PayrollProcessor,
    ProcessingOutcome,
)
from hrms_payroll.services.payroll_records import PayrollRecordService
from hrms_payroll.services.period_service import PayrollPeriodService, PeriodSummary
from hrms_payroll.services.state_machine import (
    PayrollStateMachine,
    PayrollStatus,
    PayStubStateMachine,
    PayStubStatus,
)
from hrms_payroll.services.stub_numbering import PayStubNumberService

__all__ = [
    "BatchProcessingResult",
    "DeletionResult",
    "PayStubNumberService",
    "PayStubService",
    "PayStubStateMachine",
    "PayStubStatus",
    "PayrollPeriodService",
    "PayrollProcessor",
    "PayrollRecordService",
    "PayrollStateMachine",
    "PayrollStatus",
    "PeriodSummary",
    "ProcessingOutcome",
]
