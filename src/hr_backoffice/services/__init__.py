"""HR back-office services."""

from hr_backoffice.services.employee_service import EmployeeInput, EmployeeService
from hr_backoffice.services.identifier import IdentifierMatcher
from hr_backoffice.services.import_pipeline import MAPPINGS, FieldMapping, ImportPipeline, ImportReport
from hr_backoffice.services.leave_service import LeaveService, LeaveType, count_days
from hr_backoffice.services.payroll_service import FinalizeResult, PayrollLockState, PayrollService
from hr_backoffice.services.projection import Persisted, Placeholder, ProjectionRow, RosterProjection
from hr_backoffice.services.reconciler import ReconcileReport, RowFailure, UpsertReconciler
from hr_backoffice.services.scope import Actor, Scope, resolve_scope
from hr_backoffice.services.state_machine import LeaveStateMachine, LeaveStatus, PayrollStateMachine

__all__ = [
    "EmployeeInput",
    "EmployeeService",
    "IdentifierMatcher",
    "MAPPINGS",
    "FieldMapping",
    "ImportPipeline",
    "ImportReport",
    "LeaveService",
    "LeaveType",
    "count_days",
    "FinalizeResult",
    "PayrollLockState",
    "PayrollService",
    "Persisted",
    "Placeholder",
    "ProjectionRow",
    "RosterProjection",
    "ReconcileReport",
    "RowFailure",
    "UpsertReconciler",
    "Actor",
    "Scope",
    "resolve_scope",
    "LeaveStateMachine",
    "LeaveStatus",
    "PayrollStateMachine",
]
