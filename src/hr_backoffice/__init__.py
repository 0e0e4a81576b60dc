"""HR back-office engine.

Period-record reconciliation for attendance, KPI and payroll rows, the
payroll finalize state machine, leave balance approvals and bulk spreadsheet
imports.
"""

__version__ = "0.1.0"
