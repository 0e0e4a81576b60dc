"""Kind-specific field sets for period records.

Attendance, KPI and payroll rows share one record shape; everything that
differs between them lives here: the field model, how a period key is
written, the placeholder defaults, and whether an untouched placeholder is
worth persisting.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hr_backoffice.calculators.dates import normalize_date, normalize_month
from hr_backoffice.calculators.payroll import MONEY_LIMIT, ZERO, compute_net, to_money
from hr_backoffice.errors import ParseFailureError

if TYPE_CHECKING:
    from hr_backoffice.models import Employee

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


class RecordKind(str, Enum):
    """Period record kinds."""

    ATTENDANCE = "attendance"
    KPI = "kpi"
    PAYROLL = "payroll"


class PayrollStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "draft"
    FINALIZED = "finalized"


# ============================================================================
# Field models
# ============================================================================


class AttendanceFields(BaseModel):
    """One employee's attendance for one day."""

    model_config = ConfigDict(extra="ignore")

    check_in: time | None = None
    check_out: time | None = None
    late_minutes: int = Field(default=0, ge=0, le=MINUTES_PER_DAY)
    overtime_minutes: int = Field(default=0, ge=0, le=MINUTES_PER_DAY)


class KpiFields(BaseModel):
    """Monthly KPI scores (0-100 each)."""

    model_config = ConfigDict(extra="ignore")

    productivity_score: int = Field(default=0, ge=0, le=100)
    quality_score: int = Field(default=0, ge=0, le=100)
    attendance_score: int = Field(default=0, ge=0, le=100)
    commitment_score: int = Field(default=0, ge=0, le=100)
    notes: str = ""

    @property
    def average_score(self) -> Decimal:
        total = (
            self.productivity_score
            + self.quality_score
            + self.attendance_score
            + self.commitment_score
        )
        return (Decimal(total) / 4).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class PayrollFields(BaseModel):
    """Monthly payroll figures against the basic/variable baseline."""

    model_config = ConfigDict(extra="ignore")

    basic_salary: Decimal = ZERO
    variable_salary: Decimal = ZERO
    overtime_amount: Decimal = ZERO
    late_deduction: Decimal = ZERO
    net_salary: Decimal = ZERO

    @field_validator("basic_salary", "variable_salary", "overtime_amount", "late_deduction")
    @classmethod
    def _storable(cls, value: Decimal) -> Decimal:
        if abs(value) >= MONEY_LIMIT:
            raise ValueError(f"amount must be below {MONEY_LIMIT:,} in magnitude")
        return value

    @field_validator(
        "basic_salary",
        "variable_salary",
        "overtime_amount",
        "late_deduction",
        "net_salary",
    )
    @classmethod
    def _round_to_cents(cls, value: Decimal) -> Decimal:
        return to_money(value)

    def with_net(self) -> PayrollFields:
        """Copy with ``net_salary`` recomputed from the other amounts."""
        net = compute_net(
            self.basic_salary,
            self.variable_salary,
            self.overtime_amount,
            self.late_deduction,
        )
        return self.model_copy(update={"net_salary": net})


# ============================================================================
# Kind specifications
# ============================================================================


class KindSpec:
    """Behaviour shared by every record kind; subclasses override the edges."""

    kind: ClassVar[RecordKind]
    fields_model: ClassVar[type[BaseModel]]
    monthly: ClassVar[bool] = True
    tracks_status: ClassVar[bool] = False
    # None means every field may be edited
    editable_fields: ClassVar[frozenset[str] | None] = None

    def canonical_period(self, value: Any) -> str:
        """Canonical period key: ``YYYY-MM`` or ``YYYY-MM-DD``."""
        if self.monthly:
            return normalize_month(value, "period")
        return normalize_date(value, "period").isoformat()

    def defaults(self, employee: Employee) -> BaseModel:
        """Placeholder values for an employee with no record yet."""
        return self.fields_model()

    def is_meaningful(self, fields: BaseModel) -> bool:
        """Whether a placeholder with these values should be persisted."""
        return True

    def prepare(self, fields: BaseModel) -> BaseModel:
        """Hook applied to every row right before it is written."""
        return fields

    def check_editable(self, changes: Mapping[str, Any]) -> None:
        """Reject edits to fields that are not user-editable for this kind.

        Raises:
            ParseFailureError: If ``changes`` names a read-only field
        """
        if self.editable_fields is None:
            return
        for name, value in changes.items():
            if name not in self.editable_fields:
                raise ParseFailureError(name, value, f"{self.kind.value} field is read-only")

    def clamp(self, values: dict[str, Any]) -> dict[str, Any]:
        """Pull numeric values into their field bounds (best-effort imports)."""
        clamped = dict(values)
        for name, value in values.items():
            info = self.fields_model.model_fields.get(name)
            if info is None or isinstance(value, bool) or not isinstance(value, (int, Decimal)):
                continue
            low = next((m.ge for m in info.metadata if getattr(m, "ge", None) is not None), None)
            high = next((m.le for m in info.metadata if getattr(m, "le", None) is not None), None)
            if low is not None and value < low:
                clamped[name] = type(value)(low)
            elif high is not None and value > high:
                clamped[name] = type(value)(high)
            else:
                continue
            logger.warning("Clamped %s %s from %s to %s", self.kind.value, name, value, clamped[name])
        return clamped

    def initial_status(self) -> str | None:
        return None

    def load(self, payload: dict[str, Any] | None) -> BaseModel:
        """Decode a stored JSON payload."""
        return self.fields_model.model_validate(payload or {})

    def dump(self, fields: BaseModel) -> dict[str, Any]:
        """Encode field values for the JSON payload column."""
        return fields.model_dump(mode="json")

    def build(self, values: dict[str, Any], base: BaseModel | None = None) -> BaseModel:
        """Validate ``values`` (merged over ``base``) into the field model.

        Raises:
            ParseFailureError: If a value fails validation
        """
        merged = base.model_dump() if base is not None else {}
        merged.update(values)
        try:
            return self.fields_model.model_validate(merged)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or self.kind.value
            raise ParseFailureError(field, first.get("input"), first.get("msg")) from exc


class AttendanceSpec(KindSpec):
    kind = RecordKind.ATTENDANCE
    fields_model = AttendanceFields
    monthly = False

    def is_meaningful(self, fields: BaseModel) -> bool:
        assert isinstance(fields, AttendanceFields)
        return bool(
            fields.check_in
            or fields.check_out
            or fields.late_minutes > 0
            or fields.overtime_minutes > 0
        )


class KpiSpec(KindSpec):
    kind = RecordKind.KPI
    fields_model = KpiFields


class PayrollSpec(KindSpec):
    kind = RecordKind.PAYROLL
    fields_model = PayrollFields
    tracks_status = True
    editable_fields = frozenset({"overtime_amount", "late_deduction"})

    def defaults(self, employee: Employee) -> PayrollFields:
        return PayrollFields(
            basic_salary=employee.basic_salary or ZERO,
            variable_salary=employee.variable_salary or ZERO,
        ).with_net()

    def prepare(self, fields: BaseModel) -> PayrollFields:
        assert isinstance(fields, PayrollFields)
        return fields.with_net()

    def initial_status(self) -> str:
        return PayrollStatus.DRAFT.value


KIND_SPECS: dict[RecordKind, KindSpec] = {
    RecordKind.ATTENDANCE: AttendanceSpec(),
    RecordKind.KPI: KpiSpec(),
    RecordKind.PAYROLL: PayrollSpec(),
}


def get_spec(kind: RecordKind | str) -> KindSpec:
    """Look up the spec for a kind tag."""
    try:
        return KIND_SPECS[RecordKind(kind)]
    except ValueError:
        raise ParseFailureError("kind", kind, "unknown record kind") from None
