"""Tests for scope resolution and import identifier matching."""

from decimal import Decimal
from uuid import uuid4

import pytest

from hr_backoffice.errors import NotFoundError
from hr_backoffice.models import Employee
from hr_backoffice.services.identifier import IdentifierMatcher, normalize_code, normalize_email
from hr_backoffice.services.scope import Actor, Scope, resolve_scope

pytestmark = pytest.mark.asyncio


class StubDirectory:
    async def project_name(self, project_id):
        return {"P-01": "Alpha"}.get(project_id)


def make_employee(**kwargs) -> Employee:
    values = {"employee_id": uuid4(), "full_name": "Someone", "basic_salary": Decimal("1000")}
    values.update(kwargs)
    return Employee(**values)


class TestResolveScope:
    async def test_admin_without_selection_sees_everything(self):
        scope = await resolve_scope(Actor(role="hr_admin"))
        assert scope.is_all

    async def test_admin_all_selection(self):
        scope = await resolve_scope(Actor(role="super_admin", project_id="P-09"), "all")
        assert scope.is_all

    async def test_admin_selected_project_includes_display_name(self):
        scope = await resolve_scope(Actor(role="power_admin"), "P-01", StubDirectory())
        assert scope.aliases == ("P-01", "Alpha")

    async def test_non_admin_is_pinned_to_own_project(self):
        scope = await resolve_scope(Actor(role="manager", project_id="P-01"), "P-02", StubDirectory())
        assert scope.aliases == ("P-01", "Alpha")

    async def test_non_admin_without_project_sees_nothing(self):
        scope = await resolve_scope(Actor(role="employee"))
        assert not scope.is_all
        assert scope.contains(make_employee(project="P-01")) is False

    async def test_contains_matches_id_or_name(self):
        scope = Scope.for_project("P-01", "Alpha")
        assert scope.contains(make_employee(project="P-01"))
        assert scope.contains(make_employee(project="Alpha"))
        assert not scope.contains(make_employee(project="P-02"))
        assert Scope.everything().contains(make_employee(project=None))


class TestIdentifierMatcher:
    def build(self):
        self.alice = make_employee(employee_code="1001", email="Alice@Example.com")
        self.bob = make_employee(employee_code="B-7", email="bob@example.com")
        return IdentifierMatcher([self.alice, self.bob])

    async def test_normalizers(self):
        assert normalize_code(1001.0) == "1001"
        assert normalize_code(Decimal("1001")) == "1001"
        assert normalize_code("  B-7 ") == "B-7"
        assert normalize_code("") is None
        assert normalize_email(" Alice@Example.COM ") == "alice@example.com"

    async def test_code_first_then_email_then_id(self):
        matcher = self.build()
        assert matcher.match(code=1001.0) == self.alice.employee_id
        assert matcher.match(code="missing", email="BOB@example.com") == self.bob.employee_id
        assert matcher.match(employee_id=str(self.alice.employee_id)) == self.alice.employee_id

    async def test_code_wins_over_email(self):
        matcher = self.build()
        assert matcher.match(code="B-7", email="alice@example.com") == self.bob.employee_id

    async def test_no_match(self):
        matcher = self.build()
        assert matcher.match(code="999", email="nobody@example.com", employee_id="not-a-uuid") is None
        assert matcher.match(employee_id=uuid4()) is None

    async def test_resolve_raises_not_found(self):
        matcher = self.build()
        with pytest.raises(NotFoundError):
            matcher.resolve({"employee_code": "999", "email": ""})

    async def test_resolve_uses_alternate_columns(self):
        matcher = self.build()
        row = {"code": "B-7"}
        assert matcher.resolve(row, code_keys=("employee_code", "code")) == self.bob.employee_id
