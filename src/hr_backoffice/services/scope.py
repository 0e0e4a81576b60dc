"""Scope resolution: which employees a caller may see.

Authentication and the project directory are external; this module only
receives the caller's role and project and turns them into a filter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import Select, false

from hr_backoffice.models import Employee

ALL_PROJECTS = "all"

ADMIN_ROLES = frozenset({"super_admin", "power_admin", "it_specialist", "hr_admin"})


class ProjectDirectory(Protocol):
    """Lookup of a project's display name by id."""

    async def project_name(self, project_id: str) -> str | None:
        ...


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as reported by the identity service."""

    role: str
    project_id: str | None = None
    user_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class Scope:
    """Project filter; ``aliases`` empty means every project."""

    aliases: tuple[str, ...] = ()
    empty: bool = False

    @classmethod
    def everything(cls) -> Scope:
        return cls(())

    @classmethod
    def nothing(cls) -> Scope:
        return cls((), empty=True)

    @classmethod
    def for_project(cls, project_id: str, project_name: str | None = None) -> Scope:
        """Employees store either the project id or its name."""
        aliases = (project_id,) if not project_name else (project_id, project_name)
        return cls(aliases)

    @property
    def is_all(self) -> bool:
        return not self.aliases and not self.empty

    def apply(self, query: Select) -> Select:
        """Restrict an Employee query to this scope."""
        if self.empty:
            return query.where(false())
        if self.is_all:
            return query
        return query.where(Employee.project.in_(self.aliases))

    def covers(self, project: str | None) -> bool:
        """Whether an employee stored under ``project`` falls in this scope."""
        if self.empty:
            return False
        return self.is_all or project in self.aliases

    def contains(self, employee: Employee) -> bool:
        return self.covers(employee.project)


async def resolve_scope(
    actor: Actor,
    selected_project_id: str | None = None,
    directory: ProjectDirectory | None = None,
) -> Scope:
    """Admins see the selected project (or all); others see only their own.

    A non-admin without a project gets an empty-result scope rather than
    every project.
    """
    if actor.is_admin:
        project_id = selected_project_id if selected_project_id not in (None, "", ALL_PROJECTS) else None
    else:
        project_id = actor.project_id
        if not project_id:
            return Scope.nothing()

    if project_id is None:
        return Scope.everything()

    name = await directory.project_name(project_id) if directory is not None else None
    return Scope.for_project(project_id, name)
