"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.database import init_db
from hr_backoffice.services.scope import Actor, Scope, resolve_scope


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; uncommitted work is rolled back on close."""
    _, factory = init_db()
    async with factory() as session:
        yield session


async def get_actor(
    x_user_role: Annotated[str | None, Header()] = None,
    x_project_id: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Actor:
    """Caller identity as forwarded by the authenticating proxy."""
    if not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Role header is required",
        )
    return Actor(role=x_user_role.strip().lower(), project_id=x_project_id or None, user_id=x_user_id)


async def get_scope(
    request: Request,
    actor: Annotated[Actor, Depends(get_actor)],
    project_id: Annotated[str | None, Query()] = None,
) -> Scope:
    """Project filter for the caller; admins may pick a project."""
    directory = getattr(request.app.state, "project_directory", None)
    return await resolve_scope(actor, project_id, directory)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentScope = Annotated[Scope, Depends(get_scope)]
