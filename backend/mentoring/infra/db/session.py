"""Per-request database sessions."""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.common.errors import NotConfiguredError
from mentoring.infra.db.base import Database


def get_database(request: Request) -> Database:
    """The Database handle wired at startup."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise NotConfiguredError("Database")
    return database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    database = get_database(request)
    async with database.session() as session:
        yield session
