"""Translate SQLAlchemy failures into domain errors."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.common.errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_errors(
    session: AsyncSession,
    action: str,
    conflict_message: Optional[str] = None,
    content: Optional[str] = None,
) -> AsyncIterator[None]:
    """Roll back and re-raise store failures as ConflictError / PersistenceError.

    IntegrityError becomes ConflictError only when conflict_message is given;
    otherwise every failure is a PersistenceError carrying `content`.
    """
    try:
        yield
    except IntegrityError as e:
        await session.rollback()
        if conflict_message is not None:
            logger.info(f"⚠️ [DB] {action} conflict: {e.orig}")
            raise ConflictError(conflict_message) from e
        logger.error(f"❌ [DB] {action} failed integrity check: {e.orig}")
        raise PersistenceError(f"{action} failed", content=content) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"❌ [DB] {action} failed: {e}")
        raise PersistenceError(f"{action} failed", content=content) from e
