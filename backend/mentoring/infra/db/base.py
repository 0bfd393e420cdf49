"""Database base configuration."""
import logging
import os
import ssl
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)


def normalize_async_pg_url(url: str) -> str:
    """Ensure URL uses asyncpg driver; cloud often gives postgresql:// (sync)."""
    u = (url or "").strip()
    if u.startswith("postgresql://") and "postgresql+asyncpg" not in u[:22]:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _ssl_context_no_verify() -> ssl.SSLContext:
    """SSL context that skips certificate verification (for local/one-off use only)."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def async_pg_connect_args(url: str) -> dict:
    """Build connect_args for asyncpg: use ssl when URL has sslmode=require (asyncpg does not accept sslmode).
    Set DATABASE_SSL_VERIFY=true to enable strict certificate verification."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    use_ssl = qs.get("sslmode") == ["require"]
    if not use_ssl:
        return {}
    verify = os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower()
    if verify in ("true", "1"):
        return {"ssl": True}
    return {"ssl": _ssl_context_no_verify()}


def async_pg_url_without_sslmode(url: str) -> str:
    """Return URL with sslmode removed so asyncpg does not get unknown kwarg sslmode."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    if "sslmode" not in qs:
        return url
    qs.pop("sslmode", None)
    new_query = urlencode(qs, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


class _NullPoolTolerant(NullPool):
    """NullPool that logs connection terminate/close failures at DEBUG instead of ERROR.

    When a WebSocket client disconnects mid-request, asyncpg's terminate() can raise.
    The connection is gone anyway, so the failure is only logged.
    """

    def _close_connection(self, connection, *, terminate=False):
        self.logger.debug(
            "%s connection %r",
            "Hard-closing" if terminate else "Closing",
            connection,
        )
        try:
            if terminate:
                self._dialect.do_terminate(connection)
            else:
                self._dialect.do_close(connection)
        except BaseException as e:
            if not isinstance(e, Exception):
                raise
            self.logger.debug(
                "Connection %s failed (connection may already be closed): %s",
                "terminate" if terminate else "close",
                e,
                exc_info=True,
            )


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Database:
    """Engine and session factory, constructed once at startup and held on app.state."""

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = normalize_async_pg_url(url)
        if engine is None:
            kwargs = {"echo": echo, "future": True}
            if self.url.startswith("postgresql+asyncpg"):
                # No connection reuse; avoids "connection is closed" after cancelled requests.
                kwargs["poolclass"] = _NullPoolTolerant
                kwargs["connect_args"] = async_pg_connect_args(self.url)
                engine = create_async_engine(async_pg_url_without_sslmode(self.url), **kwargs)
            else:
                engine = create_async_engine(self.url, **kwargs)
        self.engine = engine
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def create_all(self) -> None:
        """Create tables directly from metadata (tests and local sqlite). Production uses alembic."""
        import mentoring.infra.db.models  # noqa: F401  (register models on Base.metadata)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("🔌 [DB] Engine disposed")
