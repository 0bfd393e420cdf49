"""Readiness checks: config, packages, database, redis."""
import asyncio
import logging
from typing import Optional

import redis.asyncio as redis_async
from sqlalchemy import text

from mentoring.infra.db.base import Database

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]


def check_config() -> CheckResult:
    """Load settings and read the keys the service cannot start without."""
    try:
        from mentoring.settings import get_settings
        s = get_settings()
        _ = s.app_name
        _ = s.database_url
        _ = s.redis_url
        return True, "ok"
    except Exception as e:
        return False, str(e)


def check_packages() -> CheckResult:
    """Import critical modules: uvicorn, sqlalchemy, redis, mentoring.main."""
    missing = []
    for module in ("uvicorn", "sqlalchemy", "redis", "mentoring.main"):
        try:
            __import__(module)
        except ImportError as e:
            missing.append(f"{module} ({e})")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def check_database_async(database: Optional[Database] = None, database_url: Optional[str] = None) -> CheckResult:
    """Run a trivial query against the database."""
    owned = database is None
    try:
        if owned:
            database = Database(database_url)
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True, "ok"
    except Exception as e:
        return False, str(e)
    finally:
        if owned and database is not None:
            await database.dispose()


async def check_redis_async(redis_url: str, required: bool) -> CheckResult:
    """Ping Redis. Skipped when fan-out is disabled."""
    if not required:
        return True, "skipped (fan-out disabled)"
    client = redis_async.from_url(redis_url)
    try:
        await client.ping()
        return True, "ok"
    except Exception as e:
        return False, str(e)
    finally:
        await client.aclose()


async def run_all_checks_async(database: Optional[Database] = None) -> ChecksDict:
    """Run all readiness checks. Reuses the app's Database handle when given."""
    from mentoring.settings import get_settings
    s = get_settings()
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": await check_database_async(database, s.database_url),
        "redis": await check_redis_async(s.redis_url, s.realtime_redis_fanout),
    }


def run_all_checks() -> ChecksDict:
    """Sync entry point for scripts."""
    return asyncio.run(run_all_checks_async())


def is_ready(checks: ChecksDict | None = None) -> tuple[bool, dict[str, str]]:
    """
    True if all required checks pass.
    Returns (ready, summary of name -> "ok" | "skipped ..." | error message).
    """
    if checks is None:
        checks = run_all_checks()
    required = {"config", "packages", "database", "redis"}
    summary = {name: msg for name, (passed, msg) in checks.items()}
    all_required = all(checks[n][0] for n in required if n in checks)
    return all_required, summary
