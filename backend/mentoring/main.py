"""Main FastAPI application."""
import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mentoring.api.chat import router as chat_router
from mentoring.api.goals import router as goals_router
from mentoring.api.mentoring import router as mentoring_router
from mentoring.api.realtime import router as realtime_router
from mentoring.domain.assistant.services import TextGenerator
from mentoring.domain.common.errors import (
    ConflictError,
    GenerationError,
    InvalidTransitionError,
    NotConfiguredError,
    NotFoundError,
    PersistenceError,
    ValidationError as DomainValidationError,
)
from mentoring.infra.db.base import Database
from mentoring.infra.messaging.redis_bus import RedisBus, RedisFanoutPublisher
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher
from mentoring.settings import settings

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build whatever collaborators were not injected, then tear down the ones built here."""
    owned_database = getattr(app.state, "database", None) is None
    owned_dispatcher = getattr(app.state, "dispatcher", None) is None
    if owned_database:
        app.state.database = Database(settings.database_url, echo=settings.database_echo)
    if owned_dispatcher:
        app.state.dispatcher = RealtimeDispatcher(queue_size=settings.realtime_queue_size)

    redis_bus: Optional[RedisBus] = None
    fanout_task: Optional[asyncio.Task] = None
    if settings.realtime_redis_fanout and getattr(app.state, "publisher", None) is None:
        try:
            redis_bus = RedisBus(settings.redis_url)
            await redis_bus.connect()
            publisher = RedisFanoutPublisher(redis_bus, app.state.dispatcher, settings.realtime_channel)
            fanout_task = asyncio.create_task(
                redis_bus.subscribe_forever(settings.realtime_channel, publisher.forward)
            )
            app.state.publisher = publisher
            logger.info(f"✅ [REALTIME] Redis fan-out enabled on {settings.realtime_channel}")
        except Exception as e:
            logger.warning(f"⚠️ [REALTIME] Could not connect to Redis, delivering locally only: {e}")
            redis_bus = None

    yield

    try:
        if fanout_task is not None:
            fanout_task.cancel()
            try:
                await fanout_task
            except asyncio.CancelledError:
                pass
        if redis_bus is not None:
            await redis_bus.disconnect()
            app.state.publisher = None
        if owned_dispatcher:
            await app.state.dispatcher.aclose()
        if owned_database:
            await app.state.database.dispose()
    except asyncio.CancelledError:
        logger.info("Lifespan shutdown cancelled (e.g. Ctrl+C); cleanup attempted.")
        raise


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.info(f"📥 [SERVER REQUEST] {request.method} {request.url.path}")
        logger.debug(f"   Query params: {dict(request.query_params)}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"📤 [SERVER RESPONSE] {request.method} {request.url.path} - {response.status_code} ({process_time:.3f}s)"
        )
        return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with detailed logging."""
    errors = exc.errors()
    logger.error(f"❌ [VALIDATION ERROR] {request.method} {request.url.path}")
    for i, error in enumerate(errors, 1):
        logger.error(f"   Error {i}: {json.dumps(error, default=str)}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(errors)})


def jsonable_errors(errors) -> list:
    # ctx may hold exception instances that JSONResponse cannot serialize
    return json.loads(json.dumps(errors, default=str))


async def domain_not_found_handler(request: Request, exc: NotFoundError):
    """Return 404 when a resource is not found."""
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc), "resource": exc.resource, "id": exc.identifier},
    )


async def domain_validation_handler(request: Request, exc: DomainValidationError):
    """Return 422 for domain validation errors."""
    return JSONResponse(status_code=422, content={"detail": exc.message})


async def domain_invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    """Return 409 with the relationship's current status."""
    return JSONResponse(
        status_code=409,
        content={
            "detail": exc.message,
            "current_status": exc.current_status,
            "requested_status": exc.requested_status,
        },
    )


async def domain_conflict_handler(request: Request, exc: ConflictError):
    """Return 409 for conflict errors."""
    return JSONResponse(
        status_code=409,
        content={"detail": exc.message, "current_status": exc.current_status},
    )


async def domain_persistence_handler(request: Request, exc: PersistenceError):
    """Return 503; content is echoed back so the client can resubmit it."""
    return JSONResponse(status_code=503, content={"detail": exc.message, "content": exc.content})


async def domain_not_configured_handler(request: Request, exc: NotConfiguredError):
    return JSONResponse(status_code=503, content={"detail": exc.message})


async def domain_generation_handler(request: Request, exc: GenerationError):
    return JSONResponse(status_code=502, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(NotFoundError, domain_not_found_handler)
    app.add_exception_handler(DomainValidationError, domain_validation_handler)
    app.add_exception_handler(InvalidTransitionError, domain_invalid_transition_handler)
    app.add_exception_handler(ConflictError, domain_conflict_handler)
    app.add_exception_handler(PersistenceError, domain_persistence_handler)
    app.add_exception_handler(NotConfiguredError, domain_not_configured_handler)
    app.add_exception_handler(GenerationError, domain_generation_handler)


def create_app(
    database: Optional[Database] = None,
    dispatcher: Optional[RealtimeDispatcher] = None,
    text_generator: Optional[TextGenerator] = None,
) -> FastAPI:
    """Build the application. Collaborators passed here are used as-is and never disposed by the app."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    if database is not None:
        app.state.database = database
    if dispatcher is not None:
        app.state.dispatcher = dispatcher
    if text_generator is not None:
        app.state.text_generator = text_generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    prefix = settings.api_v1_prefix
    app.include_router(mentoring_router, prefix=prefix)
    app.include_router(chat_router, prefix=prefix)
    app.include_router(goals_router, prefix=prefix)
    app.include_router(realtime_router, prefix=prefix)

    @app.get("/health")
    @app.get(f"{prefix}/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": settings.app_version}

    @app.get("/ready")
    async def readiness(request: Request):
        """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
        from mentoring.readiness import is_ready, run_all_checks_async
        checks = await run_all_checks_async(getattr(request.app.state, "database", None))
        ready, summary = is_ready(checks)
        if ready:
            return {"ready": True, "checks": summary}
        return JSONResponse(status_code=503, content={"ready": False, "checks": summary})

    return app


configure_logging()
app = create_app()
