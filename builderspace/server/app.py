from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from loguru import logger

from builderspace.server.backplane import RedisBackplane
from builderspace.server.db.engine import create_engine, create_session_factory
from builderspace.server.errors import BuilderSpaceError, UnexpectedError, ValidationError
from builderspace.server.log import setup_logging
from builderspace.server.registry import ConnectionRegistry
from builderspace.server.settings import BuilderSpaceSettings, get_settings
from builderspace.server.sync import StateSyncService


def create_realtime_services(settings: BuilderSpaceSettings) -> tuple[ConnectionRegistry, StateSyncService]:
    """Build the connection registry and the sync service that broadcasts through it."""
    registry = ConnectionRegistry(send_timeout=settings.send_timeout)
    sync = StateSyncService(
        registry,
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        operation_timeout=settings.operation_timeout,
    )
    return registry, sync


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    logger.info("BuilderSpace starting (host={}, port={})", settings.host, settings.port)

    # -- Initialise state fields (always present, possibly None) ----------------
    _app.state.db_engine = None
    _app.state.db_session_factory = None
    _app.state.redis = None
    _app.state.backplane = None
    _app.state.registry, _app.state.sync_service = create_realtime_services(settings)

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info("Database: connected ({})", engine.url.get_backend_name())
    else:
        logger.warning("BUILDERSPACE_DATABASE_URL not set -- database features disabled")

    # -- Redis backplane -------------------------------------------------------
    if settings.redis_url:
        _app.state.redis = aioredis.from_url(
            settings.redis_url,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        backplane = RedisBackplane(_app.state.redis, _app.state.registry, channel=settings.broadcast_channel)
        await backplane.start()
        _app.state.registry.attach_backplane(backplane)
        _app.state.backplane = backplane
    else:
        logger.warning("BUILDERSPACE_REDIS_URL not set -- broadcasts reach this process only")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("BuilderSpace shutting down (connections={})", _app.state.registry.total_connections)

    if _app.state.backplane is not None:
        _app.state.registry.attach_backplane(None)
        await _app.state.backplane.stop()

    if _app.state.redis is not None:
        await _app.state.redis.aclose()
        logger.info("Redis: closed")

    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("Database: disposed")


app = FastAPI(title="BuilderSpace", lifespan=lifespan)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """Render ``{"error": {"code", "message"}, "timestamp"}``."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message},
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


@app.exception_handler(BuilderSpaceError)
async def handle_domain_error(_request: Request, exc: BuilderSpaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.opt(exception=exc).error("Request failed: {}", exc.message)
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, paths and queries are validation errors (400), like domain validation."""
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:])
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    return _error_response(ValidationError.status_code, ValidationError.code, "; ".join(problems) or "Invalid request")


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return _error_response(UnexpectedError.status_code, UnexpectedError.code, "An unexpected error occurred")


# ---------------------------------------------------------------------------
# API router -- all HTTP endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from builderspace.server.routers.group_chat import router as group_chat_router  # noqa: E402
from builderspace.server.routers.links import router as links_router  # noqa: E402
from builderspace.server.routers.posts import router as posts_router  # noqa: E402
from builderspace.server.routers.realtime import router as realtime_router  # noqa: E402
from builderspace.server.routers.screening import router as screening_router  # noqa: E402
from builderspace.server.routers.tasks import router as tasks_router  # noqa: E402
from builderspace.server.routers.teams import router as teams_router  # noqa: E402
from builderspace.server.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(posts_router)
api.include_router(teams_router)
api.include_router(workspaces_router)
api.include_router(group_chat_router)
api.include_router(links_router)
api.include_router(tasks_router)
api.include_router(screening_router)

app.include_router(api)

# -- WebSocket ---------------------------------------------------------------
app.include_router(realtime_router)
