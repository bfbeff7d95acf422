import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.config import settings
from app.database import engine, get_db
from app.dependencies import get_pow_service, get_rate_limiter
from app.logging_config import setup_logging
from app.middleware.logging import CORRELATION_HEADER, LoggingMiddleware
from app.middleware.rate_limit import limiter
from app.routers import challenges, pastes
from app.scheduler import shutdown_scheduler, start_scheduler
from app.schemas.paste import HealthStatus
from app.services.paste_service import check_health
from app.services.pow_service import PowService
from app.services.rate_limiter import TokenBucket
from pastecore.errors import (
    InvalidToken,
    NotFound,
    PasteError,
    PowInvalid,
    PowRequired,
    RateLimited,
    ServerError,
    ValidationError,
)

# Database tables are managed by Alembic migrations
# Run: alembic upgrade head

REQUIRED_TABLES = {"pastes"}

ERROR_STATUS = {
    ValidationError: 400,
    PowRequired: 400,
    PowInvalid: 400,
    InvalidToken: 403,
    NotFound: 404,
    RateLimited: 429,
    ServerError: 500,
}


def check_database_tables() -> None:
    """Fail fast with an actionable message if migrations have not been run."""
    existing = set(inspect(engine).get_table_names())
    missing = REQUIRED_TABLES - existing
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(sorted(missing))}. "
            "Run migrations first: alembic upgrade head"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - check schema, start/stop scheduler."""
    setup_logging()
    check_database_tables()
    start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="zkpaste",
    description="Zero-knowledge encrypted paste service",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def status_for(exc: PasteError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


@app.exception_handler(PasteError)
async def paste_error_handler(request: Request, exc: PasteError) -> JSONResponse:
    """Expected errors: taxonomy label only, never internals."""
    return JSONResponse(status_code=status_for(exc), content={"error": exc.code})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors: generic 500 that still carries the correlation id."""
    headers = {}
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        headers[CORRELATION_HEADER] = correlation_id
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
        headers=headers,
    )


app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(challenges.router, prefix="/api", tags=["pow"])
app.include_router(pastes.router, prefix="/api", tags=["pastes"])


@app.get("/api/health", response_model=HealthStatus)
def health_check(
    db: Session = Depends(get_db),
    pow_service: PowService = Depends(get_pow_service),
    rate_limiter: TokenBucket | None = Depends(get_rate_limiter),
):
    db_healthy = check_health(db)
    return HealthStatus(
        status="ok" if db_healthy else "degraded",
        timestamp_ms=int(time.time() * 1000),
        pow_enabled=pow_service.enabled,
        rate_limiting_enabled=rate_limiter is not None,
        database_healthy=db_healthy,
    )


@app.head("/api/health")
def health_head():
    return Response(status_code=200)
