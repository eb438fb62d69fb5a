import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

import dirttrails.models  # noqa: F401  registers tables on Base.metadata
from dirttrails.api.v1.routes import router as api_router
from dirttrails.core.config import get_settings, parse_csv_list
from dirttrails.core.database import Base, engine
from dirttrails.core.logging import configure_logging
from dirttrails.middlewares.rate_limit import limiter

settings = get_settings()
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_csv_list(settings.cors_origins or ""),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_v1_prefix)

_started_at = time.time()


def _uptime() -> int:
    return int(max(0, time.time() - _started_at))


@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_timeout_handler(request, exc):
    logger.warning("Database pool exhausted on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Service is busy. Please retry in a moment."})


@app.on_event("startup")
def create_tables_if_enabled():
    # Local/dev convenience; deployed databases are migrated with alembic.
    if not settings.auto_create_tables:
        return
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as exc:
        logger.warning("Skipping table creation, database unavailable: %s", exc)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "ok", "service": settings.app_name, "environment": settings.environment, "uptime_seconds": _uptime()}


@app.get("/readyz")
def readyz():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Readiness check failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "not_ready", "detail": "database_unavailable"})
    return {"status": "ready", "uptime_seconds": _uptime()}
