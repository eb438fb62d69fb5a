import logging
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from dirttrails.core.config import Settings, get_settings


class Base(DeclarativeBase):
    pass


logger = logging.getLogger(__name__)

# Managed Postgres hosts drop idle sockets; local ones are trusted without TLS.
_LOCAL_DB_HOSTS = {"localhost", "127.0.0.1", "db", "postgres"}
_MIN_POOL = {"pool_size": 5, "max_overflow": 5, "pool_timeout": 8}


def normalize_database_url(database_url: str) -> str:
    """Point bare postgres URLs at the psycopg 3 driver."""
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+psycopg://" + database_url[len(prefix):]
    return database_url


def _is_memory_sqlite(database_url: str) -> bool:
    return ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"


def engine_options(database_url: str, settings: Settings) -> dict:
    parsed = urlparse(database_url)
    if parsed.scheme.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(database_url):
            # One shared connection, otherwise every session sees an empty database.
            options["poolclass"] = StaticPool
        return options
    if not parsed.scheme.startswith("postgresql"):
        return {}

    connect_args = {"keepalives": 1, "keepalives_idle": 30, "keepalives_interval": 10, "keepalives_count": 5}
    if parsed.hostname not in _LOCAL_DB_HOSTS:
        connect_args["sslmode"] = "require"

    configured = {
        "pool_size": int(settings.db_pool_size),
        "max_overflow": int(settings.db_max_overflow),
        "pool_timeout": int(settings.db_pool_timeout),
    }
    pool = {key: max(_MIN_POOL[key], value) for key, value in configured.items()}
    if pool != configured:
        logger.warning("Raised DB pool settings from %s to %s", configured, pool)

    return {
        "connect_args": connect_args,
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": settings.db_pool_recycle,
        "pool_use_lifo": True,
        **pool,
    }


settings = get_settings()
database_url = normalize_database_url(settings.database_url)

engine = create_engine(database_url, **engine_options(database_url, settings))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
