"""Database configuration — reads connection parameters from environment.

Supports two modes:
1. A single ``DATABASE_URL`` env var (takes precedence).
2. Individual ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``,
   ``PG_DATABASE`` env vars (convenient for docker-compose).

The runtime engine is async, so URLs are normalised to an async driver:
``postgresql://`` becomes ``postgresql+asyncpg://`` and ``sqlite://``
becomes ``sqlite+aiosqlite://``.
"""

import os


def _build_url_from_parts() -> str:
    """Construct a PostgreSQL connection string from individual env vars."""
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "trias")
    password = os.getenv("PG_PASSWORD", "trias")
    database = os.getenv("PG_DATABASE", "trias")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def to_async_url(url: str) -> str:
    """Ensure *url* names an async driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def get_async_url() -> str:
    """Return the async connection URL for the SQLAlchemy engine."""
    url = os.getenv("DATABASE_URL")
    if url:
        return to_async_url(url)
    return to_async_url(_build_url_from_parts())
