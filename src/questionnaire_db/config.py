"""Where the submissions database lives.

``DATABASE_URL`` wins when set.  Otherwise the URL is assembled from
``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE``.
Plain ``postgresql://`` URLs are rewritten to the asyncpg driver.
"""

import os

_ASYNC_SCHEME = "postgresql+asyncpg://"


def _url_from_pg_vars() -> str:
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "questionnaire")
    password = os.getenv("PG_PASSWORD", "questionnaire")
    database = os.getenv("PG_DATABASE", "questionnaire")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def get_async_url() -> str:
    url = os.getenv("DATABASE_URL") or _url_from_pg_vars()
    if url.startswith("postgresql://"):
        return _ASYNC_SCHEME + url[len("postgresql://"):]
    return url


def get_pool_settings() -> tuple[int, int]:
    """``(pool_size, max_overflow)`` from PG_POOL_SIZE / PG_MAX_OVERFLOW.

    Raises ValueError for non-integer or negative values.
    """
    pool_size = int(os.getenv("PG_POOL_SIZE", "5"))
    max_overflow = int(os.getenv("PG_MAX_OVERFLOW", "10"))
    if pool_size < 1 or max_overflow < 0:
        raise ValueError(f"Invalid pool settings: size={pool_size} overflow={max_overflow}")
    return pool_size, max_overflow
