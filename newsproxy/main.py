import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from .cache import ExpiringCache
from .news_client import NewsClient
from .settings import Settings


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the `newsproxy` logger once and set its level."""
    logger = logging.getLogger("newsproxy")
    logger.setLevel(level.upper())
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(handler)
    return logger


def build_cache(config: Settings) -> ExpiringCache:
    """Build the shared cache from the configured default TTL and sweep interval."""
    return ExpiringCache(default_ttl=config.cache_default_ttl,
                         sweep_interval=config.cache_sweep_interval)


@contextmanager
def news_service(config: Optional[Settings] = None) -> Iterator[NewsClient]:
    """Compose a `NewsClient` over a fresh cache and stop the sweeper on exit.

    Parameters
    ----------
    config : Optional[Settings]
        Settings to use. Read from the environment when omitted.

    Examples
    --------
    >>> with news_service() as news:                      # doctest: +SKIP
    ...     items = asyncio.run(news.fetch_latest("technology"))
    """

    config = config or Settings()
    configure_logging(config.log_level)
    cache = build_cache(config)
    try:
        yield NewsClient(cache, config)
    finally:
        cache.shutdown()
