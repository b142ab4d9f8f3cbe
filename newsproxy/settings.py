from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the news proxy and its cache.

    Notes
    -----
    - Every field can be overridden by the upper-cased environment variable of
      the same name (e.g. `NEWS_API_KEY`, `CACHE_TTL_NEWS_ITEM`) or a `.env` file.
    - `REQUEST_TIMEOUT` is given in milliseconds; `request_timeout` exposes it
      in seconds.
    - TTLs (time-to-live) and intervals are expressed in seconds.
      `CACHE_SWEEP_INTERVAL=0` disables the background sweeper.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8",
                                      extra="ignore", populate_by_name=True)

    news_api_base_url: str = "https://api.currentsapi.services/v1"
    news_api_key: str = ""
    request_timeout_ms: int = Field(default=10000, alias="REQUEST_TIMEOUT")
    log_level: str = "INFO"
    # in-memory cache
    cache_default_ttl: float = 5 * 60
    cache_sweep_interval: Optional[float] = 60
    cache_ttl_news_list: float = 5 * 60  # latest/search listings
    cache_ttl_news_item: float = 10 * 60  # single-article lookups

    @field_validator("cache_sweep_interval")
    @classmethod
    def _zero_disables_sweeper(cls, v: Optional[float]) -> Optional[float]:
        return v or None

    @property
    def request_timeout(self) -> float:
        return self.request_timeout_ms / 1000


settings = Settings()
