import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .cache import CacheNamespace, ExpiringCache
from .schemas import CacheStats, NewsItem, UpstreamArticle, UpstreamNewsResponse
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


def to_news_item(article: UpstreamArticle) -> NewsItem:
    """Map an upstream article onto the public `NewsItem` shape."""
    return NewsItem(
        id=article.id,
        title=article.title,
        content=article.description or "",
        author=article.author or "",
        published_at=article.published or "",
        category=article.category[0] if article.category else "general",
    )


class NewsClient:
    """Async client for the Currents news API, fronted by an expiring cache.

    Parameters
    ----------
    cache : ExpiringCache
        Shared cache instance. The client never owns its lifecycle; whoever
        composes the service calls `cache.shutdown()`.
    config : Optional[Settings]
        Base URL, API key, timeout and TTLs. Defaults to the module-level settings.
    transport : Optional[httpx.AsyncBaseTransport]
        Transport handed to `httpx.AsyncClient`, mainly for tests.

    Notes
    -----
    - Every query follows the same fetch-or-compute pattern: derive a key,
      `get` it, and on a miss fetch upstream and `set` the result.
    - A failed fetch returns `[]` (or `None` for single items) and stores
      nothing, so the next request for that key retries upstream.
    - Listings are cached under `news_*` keys, single items under `news_item_*`.
      A listing whose key would fall under `news_item_*` is served uncached.
    - Malformed upstream articles are skipped; the rest of the page is kept.
    """

    def __init__(self, cache: ExpiringCache, config: Optional[Settings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or default_settings
        self.base_url = self.config.news_api_base_url.rstrip("/")
        self.cache = cache
        self._transport = transport
        self._listings = CacheNamespace[List[NewsItem]](cache, "news_")
        self._items = CacheNamespace[NewsItem](cache, "news_item_")

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        """Perform a GET request against the news API and return parsed JSON.

        Raises
        ------
        httpx.HTTPStatusError
            If the response has a 4xx/5xx status code.
        httpx.RequestError
            For transport-level errors (DNS, timeouts, etc.).
        """

        query = {"apiKey": self.config.news_api_key, "language": "en", **params}
        async with httpx.AsyncClient(timeout=self.config.request_timeout,
                                     headers={"User-Agent": "NewsAPI/1.0"},
                                     transport=self._transport) as client:
            r = await client.get(f"{self.base_url}{path}", params=query)
            r.raise_for_status()
            return r.json()

    async def _fetch_articles(self, path: str, params: Dict[str, Any]) -> Optional[List[UpstreamArticle]]:
        """Fetch and validate an upstream listing, or `None` on any failure."""
        try:
            data = await self._get_json(path, params)
        except httpx.HTTPError as exc:
            logger.error("News API request failed: %s %s", path, exc)
            return None
        except ValueError:
            logger.exception("News API returned a non-JSON body for %s", path)
            return None
        try:
            payload = UpstreamNewsResponse.model_validate(data)
        except ValidationError:
            payload = None
        if payload is None or payload.news is None:
            logger.warning("Invalid response format from external API")
            return None

        articles = []
        for raw in payload.news:
            try:
                articles.append(UpstreamArticle.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed article from %s: %s", path, exc.errors())
        return articles

    async def _cached_listing(self, key: str, path: str, params: Dict[str, Any],
                              match: Optional[str] = None, field: str = "") -> List[NewsItem]:
        cache_key = self._listings.key_for(key)
        # listing keys must stay out of the single-item namespace
        cacheable = not cache_key.startswith(self._items.prefix)
        if cacheable:
            cached = self._listings.get(key)
            if cached is not None:
                logger.info("Cache hit for %s", cache_key)
                return cached
        else:
            logger.debug("Not caching %s: collides with single-item keys", cache_key)

        logger.info("Fetching from external API: %s", cache_key)
        articles = await self._fetch_articles(path, params)
        if articles is None:
            return []
        if match is not None:
            needle = match.lower()
            articles = [a for a in articles if needle in (getattr(a, field) or "").lower()]
        items = [to_news_item(a) for a in articles]
        if cacheable:
            self._listings.set(key, items, self.config.cache_ttl_news_list)
        return items

    async def fetch_latest(self, category: Optional[str] = None) -> List[NewsItem]:
        """Latest headlines for a category (`"general"` when omitted).

        Cached under `news_<category>`; source: `{base_url}/latest-news`.
        """

        category = category or "general"
        return await self._cached_listing(category, "/latest-news",
                                          {"category": category, "limit": SEARCH_LIMIT})

    async def fetch_by_author(self, author: str) -> List[NewsItem]:
        """Search articles and keep those whose author contains `author` (case-insensitive)."""
        return await self._cached_listing(f"author_{author}", "/search",
                                          {"keywords": author, "limit": SEARCH_LIMIT},
                                          match=author, field="author")

    async def fetch_by_title(self, title: str) -> List[NewsItem]:
        return await self._cached_listing(f"title_{title}", "/search",
                                          {"keywords": title, "limit": SEARCH_LIMIT},
                                          match=title, field="title")

    async def fetch_by_keywords(self, keywords: str) -> List[NewsItem]:
        return await self._cached_listing(f"keywords_{keywords}", "/search",
                                          {"keywords": keywords, "limit": SEARCH_LIMIT})

    async def fetch_by_id(self, news_id: str) -> Optional[NewsItem]:
        """Look up a single article by id.

        Parameters
        ----------
        news_id : str
            Upstream article id, sent as the search keyword.

        Returns
        -------
        Optional[NewsItem]
            The first matching article, or `None` if nothing matched or the
            fetch failed. Only found articles are cached (`news_item_<id>`).
        """

        cached = self._items.get(news_id)
        if cached is not None:
            logger.info("Cache hit for news item: %s", news_id)
            return cached

        logger.info("Fetching news item from external API: %s", news_id)
        articles = await self._fetch_articles("/search", {"keywords": news_id, "limit": 1})
        if not articles:
            return None
        item = to_news_item(articles[0])
        self._items.set(news_id, item, self.config.cache_ttl_news_item)
        return item

    def clear_cache(self) -> None:
        """Administrative reset: drop every cached entry and zero the counters."""
        self.cache.clear()
        logger.info("News cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()
