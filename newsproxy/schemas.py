from typing import Any, List, Optional
from pydantic import BaseModel, Field


class NewsItem(BaseModel):
    """A news article as served to callers.

    Notes
    -----
    - Built from the upstream article: `content` comes from `description` and
      `published_at` from `published`.
    - `category` is the first upstream category, or `"general"` when none is given.
    """

    id: str
    title: str
    content: str = ""
    author: str = ""
    published_at: str = ""
    category: str = "general"


class UpstreamArticle(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    author: Optional[str] = None
    published: Optional[str] = None
    category: Optional[List[str]] = None


class UpstreamNewsResponse(BaseModel):
    status: Optional[str] = None
    # raw entries; NewsClient validates each article on its own
    news: Optional[List[Any]] = None


class CacheStats(BaseModel):
    size: int
    keys: List[str] = Field(default_factory=list)
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
