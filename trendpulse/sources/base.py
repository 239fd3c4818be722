"""SourcePost / TrendingItem dataclasses + TrendSource ABC."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..normalize import normalize_topic


def _count(value) -> int:
    """Coerce an upstream counter to a non-negative int."""
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


@dataclass
class SourcePost:
    """One piece of content observed on a source."""
    source: str
    external_id: str  # unique within source
    content: str
    author_handle: Optional[str] = None
    author_name: Optional[str] = None
    url: Optional[str] = None
    media_urls: list = field(default_factory=list)
    likes: int = 0
    reposts: int = 0
    comments: int = 0
    views: int = 0
    hashtags: list = field(default_factory=list)
    topics: list = field(default_factory=list)
    region: Optional[str] = None
    category: Optional[str] = None
    posted_at: Optional[datetime] = None

    def __post_init__(self):
        self.likes = _count(self.likes)
        self.reposts = _count(self.reposts)
        self.comments = _count(self.comments)
        self.views = _count(self.views)

    @property
    def identity(self) -> tuple:
        return (self.source, self.external_id)

    @property
    def engagement_score(self) -> int:
        # Comments and reposts are stronger signals than a like
        return self.likes + self.comments * 3 + self.reposts * 2

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "external_id": self.external_id,
            "content": self.content,
            "author_handle": self.author_handle,
            "author_name": self.author_name,
            "url": self.url,
            "media_urls": list(self.media_urls),
            "likes": self.likes,
            "reposts": self.reposts,
            "comments": self.comments,
            "views": self.views,
            "hashtags": list(self.hashtags),
            "topics": list(self.topics),
            "region": self.region,
            "category": self.category,
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
            "engagement_score": self.engagement_score,
        }


@dataclass
class TrendingItem:
    """One named topic/hashtag observed on a source, independent of any single post."""
    name: str
    source: str
    post_count: int = 1
    engagement: int = 0
    hashtag: Optional[str] = None
    url: Optional[str] = None
    region: Optional[str] = None

    def __post_init__(self):
        self.post_count = _count(self.post_count)
        self.engagement = _count(self.engagement)

    @property
    def canonical_key(self) -> str:
        return normalize_topic(self.name)


class TrendSource(ABC):
    """Abstract base class for one external platform.

    Fetch methods are best-effort: upstream failures are logged and produce an
    empty list. Only invalid arguments raise.
    """

    name: str = "unknown"

    @abstractmethod
    def fetch_trending(self, region: Optional[str] = None) -> list[TrendingItem]:
        """Trending topics/hashtags on this source."""
        ...

    @abstractmethod
    def fetch_viral(self, region: Optional[str] = None, limit: int = 50,
                    category: Optional[str] = None) -> list[SourcePost]:
        """Hot posts, ranked and de-duplicated within this source."""
        ...

    def search(self, query: str, limit: int = 25) -> list[SourcePost]:
        """Free-text search; only sources with ``supports_search`` implement it."""
        raise NotImplementedError(f"{self.name} does not support search")

    @property
    def supports_search(self) -> bool:
        return type(self).search is not TrendSource.search

    @property
    def is_available(self) -> bool:
        """Check if this source is configured and available."""
        return True

    @staticmethod
    def check_limit(limit: int) -> int:
        if limit is None or limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit!r}")
        return limit
