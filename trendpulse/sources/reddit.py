"""Reddit .json API source (hot posts, title-derived trending, search)."""

import concurrent.futures
import math
from datetime import datetime, timezone

import requests

from ..config import USER_AGENT
from ..log import get_logger
from ..normalize import extract_hashtags, normalize_topic, significant_words
from ..retry import with_retry
from .base import SourcePost, TrendingItem, TrendSource

BASE_URL = "https://www.reddit.com"
MIN_TOPIC_POSTS = 2
MAX_TOPICS = 30

DEFAULT_SUBREDDITS = [
    # News
    {"sub": "worldnews", "region": "global", "category": "News"},
    {"sub": "news", "region": "global", "category": "News"},
    {"sub": "UpliftingNews", "region": "global", "category": "News"},
    # Tech
    {"sub": "technology", "region": "global", "category": "Technology"},
    {"sub": "gadgets", "region": "global", "category": "Technology"},
    # Business
    {"sub": "business", "region": "global", "category": "Business"},
    {"sub": "economy", "region": "global", "category": "Economy"},
    # Regional
    {"sub": "singapore", "region": "singapore", "category": "General"},
    {"sub": "China", "region": "china", "category": "General"},
    {"sub": "japan", "region": "east_asia", "category": "General"},
    {"sub": "korea", "region": "east_asia", "category": "General"},
    {"sub": "asia", "region": "asia", "category": "General"},
    # Science / health / environment
    {"sub": "science", "region": "global", "category": "Science"},
    {"sub": "health", "region": "global", "category": "Health"},
    {"sub": "environment", "region": "global", "category": "Environment"},
    {"sub": "climate", "region": "global", "category": "Environment"},
    {"sub": "popular", "region": "global", "category": "General"},
]


@with_retry(max_retries=1, base_delay=1.0, retry_on=(requests.RequestException,))
def _get_json(url: str, params: dict, user_agent: str) -> dict:
    headers = {"User-Agent": user_agent, "Accept": "application/json"}
    r = requests.get(url, headers=headers, params=params, timeout=10)
    r.raise_for_status()
    return r.json()


class RedditSource(TrendSource):
    name = "reddit"

    def __init__(self, config: dict = None):
        config = config or {}
        subs = config.get("subreddits", DEFAULT_SUBREDDITS)
        # Plain names are accepted as global/General
        self.subreddits = [
            s if isinstance(s, dict) else {"sub": s, "region": "global", "category": "General"}
            for s in subs
        ]
        self.user_agent = config.get("user_agent", USER_AGENT)
        self.max_workers = config.get("max_workers", 6)

    def fetch_viral(self, region=None, limit=50, category=None) -> list[SourcePost]:
        self.check_limit(limit)
        subs = self.subreddits
        if region:
            subs = [s for s in subs if s.get("region") in (region, "global")]
        if category:
            subs = [s for s in subs if s.get("category") == category]
        if not subs or limit == 0:
            return []

        per_sub = math.ceil(limit / len(subs))
        posts = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for batch in pool.map(lambda s: self._fetch_subreddit(s, per_sub), subs):
                posts.extend(batch)

        seen = set()
        unique = []
        for post in posts:
            if post.external_id in seen:
                continue
            seen.add(post.external_id)
            unique.append(post)

        unique.sort(key=lambda p: p.likes + p.comments * 3, reverse=True)
        return unique[:limit]

    def fetch_trending(self, region=None) -> list[TrendingItem]:
        """Topics that recur across hot post titles and hashtags."""
        posts = self.fetch_viral(region=region, limit=100)

        counts = {}
        for post in posts:
            terms = significant_words(post.content) + post.hashtags
            for term in terms:
                key = normalize_topic(term)
                if len(key) < 3:
                    continue
                entry = counts.setdefault(key, {"name": term, "posts": 0, "engagement": 0})
                entry["posts"] += 1
                entry["engagement"] += post.likes + post.comments

        topics = [
            TrendingItem(
                name=data["name"],
                source=self.name,
                post_count=data["posts"],
                engagement=data["engagement"],
                hashtag=data["name"] if data["name"].startswith("#") else None,
                region=region or "global",
            )
            for data in counts.values()
            if data["posts"] >= MIN_TOPIC_POSTS
        ]
        topics.sort(key=lambda t: t.engagement, reverse=True)
        return topics[:MAX_TOPICS]

    def search(self, query: str, limit: int = 25) -> list[SourcePost]:
        self.check_limit(limit)
        if not query.strip():
            raise ValueError("search query must not be empty")
        try:
            data = _get_json(
                f"{BASE_URL}/search.json",
                {"q": query, "sort": "hot", "limit": limit},
                self.user_agent,
            )
        except Exception as e:
            get_logger(self.name).warning(f"search '{query}' failed: {e}")
            return []
        return self._map_posts(data.get("data", {}).get("children", []), None, None)[:limit]

    # ─────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────
    def _fetch_subreddit(self, sub: dict, limit: int) -> list[SourcePost]:
        name = sub["sub"]
        try:
            data = _get_json(
                f"{BASE_URL}/r/{name}/hot.json",
                {"limit": limit + 2, "raw_json": 1},
                self.user_agent,
            )
        except Exception as e:
            get_logger(self.name).warning(f"r/{name} failed: {e}")
            return []

        children = data.get("data", {}).get("children", [])
        get_logger(self.name).debug(f"r/{name} fetched {len(children)} posts")
        return self._map_posts(children, sub.get("region"), sub.get("category"))

    def _map_posts(self, children: list, region, category) -> list[SourcePost]:
        posts = []
        for child in children:
            d = child.get("data", {})
            if d.get("stickied") or not d.get("id"):
                continue
            title = d.get("title", "")
            created = d.get("created_utc")
            posts.append(SourcePost(
                source=self.name,
                external_id=d["id"],
                content=title,
                author_handle=d.get("author"),
                url=f"https://reddit.com{d.get('permalink', '')}",
                media_urls=self._media_urls(d),
                likes=d.get("ups", d.get("score", 0)),
                comments=d.get("num_comments", 0),
                hashtags=extract_hashtags(f"{title} {d.get('selftext') or ''}"),
                topics=[d["subreddit"]] if d.get("subreddit") else [],
                region=region,
                category=category,
                posted_at=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
            ))
        return posts

    @staticmethod
    def _media_urls(d: dict) -> list[str]:
        urls = []
        thumb = d.get("thumbnail") or ""
        if thumb.startswith("http") and "default" not in thumb:
            urls.append(thumb)
        images = (d.get("preview") or {}).get("images") or []
        if images:
            src = images[0].get("source", {}).get("url")
            if src:
                urls.append(src.replace("&amp;", "&"))
        return urls
