"""TikTok source. No public trending endpoint: a third-party board when reachable, else nothing."""

import hashlib
from datetime import datetime, timezone
from urllib.parse import quote

import requests

from ..config import BROWSER_USER_AGENT
from ..log import get_logger
from ..noise import NoiseFilter
from ..normalize import extract_hashtags
from .base import SourcePost, TrendingItem, TrendSource
from .feeds import entry_datetime, fetch_feed

BOARD_URL = "https://tokboard.com/api/trending"
MAX_TOPICS = 30

DEFAULT_NEWS_FEEDS = [
    "https://news.google.com/rss/search?q=tiktok+trending+viral&hl=en-US&gl=US&ceid=US:en",
    "https://news.google.com/rss/search?q=tiktok+trend+challenge&hl=en-US&gl=US&ceid=US:en",
]


def tag_url(name: str) -> str:
    return f"https://www.tiktok.com/tag/{quote(name.lstrip('#'))}"


class TikTokSource(TrendSource):
    name = "tiktok"

    def __init__(self, config: dict = None, noise: NoiseFilter = None):
        config = config or {}
        self.board_url = config.get("board_url", BOARD_URL)
        self.news_feeds = config.get("news_feeds", DEFAULT_NEWS_FEEDS)
        self.noise = noise or NoiseFilter()

    def fetch_trending(self, region=None) -> list[TrendingItem]:
        topics = []
        for i, trend in enumerate(self._board()):
            name = trend["name"]
            count = trend.get("count")
            topics.append(TrendingItem(
                name=name,
                source=self.name,
                post_count=count or max(0, 100 - i * 3),
                engagement=count or max(0, 10000 - i * 300),
                hashtag=name if name.startswith("#") else f"#{name}",
                url=trend.get("url") or tag_url(name),
                region=region or "global",
            ))
        if not topics:
            get_logger(self.name).info("no trending board data")
        return topics[:MAX_TOPICS]

    def fetch_viral(self, region=None, limit=20, category=None) -> list[SourcePost]:
        self.check_limit(limit)
        posts = [self._topic_post(t) for t in self.fetch_trending(region)[:limit]]
        posts.extend(self._news_posts(region, limit))

        seen = set()
        unique = []
        for post in posts:
            if post.external_id not in seen:
                seen.add(post.external_id)
                unique.append(post)
        unique.sort(key=lambda p: p.likes + p.views, reverse=True)
        return unique[:limit]

    def _board(self) -> list[dict]:
        try:
            r = requests.get(
                self.board_url,
                headers={"User-Agent": BROWSER_USER_AGENT, "Accept": "application/json"},
                timeout=8,
            )
            r.raise_for_status()
            trends = r.json().get("trends") or []
        except Exception as e:
            get_logger(self.name).warning(f"trending board failed: {e}")
            return []
        return [t for t in trends if t.get("name") and not self.noise.is_noise(t["name"])]

    def _topic_post(self, topic: TrendingItem) -> SourcePost:
        return SourcePost(
            source=self.name,
            external_id=f"tokboard-{topic.canonical_key}",
            content=topic.name,
            author_handle="TikTok Trending",
            author_name=topic.name,
            url=topic.url,
            likes=topic.engagement,
            views=topic.engagement * 10,
            hashtags=[topic.hashtag.lower()],
            topics=["Trending"],
            region=topic.region,
            category="Trending",
            posted_at=datetime.now(timezone.utc),
        )

    def _news_posts(self, region, limit: int) -> list[SourcePost]:
        posts = []
        for feed_url in self.news_feeds:
            try:
                feed = fetch_feed(feed_url)
            except Exception as e:
                get_logger(self.name).warning(f"news feed failed: {e}")
                continue

            for entry in feed.entries:
                title = entry.get("title") or ""
                if "tiktok" not in title.lower():
                    continue
                link = entry.get("link") or title
                digest = hashlib.sha1(link.encode("utf-8")).hexdigest()[:16]
                posts.append(SourcePost(
                    source=self.name,
                    external_id=f"tiktok-news-{digest}",
                    content=title,
                    author_handle=entry.get("author") or "TikTok News",
                    url=entry.get("link"),
                    hashtags=self.noise.filter_hashtags(extract_hashtags(title)),
                    topics=["TikTok Trending"],
                    region=region or "global",
                    category="News",
                    posted_at=entry_datetime(entry),
                ))
            if len(posts) >= limit:
                break
        return posts[:limit]
