"""YouTube source via channel RSS feeds (no view counts, so ranked by recency)."""

import concurrent.futures
import math
from datetime import datetime, timezone
from urllib.parse import quote

from ..log import get_logger
from ..normalize import extract_hashtags, normalize_topic, significant_words
from .base import SourcePost, TrendingItem, TrendSource
from .feeds import entry_datetime, fetch_feed

FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={id}"
MIN_TOPIC_VIDEOS = 2
MAX_TOPICS = 30

TITLE_STOPWORDS = frozenset({
    "video", "watch", "full", "official", "live", "breaking", "news", "update",
})

DEFAULT_CHANNELS = [
    {"id": "UCupvZG-5ko_eiXAupbDfxWw", "name": "CNN", "category": "News", "region": "global"},
    {"id": "UCeY0bbntWzzVIaj2z3QigXg", "name": "NBC News", "category": "News", "region": "global"},
    {"id": "UC16niRr50-MSBwiO3YDb3RA", "name": "BBC News", "category": "News", "region": "global"},
    {"id": "UCef1-8eOpJgud7szVPlZQAQ", "name": "CNA", "category": "News", "region": "singapore"},
    {"id": "UCBJycsmduvYEL83R_U4JriQ", "name": "MKBHD", "category": "Technology", "region": "global"},
    {"id": "UCXuqSBlHAE6Xw-yeJA0Tunw", "name": "Linus Tech Tips", "category": "Technology", "region": "global"},
    {"id": "UCvKRFNawVcuz4b9ihUTApCg", "name": "CNBC", "category": "Business", "region": "global"},
    {"id": "UChDKyKQ59fYz3JO2fl0Z6sg", "name": "Bloomberg", "category": "Business", "region": "global"},
]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class YouTubeSource(TrendSource):
    name = "youtube"

    def __init__(self, config: dict = None):
        config = config or {}
        self.channels = config.get("channels", DEFAULT_CHANNELS)

    def fetch_viral(self, region=None, limit=30, category=None) -> list[SourcePost]:
        self.check_limit(limit)
        channels = self.channels
        if region and region != "global":
            channels = [c for c in channels if c.get("region") in (region, "global")]
        if category:
            channels = [c for c in channels if c.get("category") == category]
        if not channels or limit == 0:
            return []

        per_channel = math.ceil(limit / len(channels))
        posts = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=4) as pool:
            for batch in pool.map(lambda c: self._fetch_channel(c, per_channel), channels):
                posts.extend(batch)

        seen = set()
        unique = []
        for post in posts:
            if post.external_id not in seen:
                seen.add(post.external_id)
                unique.append(post)
        unique.sort(key=lambda p: p.posted_at or _EPOCH, reverse=True)
        return unique[:limit]

    def fetch_trending(self, region=None) -> list[TrendingItem]:
        """Words that recur across recent video titles."""
        counts = {}
        for post in self.fetch_viral(region=region, limit=50):
            for word in significant_words(post.content, TITLE_STOPWORDS):
                key = normalize_topic(word)
                entry = counts.setdefault(key, {"name": word, "count": 0})
                entry["count"] += 1

        topics = [
            TrendingItem(
                name=data["name"],
                source=self.name,
                post_count=data["count"],
                engagement=data["count"] * 100,
                url=f"https://www.youtube.com/results?search_query={quote(data['name'])}",
                region=region or "global",
            )
            for data in counts.values()
            if data["count"] >= MIN_TOPIC_VIDEOS
        ]
        topics.sort(key=lambda t: t.engagement, reverse=True)
        return topics[:MAX_TOPICS]

    def _fetch_channel(self, channel: dict, limit: int) -> list[SourcePost]:
        try:
            feed = fetch_feed(FEED_URL.format(id=channel["id"]))
        except Exception as e:
            get_logger(self.name).warning(f"{channel['name']} feed failed: {e}")
            return []

        posts = []
        for entry in feed.entries[:limit]:
            video_id = entry.get("yt_videoid") or (entry.get("id") or "").split(":")[-1]
            if not video_id:
                continue
            title = entry.get("title", "")
            posts.append(SourcePost(
                source=self.name,
                external_id=f"yt-{video_id}",
                content=title,
                author_handle=channel["name"],
                author_name=channel["name"],
                url=entry.get("link") or f"https://www.youtube.com/watch?v={video_id}",
                media_urls=[f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"],
                hashtags=extract_hashtags(title),
                topics=[channel.get("category", "")],
                region=channel.get("region"),
                category=channel.get("category"),
                posted_at=entry_datetime(entry),
            ))
        return posts
