"""X/Twitter source: trend mirror feeds, then an HTML scrape of a public trends page.

Individual tweets need official API access, so "viral posts" here are the
trending topics themselves. When every strategy comes back empty the source
returns nothing rather than a canned hashtag list.
"""

import re
from datetime import datetime, timezone
from html.parser import HTMLParser
from urllib.parse import quote

import requests

from ..config import BROWSER_USER_AGENT
from ..log import get_logger
from ..retry import with_retry
from .base import SourcePost, TrendingItem, TrendSource
from .feeds import fetch_feed

MAX_TOPICS = 30
SCRAPE_URL = "https://getdaytrends.com/{path}/"

DEFAULT_MIRRORS = [
    {"url": "https://getdaytrends.com/feed/", "name": "GetDayTrends"},
    {"url": "https://twittertrends.co/rss/", "name": "TwitterTrends"},
]

REGION_PATHS = {
    "singapore": "singapore",
    "china": "china",
    "east_asia": "japan",
}


def search_url(name: str) -> str:
    return f"https://x.com/search?q={quote(name)}"


class TrendPageParser(HTMLParser):
    """Collects text of <a class="...trend-link..."> and, separately, <span class="...trend...">."""

    def __init__(self):
        super().__init__()
        self.links = []
        self.spans = []
        self._tag = None
        self._text = []

    def handle_starttag(self, tag, attrs):
        classes = dict(attrs).get("class") or ""
        if tag == "a" and "trend-link" in classes:
            self._tag = "a"
        elif tag == "span" and re.search(r"\btrend", classes):
            self._tag = "span"
        else:
            return
        self._text = []

    def handle_endtag(self, tag):
        if self._tag and tag == self._tag:
            text = "".join(self._text).strip()
            if text:
                (self.links if tag == "a" else self.spans).append(text)
            self._tag = None

    def handle_data(self, data):
        if self._tag:
            self._text.append(data)


@with_retry(max_retries=1, base_delay=0.5, retry_on=(requests.RequestException,))
def _get_html(url: str) -> str:
    headers = {"User-Agent": BROWSER_USER_AGENT, "Accept": "text/html,application/xhtml+xml"}
    r = requests.get(url, headers=headers, timeout=8)
    r.raise_for_status()
    return r.text


class XSource(TrendSource):
    name = "x"

    def __init__(self, config: dict = None):
        config = config or {}
        self.mirrors = config.get("mirrors", DEFAULT_MIRRORS)
        self.scrape = config.get("scrape", True)

    def fetch_trending(self, region=None) -> list[TrendingItem]:
        for mirror in self.mirrors:
            topics = self._fetch_mirror(mirror)
            if topics:
                if region:
                    for t in topics:
                        t.region = region
                return topics

        if self.scrape:
            return self._scrape(region)
        return []

    def fetch_viral(self, region=None, limit=20, category=None) -> list[SourcePost]:
        self.check_limit(limit)
        now = datetime.now(timezone.utc)
        return [
            SourcePost(
                source=self.name,
                external_id=f"x-{topic.canonical_key}",
                content=topic.name,
                author_handle="X Trending",
                author_name=topic.hashtag or topic.name,
                url=topic.url,
                likes=topic.engagement,
                views=topic.engagement,
                hashtags=[topic.hashtag.lower()] if topic.hashtag else [],
                topics=[topic.name],
                region=topic.region,
                category="Trending",
                posted_at=now,
            )
            for topic in self.fetch_trending(region)[:limit]
        ]

    def _fetch_mirror(self, mirror: dict) -> list[TrendingItem]:
        try:
            feed = fetch_feed(mirror["url"], user_agent=BROWSER_USER_AGENT)
        except Exception as e:
            get_logger(self.name).warning(f"{mirror['name']} feed failed: {e}")
            return []

        names = [(entry.get("title") or "").strip() for entry in feed.entries]
        links = [entry.get("link") for entry in feed.entries]
        return [
            self._topic(name, i, "global", url=link)
            for i, (name, link) in enumerate(zip(names, links))
            if name
        ][:MAX_TOPICS]

    def _scrape(self, region) -> list[TrendingItem]:
        url = SCRAPE_URL.format(path=REGION_PATHS.get(region, "worldwide"))
        try:
            html = _get_html(url)
        except Exception as e:
            get_logger(self.name).warning(f"trends page scrape failed: {e}")
            return []

        parser = TrendPageParser()
        parser.feed(html)
        names = parser.links or parser.spans
        names = [n for n in names if len(n) > 1][:MAX_TOPICS]
        get_logger(self.name).debug(f"scraped {len(names)} topics from {url}")
        return [self._topic(name, i, region or "global") for i, name in enumerate(names)]

    def _topic(self, name: str, rank: int, region: str, url: str = None) -> TrendingItem:
        # Mirrors carry no volumes; rank is the only signal
        return TrendingItem(
            name=name,
            source=self.name,
            post_count=1,
            engagement=max(0, 1000 - rank * 30),
            hashtag=name if name.startswith("#") else None,
            url=url or search_url(name),
            region=region,
        )
