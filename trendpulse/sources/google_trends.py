"""Google Trends source: per-geo trending-searches RSS, pytrends as backup."""

import concurrent.futures
import re
from datetime import datetime, timezone

from ..log import get_logger
from ..noise import NoiseFilter
from .base import SourcePost, TrendingItem, TrendSource
from .feeds import fetch_feed

FEED_URL = "https://trends.google.com/trending/rss?geo={geo}"
ITEMS_PER_GEO = 20
MAX_TOPICS = 50

DEFAULT_GEOS = [
    {"geo": "SG", "region": "singapore"},
    {"geo": "CN", "region": "china"},
    {"geo": "JP", "region": "east_asia"},
    {"geo": "KR", "region": "east_asia"},
    {"geo": "AU", "region": "apac"},
    {"geo": "US", "region": "global"},
    {"geo": "GB", "region": "global"},
]

# pytrends only knows country names, not ISO codes
PYTRENDS_PN = {
    "SG": "singapore",
    "JP": "japan",
    "KR": "south_korea",
    "AU": "australia",
    "US": "united_states",
    "GB": "united_kingdom",
}

_TRAFFIC = re.compile(r"([\d,]+)\s*([KM])?\+?", re.IGNORECASE)


def parse_traffic(text: str):
    """'200,000+' / '50K+' / '2M+' -> int, None when there is no number."""
    match = _TRAFFIC.search(text or "")
    if not match:
        return None
    value = int(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").upper()
    return value * {"K": 1_000, "M": 1_000_000}.get(suffix, 1)


class GoogleTrendsSource(TrendSource):
    name = "google_trends"

    def __init__(self, config: dict = None, noise: NoiseFilter = None):
        config = config or {}
        self.geos = config.get("geos", DEFAULT_GEOS)
        self.noise = noise or NoiseFilter()
        self.max_workers = config.get("max_workers", 7)

    def fetch_trending(self, region=None) -> list[TrendingItem]:
        geos = self._geos_for(region)

        topics = self._per_geo(self._fetch_feed, geos)
        if not topics:
            get_logger(self.name).info("feeds empty, trying pytrends")
            topics = self._per_geo(self._fetch_pytrends, geos)

        # Same search trending in several geos: keep the loudest
        best = {}
        for topic in topics:
            key = topic.canonical_key
            if key not in best or topic.engagement > best[key].engagement:
                best[key] = topic

        ranked = sorted(best.values(), key=lambda t: t.engagement, reverse=True)
        return ranked[:MAX_TOPICS]

    def fetch_viral(self, region=None, limit=20, category=None) -> list[SourcePost]:
        """Trending searches dressed as posts so they rank alongside real ones."""
        self.check_limit(limit)
        now = datetime.now(timezone.utc)
        return [
            SourcePost(
                source=self.name,
                external_id=f"gt-{topic.canonical_key}",
                content=topic.name,
                author_handle="Google Trends",
                author_name="Trending Search",
                url=topic.url,
                likes=topic.engagement,
                views=topic.engagement,
                topics=[topic.name],
                region=topic.region,
                category="Trending",
                posted_at=now,
            )
            for topic in self.fetch_trending(region)[:limit]
        ]

    def _geos_for(self, region):
        if not region:
            return self.geos
        matching = [g for g in self.geos if g["region"] == region]
        return matching or [g for g in self.geos if g["region"] == "global"]

    def _per_geo(self, fetch, geos) -> list[TrendingItem]:
        """Run ``fetch`` for every geo in parallel, results in geo order."""
        if not geos:
            return []
        topics = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(geos))) as pool:
            for batch in pool.map(fetch, geos):
                topics.extend(batch)
        return topics

    def _fetch_feed(self, cfg: dict) -> list[TrendingItem]:
        geo = cfg["geo"]
        try:
            feed = fetch_feed(FEED_URL.format(geo=geo))
        except Exception as e:
            get_logger(self.name).warning(f"{geo} feed failed: {e}")
            return []

        topics = []
        for i, entry in enumerate(feed.entries[:ITEMS_PER_GEO]):
            title = (entry.get("title") or "").strip()
            if not title or self.noise.is_denylisted(title):
                continue
            traffic = parse_traffic(entry.get("ht_approx_traffic", ""))
            if traffic is None:
                traffic = parse_traffic(entry.get("summary", ""))
            if traffic is None:
                # Feed order is rank order
                traffic = max(0, 1000 - i * 50)
            topics.append(TrendingItem(
                name=title,
                source=self.name,
                post_count=1,
                engagement=traffic,
                url=entry.get("link") or None,
                region=cfg["region"],
            ))
        get_logger(self.name).debug(f"{geo} -> {len(topics)} topics")
        return topics

    def _fetch_pytrends(self, cfg: dict) -> list[TrendingItem]:
        pn = PYTRENDS_PN.get(cfg["geo"])
        if not pn:
            return []
        try:
            from pytrends.request import TrendReq

            trending = TrendReq(hl="en-US", tz=0, timeout=(5, 10)).trending_searches(pn=pn)
        except Exception as e:
            get_logger(self.name).warning(f"pytrends {pn} failed: {e}")
            return []

        topics = []
        for i, value in enumerate(trending[0].head(ITEMS_PER_GEO).tolist()):
            title = str(value).strip()
            if not title or self.noise.is_denylisted(title):
                continue
            topics.append(TrendingItem(
                name=title,
                source=self.name,
                engagement=max(0, 1000 - i * 50),
                region=cfg["region"],
            ))
        return topics
