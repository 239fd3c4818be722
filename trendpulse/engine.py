"""TrendEngine: fan-out, noise filtering, aggregation, and momentum behind three reads."""

from dataclasses import dataclass, field, replace
from datetime import timedelta

from .aggregate import AggregatedTopic, aggregate_hashtags, aggregate_topics, rank_posts
from .cache import ResultCache
from .config import (
    CACHE_TTL_SECONDS,
    DEFAULT_HASHTAG_SOURCES,
    DEFAULT_SOURCES,
    MAX_LAG_HOURS,
    SOURCE_TIMEOUT_SECONDS,
    WATCH_STALE_MINUTES,
    get_extra_noise_terms,
    get_setting,
)
from .log import get_logger, log
from .momentum import MomentumTracker, TrendSnapshot
from .noise import NoiseFilter
from .normalize import normalize_topic
from .orchestrator import FetchOrchestrator
from .sources import SourcePost, build_sources
from .store import MemoryStore, MetricsStore, WatchedTrend

HASHTAG_SAMPLE_POSTS = 100
TOP_POSTS_PER_HASHTAG = 3


@dataclass
class HashtagSummary:
    hashtag: str
    normalized: str
    current_posts: int
    current_engagement: int
    sources: list
    momentum_score: int
    momentum_direction: str
    percent_change: int
    top_posts: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hashtag": self.hashtag,
            "normalized": self.normalized,
            "posts": self.current_posts,
            "engagement": self.current_engagement,
            "sources": list(self.sources),
            "momentum_score": self.momentum_score,
            "momentum": self.momentum_direction,
            "percent_change": self.percent_change,
            "top_posts": [p.to_dict() for p in self.top_posts],
        }


class TrendEngine:
    """Serves trending topics, viral posts and hashtag momentum across sources.

    Collaborators are injected; anything omitted is built from config.json.
    """

    def __init__(self, sources: dict = None, store: MetricsStore = None, cache: ResultCache = None,
                 noise: NoiseFilter = None, tracker: MomentumTracker = None, timeout: float = None):
        self.noise = noise or NoiseFilter(get_extra_noise_terms())
        self.sources = sources if sources is not None else build_sources(noise=self.noise)
        self.store = store or MemoryStore()
        self.cache = cache if cache is not None else ResultCache(
            ttl=get_setting("engine", "cache_ttl", CACHE_TTL_SECONDS)
        )
        self.tracker = tracker or MomentumTracker(
            self.store,
            max_lag=timedelta(hours=get_setting("engine", "max_lag_hours", MAX_LAG_HOURS)),
        )
        self.orchestrator = FetchOrchestrator(
            self.sources,
            cache=self.cache,
            timeout=timeout if timeout is not None else get_setting("engine", "source_timeout", SOURCE_TIMEOUT_SECONDS),
        )

    def _default_ids(self, defaults: list[str]) -> list[str]:
        return [sid for sid in defaults if sid in self.sources]

    # ─────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────
    def get_viral_posts(self, sources: list[str] = None, region: str = None, limit: int = 50,
                        category: str = None) -> list[SourcePost]:
        """Posts from every requested source, ranked by weighted engagement."""
        ids = sources if sources is not None else self._default_ids(DEFAULT_SOURCES)
        posts = self.orchestrator.fetch_viral(ids, region=region, limit=limit, category=category)
        cleaned = [replace(p, hashtags=self.noise.filter_hashtags(p.hashtags)) for p in posts]
        ranked = rank_posts(cleaned, limit)
        get_logger().debug(f"viral: {len(posts)} fetched, {len(ranked)} returned")
        return ranked

    def get_trending_topics(self, sources: list[str] = None, region: str = None, limit: int = 30,
                            snapshot: bool = False) -> list[AggregatedTopic]:
        """Topics merged across sources and ranked by cross-source score.

        With ``snapshot`` set, every returned topic is also appended to the
        snapshot history.
        """
        ids = sources if sources is not None else self._default_ids(DEFAULT_SOURCES)
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit!r}")
        items = self.orchestrator.fetch_trending(ids, region=region)
        kept = self.noise.filter_items(items)
        topics = aggregate_topics(kept, limit)
        log(f"Trending: {len(items)} items, {len(items) - len(kept)} noise, {len(topics)} topics")

        if snapshot:
            for topic in topics:
                self.tracker.record_snapshot(
                    topic.name,
                    topic.total_engagement,
                    topic.total_posts,
                    breakdown=self._topic_breakdown(kept, topic.canonical_key),
                )
        return topics

    def get_trending_hashtags(self, sources: list[str] = None, region: str = None,
                              limit: int = 20) -> list[HashtagSummary]:
        """Hashtags pulled from viral posts, with momentum against the last observation."""
        ids = sources if sources is not None else self._default_ids(DEFAULT_HASHTAG_SOURCES)
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit!r}")
        posts = self.get_viral_posts(ids, region=region, limit=HASHTAG_SAMPLE_POSTS)

        groups = [g for g in aggregate_hashtags(posts) if not self.noise.is_noise(g.normalized)]
        groups.sort(key=lambda g: (-g.engagement, g.normalized))

        summaries = []
        for group in groups[:limit]:
            metrics = self.tracker.record_observation(
                group.normalized,
                len(group.posts),
                group.engagement,
                breakdown=group.breakdown,
                hashtag=group.hashtag,
            )
            summaries.append(HashtagSummary(
                hashtag=group.hashtag,
                normalized=group.normalized,
                current_posts=len(group.posts),
                current_engagement=group.engagement,
                sources=group.sources,
                momentum_score=metrics.momentum_score,
                momentum_direction=metrics.momentum_direction,
                percent_change=metrics.percent_change,
                top_posts=group.posts[:TOP_POSTS_PER_HASHTAG],
            ))
        return summaries

    def search_posts(self, query: str, sources: list[str] = None, limit: int = 25) -> list[SourcePost]:
        """Search the requested sources that can search; the rest are skipped."""
        if not query or not query.strip():
            raise ValueError("search query must not be empty")
        ids = sources if sources is not None else self._default_ids(["reddit"])
        posts = self.orchestrator.search(ids, query, limit)
        return rank_posts(posts, limit)

    # ─────────────────────────────────────────────────
    # Watches and history
    # ─────────────────────────────────────────────────
    def watch(self, query: str, query_type: str = "keyword", sources: list[str] = None,
              regions: list[str] = None) -> WatchedTrend:
        ids = sources or self._default_ids(DEFAULT_SOURCES)
        self.orchestrator.resolve(ids)
        return self.store.add_watch(WatchedTrend.create(query, query_type, ids, regions))

    def poll_watches(self, stale_after: timedelta = timedelta(minutes=WATCH_STALE_MINUTES)) -> list[TrendSnapshot]:
        """Snapshot every active watch that has not been polled within ``stale_after``."""
        snapshots = []
        for watch in self.store.list_active_watches(stale_after, now=self.tracker.now()):
            try:
                snapshots.append(self.poll_watch(watch))
            except ValueError as e:
                get_logger().warning(f"watch {watch.id} ({watch.query}): {e}")
        return snapshots

    def poll_watch(self, watch: WatchedTrend) -> TrendSnapshot:
        """Measure one watch across its sources and regions and record a snapshot."""
        key = normalize_topic(watch.query)
        ids = [sid for sid in watch.sources if sid in self.sources]

        matches = self.orchestrator.search(ids, watch.query)
        for region in watch.regions:
            viral = self.orchestrator.fetch_viral(ids, region=region, limit=HASHTAG_SAMPLE_POSTS)
            matches.extend(p for p in viral if _mentions(p, key))

        breakdown = {}
        posts = rank_posts(matches, len(matches))
        for post in posts:
            entry = breakdown.setdefault(post.source, {"posts": 0, "engagement": 0})
            entry["posts"] += 1
            entry["engagement"] += post.engagement_score

        snapshot = self.tracker.record_snapshot(
            watch.query,
            sum(e["engagement"] for e in breakdown.values()),
            len(posts),
            breakdown=breakdown,
            watch_id=watch.id,
        )
        self.store.mark_watch_polled(watch.id, snapshot.snapshot_at)
        log(f"Watch '{watch.query}': {len(posts)} posts, engagement {snapshot.total_engagement}")
        return snapshot

    def topic_history(self, topic: str, hours: float = 24) -> list[TrendSnapshot]:
        return self.tracker.history(topic, hours)

    @staticmethod
    def _topic_breakdown(items: list, key: str) -> dict:
        breakdown = {}
        for item in items:
            if item.canonical_key == key:
                breakdown[item.source] = breakdown.get(item.source, 0) + item.engagement
        return breakdown


def _mentions(post: SourcePost, key: str) -> bool:
    if not key:
        return False
    if any(normalize_topic(tag) == key for tag in post.hashtags):
        return True
    # Whole-word match so "ai" does not hit "said"
    return f" {key} " in f" {normalize_topic(post.content)} "
