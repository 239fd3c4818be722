"""Cross-source merging and ranking."""

from dataclasses import dataclass, field
from typing import Optional

from .normalize import hash_topic, normalize_topic

MAX_SOURCE_MULTIPLIER = 3


@dataclass
class AggregatedTopic:
    """All TrendingItems sharing a canonical key within one pass."""
    name: str
    canonical_key: str
    topic_hash: str
    sources: list = field(default_factory=list)
    total_engagement: int = 0
    total_posts: int = 0
    cross_source_score: int = 0
    hashtag: Optional[str] = None
    region: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_cross_source(self) -> bool:
        return len(self.sources) > 1

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "canonical_key": self.canonical_key,
            "topic_hash": self.topic_hash,
            "hashtag": self.hashtag,
            "sources": list(self.sources),
            "engagement": self.total_engagement,
            "posts": self.total_posts,
            "score": self.cross_source_score,
            "cross_source": self.is_cross_source,
            "region": self.region,
            "url": self.url,
        }


def cross_source_score(engagement: int, source_count: int) -> int:
    """Engagement weighted by corroborating sources, multiplier capped at 3.

    The cap keeps a topic that shows up on many low-signal sources from
    outranking one with real engagement.
    """
    return engagement * min(source_count, MAX_SOURCE_MULTIPLIER)


def aggregate_topics(items: list, limit: int) -> list[AggregatedTopic]:
    """Merge TrendingItems by canonical key, score, and rank.

    First-seen item supplies the name and region; URL and hashtag are the
    first non-null values. Ties on score break by engagement, then name, so
    identical input always yields identical order.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit!r}")

    merged = {}
    for item in items:
        key = item.canonical_key
        if not key:
            continue
        topic = merged.get(key)
        if topic is None:
            merged[key] = AggregatedTopic(
                name=item.name,
                canonical_key=key,
                topic_hash=hash_topic(key),
                sources=[item.source],
                total_engagement=item.engagement,
                total_posts=item.post_count,
                hashtag=item.hashtag,
                region=item.region,
                url=item.url,
            )
            continue
        if item.source not in topic.sources:
            topic.sources.append(item.source)
        topic.total_engagement += item.engagement
        topic.total_posts += item.post_count
        topic.url = topic.url or item.url
        topic.hashtag = topic.hashtag or item.hashtag

    topics = list(merged.values())
    for topic in topics:
        topic.cross_source_score = cross_source_score(topic.total_engagement, len(topic.sources))

    topics.sort(key=lambda t: (-t.cross_source_score, -t.total_engagement, t.name))
    return topics[:limit]


def dedupe_posts(posts: list) -> list:
    """Keep the first occurrence of each (source, external_id)."""
    seen = set()
    unique = []
    for post in posts:
        if post.identity in seen:
            continue
        seen.add(post.identity)
        unique.append(post)
    return unique


def rank_posts(posts: list, limit: int) -> list:
    """De-duplicate and order by weighted engagement (stable for ties)."""
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit!r}")
    unique = dedupe_posts(posts)
    unique.sort(key=lambda p: p.engagement_score, reverse=True)
    return unique[:limit]


@dataclass
class HashtagGroup:
    hashtag: str
    normalized: str
    posts: list = field(default_factory=list)
    engagement: int = 0
    breakdown: dict = field(default_factory=dict)

    @property
    def sources(self) -> list:
        return list(self.breakdown)


def aggregate_hashtags(posts: list) -> list[HashtagGroup]:
    """Group posts by normalized hashtag, in first-seen order.

    Per-post engagement here is likes + comments*2; the breakdown maps
    source -> engagement contributed.
    """
    groups = {}
    for post in posts:
        for tag in post.hashtags:
            key = normalize_topic(tag)
            if not key:
                continue
            group = groups.get(key)
            if group is None:
                group = groups[key] = HashtagGroup(hashtag=tag, normalized=key)
            if post in group.posts:
                continue
            engagement = post.likes + post.comments * 2
            group.posts.append(post)
            group.engagement += engagement
            group.breakdown[post.source] = group.breakdown.get(post.source, 0) + engagement
    return list(groups.values())
