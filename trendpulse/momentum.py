"""Hashtag momentum and topic snapshot history.

``engagement_1h_ago`` is a one-step lag register: every observation compares
against the previous observation's engagement, whenever that was. The figure
means "per hour" only if observations arrive roughly hourly, so each metrics
row also keeps a short timestamped history. The history feeds the 24h fields
and lets the tracker warn when the lag it is comparing against has gone stale.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import MAX_LAG_HOURS
from .log import get_logger
from .normalize import hash_topic, normalize_topic

RISING = "rising"
FALLING = "falling"
STABLE = "stable"

DIRECTION_THRESHOLD = 10
SCORE_BOUND = 100
HISTORY_SIZE = 48


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]):
    return value.isoformat() if value else None


def _parse(value) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Observation:
    at: datetime
    posts: int
    engagement: int

    def to_dict(self) -> dict:
        return {"at": _iso(self.at), "posts": self.posts, "engagement": self.engagement}

    @classmethod
    def from_dict(cls, d: dict) -> "Observation":
        return cls(at=_parse(d["at"]), posts=d["posts"], engagement=d["engagement"])


@dataclass
class HashtagMetrics:
    """Durable per-hashtag record, keyed by ``normalized``. Updated, never replaced."""
    hashtag: str
    normalized: str
    current_posts: int = 0
    current_engagement: int = 0
    engagement_1h_ago: int = 0
    engagement_24h_ago: int = 0
    posts_24h_ago: int = 0
    momentum_score: int = 0
    momentum_direction: str = STABLE
    percent_change: int = 0
    platform_breakdown: dict = field(default_factory=dict)
    peak_engagement: int = 0
    peak_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    history: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hashtag": self.hashtag,
            "normalized": self.normalized,
            "current_posts": self.current_posts,
            "current_engagement": self.current_engagement,
            "engagement_1h_ago": self.engagement_1h_ago,
            "engagement_24h_ago": self.engagement_24h_ago,
            "posts_24h_ago": self.posts_24h_ago,
            "momentum_score": self.momentum_score,
            "momentum_direction": self.momentum_direction,
            "percent_change": self.percent_change,
            "platform_breakdown": dict(self.platform_breakdown),
            "peak_engagement": self.peak_engagement,
            "peak_at": _iso(self.peak_at),
            "last_updated_at": _iso(self.last_updated_at),
            "history": [o.to_dict() for o in self.history],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HashtagMetrics":
        data = dict(d)
        data["peak_at"] = _parse(data.get("peak_at"))
        data["last_updated_at"] = _parse(data.get("last_updated_at"))
        data["history"] = [Observation.from_dict(o) for o in data.get("history", [])]
        return cls(**data)


@dataclass
class TrendSnapshot:
    """Append-only observation of one topic at one point in time."""
    topic_hash: str
    topic_name: str
    snapshot_at: datetime
    total_engagement: int
    total_posts: int
    breakdown: dict = field(default_factory=dict)
    watch_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "topic_hash": self.topic_hash,
            "topic_name": self.topic_name,
            "watch_id": self.watch_id,
            "snapshot_at": _iso(self.snapshot_at),
            "total_engagement": self.total_engagement,
            "total_posts": self.total_posts,
            "breakdown": self.breakdown,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "TrendSnapshot":
        data = dict(d)
        data["snapshot_at"] = _parse(data["snapshot_at"])
        return cls(**data)


def percent_change(current: int, prior: int) -> int:
    """Signed percent change, rounded half away from zero; 0 when prior is 0."""
    if prior == 0:
        return 0
    ratio = (current - prior) / prior * 100
    return int(math.copysign(math.floor(abs(ratio) + 0.5), ratio))


def classify(change: int) -> str:
    if change > DIRECTION_THRESHOLD:
        return RISING
    if change < -DIRECTION_THRESHOLD:
        return FALLING
    return STABLE


class MomentumTracker:
    """Computes momentum against the previous observation and persists it."""

    def __init__(self, store, clock=utcnow, max_lag: timedelta = timedelta(hours=MAX_LAG_HOURS),
                 history_size: int = HISTORY_SIZE):
        self.store = store
        self._clock = clock
        self.max_lag = max_lag
        self.history_size = history_size

    def now(self) -> datetime:
        return self._clock()

    def record_observation(self, normalized: str, current_posts: int, current_engagement: int,
                           breakdown: dict = None, hashtag: str = None) -> HashtagMetrics:
        key = normalize_topic(normalized)
        if not key:
            raise ValueError(f"hashtag {normalized!r} normalizes to an empty key")
        if current_posts < 0 or current_engagement < 0:
            raise ValueError("post and engagement counts must be non-negative")

        now = self._clock()
        existing = self.store.get_hashtag_metrics(key)
        if existing is None:
            metrics = HashtagMetrics(hashtag=hashtag or normalized.strip(), normalized=key)
            prior = current_engagement
        else:
            metrics = replace(existing, history=list(existing.history))
            prior = existing.current_engagement
            if existing.last_updated_at and now - existing.last_updated_at > self.max_lag:
                get_logger().warning(
                    f"momentum: #{key} last observed {now - existing.last_updated_at} ago, "
                    f"percent change spans more than {self.max_lag}"
                )

        change = percent_change(current_engagement, prior)
        metrics.engagement_1h_ago = prior
        metrics.current_posts = current_posts
        metrics.current_engagement = current_engagement
        metrics.percent_change = change
        metrics.momentum_score = max(-SCORE_BOUND, min(SCORE_BOUND, change))
        metrics.momentum_direction = classify(change)
        metrics.platform_breakdown = dict(breakdown or {})
        metrics.last_updated_at = now
        if metrics.peak_at is None or current_engagement > metrics.peak_engagement:
            metrics.peak_engagement = current_engagement
            metrics.peak_at = now

        metrics.history.append(Observation(at=now, posts=current_posts, engagement=current_engagement))
        metrics.history = metrics.history[-self.history_size:]
        day_ago = self._day_ago(metrics.history, now)
        metrics.engagement_24h_ago = day_ago.engagement
        metrics.posts_24h_ago = day_ago.posts

        self.store.put_hashtag_metrics(metrics)
        get_logger().debug(
            f"momentum: #{key} {prior} -> {current_engagement} ({change:+d}%, {metrics.momentum_direction})"
        )
        return metrics

    def record_snapshot(self, topic_name: str, total_engagement: int, total_posts: int,
                        breakdown: dict = None, watch_id: str = None) -> TrendSnapshot:
        snapshot = TrendSnapshot(
            topic_hash=hash_topic(topic_name),
            topic_name=topic_name,
            snapshot_at=self._clock(),
            total_engagement=total_engagement,
            total_posts=total_posts,
            breakdown=breakdown or {},
            watch_id=watch_id,
        )
        self.store.insert_trend_snapshot(snapshot)
        return snapshot

    def history(self, topic_name: str, hours: float = 24) -> list[TrendSnapshot]:
        since = self._clock() - timedelta(hours=hours)
        return self.store.query_trend_snapshots(hash_topic(topic_name), since)

    @staticmethod
    def _day_ago(history: list, now: datetime) -> Observation:
        """Latest observation at least 24h old, else the oldest one we have."""
        cutoff = now - timedelta(hours=24)
        older = [o for o in history if o.at <= cutoff]
        return older[-1] if older else history[0]
