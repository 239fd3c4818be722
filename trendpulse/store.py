"""Persistence collaborator: hashtag metrics, trend snapshots, watched trends.

The engine only talks to ``MetricsStore``. ``MemoryStore`` backs tests and
one-shot CLI runs; ``JsonFileStore`` keeps everything in one JSON document on
disk, rewritten after each change.
"""

import json
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .config import DEFAULT_SOURCES, GLOBAL_REGION
from .momentum import HashtagMetrics, TrendSnapshot, _iso, _parse

QUERY_TYPES = ("hashtag", "keyword", "phrase")


@dataclass
class WatchedTrend:
    """A persistent query that gets re-polled; when to poll is the caller's decision."""
    id: str
    query: str
    query_type: str = "keyword"
    sources: list = field(default_factory=lambda: list(DEFAULT_SOURCES))
    regions: list = field(default_factory=lambda: [GLOBAL_REGION])
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_polled_at: Optional[datetime] = None

    @classmethod
    def create(cls, query: str, query_type: str = "keyword", sources=None, regions=None) -> "WatchedTrend":
        query = query.strip()
        if not query:
            raise ValueError("watch query must not be empty")
        if query_type not in QUERY_TYPES:
            query_type = "keyword"
        if query_type == "hashtag" and not query.startswith("#"):
            query = f"#{query}"
        return cls(
            id=uuid.uuid4().hex,
            query=query,
            query_type=query_type,
            sources=list(sources or DEFAULT_SOURCES),
            regions=list(regions or [GLOBAL_REGION]),
            created_at=datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "query": self.query,
            "query_type": self.query_type,
            "sources": list(self.sources),
            "regions": list(self.regions),
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "last_polled_at": _iso(self.last_polled_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "WatchedTrend":
        data = dict(d)
        data["created_at"] = _parse(data.get("created_at"))
        data["last_polled_at"] = _parse(data.get("last_polled_at"))
        return cls(**data)


class MetricsStore(ABC):
    """Shape of the external store; the storage engine is someone else's problem."""

    @abstractmethod
    def get_hashtag_metrics(self, normalized: str) -> Optional[HashtagMetrics]:
        ...

    @abstractmethod
    def put_hashtag_metrics(self, metrics: HashtagMetrics):
        """Upsert keyed by ``metrics.normalized``."""
        ...

    @abstractmethod
    def top_hashtags(self, limit: int = 20, direction: str = None) -> list[HashtagMetrics]:
        ...

    @abstractmethod
    def insert_trend_snapshot(self, snapshot: TrendSnapshot):
        ...

    @abstractmethod
    def query_trend_snapshots(self, topic_hash: str, since: datetime) -> list[TrendSnapshot]:
        """Snapshots for a topic at or after ``since``, oldest first."""
        ...

    @abstractmethod
    def add_watch(self, watch: WatchedTrend) -> WatchedTrend:
        ...

    @abstractmethod
    def list_watches(self) -> list[WatchedTrend]:
        ...

    @abstractmethod
    def remove_watch(self, watch_id: str) -> bool:
        ...

    @abstractmethod
    def mark_watch_polled(self, watch_id: str, at: datetime):
        ...

    def list_active_watches(self, stale_after: timedelta, now: datetime = None) -> list[WatchedTrend]:
        """Active watches never polled, or not polled within ``stale_after``."""
        now = now or datetime.now(timezone.utc)
        return [
            w for w in self.list_watches()
            if w.is_active and (w.last_polled_at is None or now - w.last_polled_at >= stale_after)
        ]


class MemoryStore(MetricsStore):
    def __init__(self):
        self._lock = threading.RLock()
        self.hashtags = {}
        self.snapshots = []
        self.watches = {}

    def get_hashtag_metrics(self, normalized):
        with self._lock:
            found = self.hashtags.get(normalized)
            return replace(found, history=list(found.history)) if found else None

    def put_hashtag_metrics(self, metrics):
        with self._lock:
            self.hashtags[metrics.normalized] = replace(metrics, history=list(metrics.history))
            self._changed()

    def top_hashtags(self, limit=20, direction=None):
        with self._lock:
            rows = [m for m in self.hashtags.values() if direction is None or m.momentum_direction == direction]
        rows.sort(key=lambda m: (-m.current_engagement, m.normalized))
        return rows[:limit]

    def insert_trend_snapshot(self, snapshot):
        with self._lock:
            self.snapshots.append(snapshot)
            self._changed()

    def query_trend_snapshots(self, topic_hash, since):
        with self._lock:
            rows = [s for s in self.snapshots if s.topic_hash == topic_hash and s.snapshot_at >= since]
        return sorted(rows, key=lambda s: s.snapshot_at)

    def add_watch(self, watch):
        with self._lock:
            self.watches[watch.id] = watch
            self._changed()
        return watch

    def list_watches(self):
        with self._lock:
            return sorted(self.watches.values(), key=lambda w: (w.created_at or datetime.min.replace(tzinfo=timezone.utc), w.id))

    def remove_watch(self, watch_id):
        with self._lock:
            removed = self.watches.pop(watch_id, None) is not None
            if removed:
                self._changed()
        return removed

    def mark_watch_polled(self, watch_id, at):
        with self._lock:
            watch = self.watches.get(watch_id)
            if watch is None:
                raise ValueError(f"Unknown watch id: {watch_id}")
            watch.last_polled_at = at
            self._changed()

    def _changed(self):
        """Hook for subclasses that persist after each write."""


class JsonFileStore(MemoryStore):
    """MemoryStore that loads from and rewrites a JSON file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load(json.loads(self.path.read_text(encoding="utf-8")))

    def _load(self, data: dict):
        self.hashtags = {
            k: HashtagMetrics.from_dict(v) for k, v in data.get("hashtag_metrics", {}).items()
        }
        self.snapshots = [TrendSnapshot.from_dict(s) for s in data.get("trend_snapshots", [])]
        self.watches = {
            w["id"]: WatchedTrend.from_dict(w) for w in data.get("watched_trends", [])
        }

    def _changed(self):
        data = {
            "hashtag_metrics": {k: v.to_dict() for k, v in self.hashtags.items()},
            "trend_snapshots": [s.to_dict() for s in self.snapshots],
            "watched_trends": [w.to_dict() for w in self.watches.values()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)
