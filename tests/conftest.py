"""Shared test fixtures."""

import os
import tempfile
import threading
import time
from datetime import datetime, timedelta, timezone

# Keep config/logs out of the real home directory; must run before trendpulse imports
os.environ.setdefault("TRENDPULSE_HOME", tempfile.mkdtemp(prefix="trendpulse-test-"))

import pytest  # noqa: E402

from trendpulse.sources.base import SourcePost, TrendingItem, TrendSource  # noqa: E402


class StubSource(TrendSource):
    """In-process source with canned results and call counting."""

    def __init__(self, name, trending=None, viral=None, delay=0.0, error=None, block=None):
        self.name = name
        self.trending = trending or []
        self.viral = viral or []
        self.delay = delay
        self.error = error
        self.block = block
        self.calls = {"trending": 0, "viral": 0, "search": 0}

    def _wait(self):
        if self.error:
            raise self.error
        if self.delay:
            time.sleep(self.delay)
        if self.block is not None:
            self.block.wait(5)

    def fetch_trending(self, region=None):
        self.calls["trending"] += 1
        self._wait()
        return list(self.trending)

    def fetch_viral(self, region=None, limit=50, category=None):
        self.calls["viral"] += 1
        self._wait()
        return list(self.viral)[:limit]


class SearchableStubSource(StubSource):
    def __init__(self, name, results=None, **kwargs):
        super().__init__(name, **kwargs)
        self.results = results or []

    def search(self, query, limit=25):
        self.calls["search"] += 1
        self._wait()
        return list(self.results)[:limit]


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def stub_source():
    return StubSource


@pytest.fixture
def searchable_source():
    return SearchableStubSource


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def release():
    """Event that unblocks hanging stub sources at teardown."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def make_post():
    def _make(source="reddit", external_id="p1", likes=0, comments=0, reposts=0, hashtags=None,
              content="post"):
        return SourcePost(
            source=source,
            external_id=external_id,
            content=content,
            likes=likes,
            comments=comments,
            reposts=reposts,
            hashtags=hashtags or [],
        )
    return _make


@pytest.fixture
def make_item():
    def _make(name, source="reddit", engagement=0, post_count=1, url=None, hashtag=None, region="global"):
        return TrendingItem(
            name=name,
            source=source,
            engagement=engagement,
            post_count=post_count,
            url=url,
            hashtag=hashtag,
            region=region,
        )
    return _make


@pytest.fixture
def rss_bytes():
    """Render a minimal RSS 2.0 document from (title, link, extra_xml) tuples."""
    def _render(items, namespaces=""):
        body = "".join(
            f"<item><title>{title}</title><link>{link}</link>{extra}</item>"
            for title, link, extra in items
        )
        return (
            f'<?xml version="1.0" encoding="UTF-8"?>'
            f'<rss version="2.0" {namespaces}><channel><title>Feed</title>{body}</channel></rss>'
        ).encode("utf-8")
    return _render
