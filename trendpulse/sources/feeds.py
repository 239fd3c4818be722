"""RSS/Atom fetching shared by the feed-based sources."""

from datetime import datetime, timezone

import feedparser
import requests

from ..config import FEED_ACCEPT, USER_AGENT

FEED_TIMEOUT = 12


def fetch_feed(url: str, user_agent: str = USER_AGENT, timeout: float = FEED_TIMEOUT):
    """Download a feed with a hard timeout and parse it.

    feedparser.parse(url) has no timeout of its own, so the HTTP leg goes
    through requests. Raises on HTTP errors; callers log and move on.
    """
    headers = {"User-Agent": user_agent, "Accept": FEED_ACCEPT}
    r = requests.get(url, headers=headers, timeout=timeout)
    r.raise_for_status()
    feed = feedparser.parse(r.content)
    if feed.bozo and not feed.entries:
        raise ValueError(f"unparseable feed: {feed.get('bozo_exception')}")
    return feed


def entry_datetime(entry):
    """Published/updated time of a feed entry as an aware datetime, or None."""
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)
