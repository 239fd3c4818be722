"""Denylist of content-free tags that would otherwise top every source."""

from .normalize import normalize_topic

MIN_TAG_LENGTH = 3

NOISE_TERMS = frozenset({
    # Platform features
    "fyp", "foryou", "foryoupage", "fypage", "reels", "reel", "shorts",
    "tiktok", "instagram", "youtube", "explore", "explorepage", "duet",
    "stitch",
    # Engagement bait
    "viral", "trending", "trend", "follow", "followme", "like", "likes",
    "likeforlike", "comment", "share", "subscribe", "followforfollow",
    "blowthisup", "goviral",
    # Generic content descriptors
    "video", "videos", "photo", "photography", "post", "new", "news",
    "breaking", "update", "live", "today", "daily",
    # Generic sentiment
    "love", "happy", "cute", "funny", "lol", "omg", "wow", "amazing",
    "beautiful", "best", "cool", "fun", "good",
    # Broad lifestyle categories
    "life", "lifestyle", "fashion", "style", "food", "travel", "music",
    "fitness", "beauty", "art", "world",
})


class NoiseFilter:
    """Rejects content-free tags.

    Hashtags must also clear a minimum length; topic names only have to stay
    off the denylist, so short real topics like "AI" survive.
    """

    def __init__(self, extra_terms=()):
        self.terms = NOISE_TERMS | {normalize_topic(t) for t in extra_terms if normalize_topic(t)}

    def is_denylisted(self, name: str) -> bool:
        return normalize_topic(name) in self.terms

    def is_noise(self, tag: str) -> bool:
        key = normalize_topic(tag)
        return len(key) < MIN_TAG_LENGTH or key in self.terms

    def filter_items(self, items: list) -> list:
        """Drop TrendingItems whose name is denylisted or empty."""
        return [item for item in items if item.canonical_key and not self.is_denylisted(item.name)]

    def filter_hashtags(self, tags: list[str]) -> list[str]:
        return [t for t in tags if not self.is_noise(t)]
