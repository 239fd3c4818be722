"""Source adapters and the id -> adapter registry."""

from ..config import load_config
from ..log import log
from ..noise import NoiseFilter
from .base import SourcePost, TrendingItem, TrendSource
from .google_trends import GoogleTrendsSource
from .reddit import RedditSource
from .tiktok import TikTokSource
from .x import XSource
from .youtube import YouTubeSource

SOURCE_CLASSES = {
    "reddit": RedditSource,
    "google_trends": GoogleTrendsSource,
    "x": XSource,
    "youtube": YouTubeSource,
    "tiktok": TikTokSource,
}

ENABLED_BY_DEFAULT = ("reddit", "google_trends", "x", "youtube", "tiktok")


def build_sources(config: dict = None, noise: NoiseFilter = None) -> dict[str, TrendSource]:
    """Construct every enabled adapter once, keyed by source id."""
    if config is None:
        config = load_config()
    source_config = config.get("sources", {})

    sources = {}
    for name, cls in SOURCE_CLASSES.items():
        src_cfg = source_config.get(name, {})
        if not src_cfg.get("enabled", name in ENABLED_BY_DEFAULT):
            continue
        try:
            if name in ("google_trends", "tiktok"):
                sources[name] = cls(src_cfg, noise=noise)
            else:
                sources[name] = cls(src_cfg)
        except Exception as e:
            log(f"Failed to init source {name}: {e}")
    return sources


__all__ = [
    "SourcePost", "TrendingItem", "TrendSource", "SOURCE_CLASSES", "build_sources",
    "GoogleTrendsSource", "RedditSource", "TikTokSource", "XSource", "YouTubeSource",
]
