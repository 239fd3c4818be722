"""Cross-platform trend aggregation: fetch, de-noise, merge, rank, track momentum."""

__version__ = "1.0.0"
