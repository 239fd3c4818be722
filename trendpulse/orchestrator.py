"""Concurrent fan-out over source adapters with per-source isolation and a deadline."""

import concurrent.futures
import math
import time

from .cache import ResultCache, cache_key
from .config import SOURCE_TIMEOUT_SECONDS
from .log import get_logger


class FetchOrchestrator:
    """Runs the requested adapters in parallel and returns whatever succeeded.

    Each source's call is raced against ``timeout``. A source that raises, times
    out or returns nothing contributes an empty list; it never delays or fails
    the others. Timed-out calls are abandoned, not killed: the worker thread
    runs to completion in the background and its result is dropped. Cache
    writes happen only here, on the calling thread, for results that arrived
    in time.
    """

    def __init__(self, sources: dict, cache: ResultCache = None,
                 timeout: float = SOURCE_TIMEOUT_SECONDS, max_workers: int = 8):
        self.sources = sources
        self.cache = cache if cache is not None else ResultCache()
        self.timeout = timeout
        self.max_workers = max_workers

    def fetch_trending(self, source_ids: list[str], region=None) -> list:
        return self._fan_out(
            source_ids, region, view="trending",
            call=lambda src: src.fetch_trending(region),
        )

    def fetch_viral(self, source_ids: list[str], region=None, limit: int = 50,
                    category=None) -> list:
        """Viral posts; each source is asked for its share of ``limit``."""
        _check_limit(limit)
        ids = self.resolve(source_ids)
        if not ids or limit == 0:
            return []
        per_source = math.ceil(limit / len(ids))
        # A cached share only answers requests for the same share
        return self._fan_out(
            ids, region, view="viral", scope=f"{category or ''}:{per_source}",
            call=lambda src: src.fetch_viral(region=region, limit=per_source, category=category),
        )

    def search(self, source_ids: list[str], query: str, limit: int = 25) -> list:
        """Free-text search over the sources that support it. Never cached."""
        _check_limit(limit)
        ids = [sid for sid in self.resolve(source_ids) if self.sources[sid].supports_search]
        return self._fan_out(
            ids, None, view="search", use_cache=False,
            call=lambda src: src.search(query, limit),
        )

    # ─────────────────────────────────────────────────
    # Fan-out
    # ─────────────────────────────────────────────────
    def resolve(self, source_ids) -> list[str]:
        """Validate ids; duplicates collapse, request order is kept."""
        unknown = [sid for sid in source_ids if sid not in self.sources]
        if unknown:
            raise ValueError(f"Unknown source id(s): {', '.join(unknown)}")
        return list(dict.fromkeys(source_ids))

    def _fan_out(self, source_ids, region, view: str, call, scope: str = "",
                 use_cache: bool = True) -> list:
        logger = get_logger()
        ids = self.resolve(source_ids)
        results = {}
        pending = {}

        for sid in ids:
            key = cache_key(sid, region, view, scope)
            if use_cache:
                cached = self.cache.get(key)
                if cached is not None:
                    get_logger(sid).debug(f"{view} served from cache ({len(cached)})")
                    results[sid] = cached
                    continue
            if not self.sources[sid].is_available:
                get_logger(sid).debug("not available, skipping")
                results[sid] = []
                continue
            pending[sid] = key

        if pending:
            started = time.monotonic()
            pool = concurrent.futures.ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(pending)),
                thread_name_prefix="trendpulse-fetch",
            )
            try:
                futures = {pool.submit(call, self.sources[sid]): sid for sid in pending}
                done, not_done = concurrent.futures.wait(futures, timeout=self.timeout)

                for future in done:
                    sid = futures[future]
                    try:
                        items = list(future.result() or [])
                    except Exception as e:
                        get_logger(sid).warning(f"{view} failed: {e}")
                        items = []
                    if use_cache:
                        self.cache.set(pending[sid], items)
                    results[sid] = items
                    get_logger(sid).debug(f"{view} returned {len(items)}")

                for future in not_done:
                    sid = futures[future]
                    get_logger(sid).warning(f"{view} timed out after {self.timeout:.1f}s")
                    results[sid] = []
            finally:
                # Do not join stragglers; their results are discarded
                pool.shutdown(wait=False, cancel_futures=True)

            logger.debug(f"{view} fan-out over {len(pending)} source(s) took {time.monotonic() - started:.2f}s")

        out = []
        for sid in ids:
            out.extend(results.get(sid, []))
        return out


def _check_limit(limit):
    if limit is None or limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit!r}")
