"""CLI entry point — python -m trendpulse."""

import argparse
import json
import sys
from datetime import timedelta

from .config import WATCH_STALE_MINUTES, get_source_config, get_store_path, load_config, save_config
from .log import set_verbose


def _split(value):
    return [v.strip() for v in value.split(",") if v.strip()] if value else None


def _emit(rows, as_json: bool):
    if as_json:
        print(json.dumps([r.to_dict() for r in rows], indent=2, ensure_ascii=False))
        return True
    return False


def build_engine():
    from .engine import TrendEngine
    from .store import JsonFileStore

    return TrendEngine(store=JsonFileStore(get_store_path()))


def cmd_topics(args):
    engine = build_engine()
    topics = engine.get_trending_topics(
        sources=_split(args.sources), region=args.region, limit=args.limit, snapshot=args.snapshot,
    )
    if _emit(topics, args.json):
        return
    if not topics:
        print("  No trending topics from the selected sources.")
        return

    print(f"\n  Trending topics ({len(topics)}):\n")
    for i, t in enumerate(topics, 1):
        marker = "*" if t.is_cross_source else " "
        print(f"  {i:2d}.{marker} {t.name}  [{', '.join(t.sources)}]  score={t.cross_source_score:,}")


def cmd_viral(args):
    engine = build_engine()
    posts = engine.get_viral_posts(
        sources=_split(args.sources), region=args.region, limit=args.limit, category=args.category,
    )
    if _emit(posts, args.json):
        return
    if not posts:
        print("  No viral posts from the selected sources.")
        return

    print(f"\n  Viral posts ({len(posts)}):\n")
    for i, p in enumerate(posts, 1):
        print(f"  {i:2d}. [{p.source}] {p.content[:90]}")
        print(f"      {p.likes:,} likes  {p.comments:,} comments  {p.reposts:,} reposts")


def cmd_hashtags(args):
    engine = build_engine()
    if args.stored:
        # Last recorded metrics, no fetching
        tags = engine.store.top_hashtags(args.limit, direction=args.direction)
    else:
        tags = engine.get_trending_hashtags(sources=_split(args.sources), region=args.region, limit=args.limit)
    if _emit(tags, args.json):
        return
    if not tags:
        print("  No hashtags found.")
        return

    arrows = {"rising": "^", "falling": "v", "stable": "="}
    print(f"\n  Trending hashtags ({len(tags)}):\n")
    for i, h in enumerate(tags, 1):
        print(f"  {i:2d}. {h.hashtag}  {h.current_engagement:,}  {arrows[h.momentum_direction]} {h.percent_change:+d}%")


def cmd_search(args):
    engine = build_engine()
    posts = engine.search_posts(args.query, sources=_split(args.sources), limit=args.limit)
    if _emit(posts, args.json):
        return
    for i, p in enumerate(posts, 1):
        print(f"  {i:2d}. [{p.source}] {p.content[:90]}")
    if not posts:
        print("  No results.")


def cmd_watch(args):
    engine = build_engine()
    if args.watch_cmd == "add":
        w = engine.watch(args.query, args.type, _split(args.sources), _split(args.regions))
        print(f"  Watching {w.query} ({w.query_type}) as {w.id}")
    elif args.watch_cmd == "remove":
        if not engine.store.remove_watch(args.id):
            print(f"  No watch with id {args.id}")
            sys.exit(1)
        print(f"  Removed {args.id}")
    else:
        watches = engine.store.list_watches()
        if _emit(watches, args.json):
            return
        for w in watches:
            polled = w.last_polled_at.isoformat() if w.last_polled_at else "never"
            print(f"  {w.id}  {w.query}  [{', '.join(w.sources)}]  last polled: {polled}")
        if not watches:
            print("  No watches.")


def cmd_sources(args):
    from .sources import SOURCE_CLASSES, TrendSource

    if args.enable or args.disable:
        config = load_config()
        for name, enabled in [(args.enable, True), (args.disable, False)]:
            if not name:
                continue
            if name not in SOURCE_CLASSES:
                raise ValueError(f"Unknown source id(s): {name}")
            config.setdefault("sources", {}).setdefault(name, {})["enabled"] = enabled
        save_config(config)

    for name, cls in SOURCE_CLASSES.items():
        enabled = get_source_config(name).get("enabled", True)
        search = "search" if cls.search is not TrendSource.search else ""
        print(f"  {name:<14} {'on ' if enabled else 'off'}  {search}")


def cmd_poll(args):
    engine = build_engine()
    snapshots = engine.poll_watches(timedelta(minutes=args.stale_minutes))
    if _emit(snapshots, args.json):
        return
    print(f"  Polled {len(snapshots)} watch(es)")


def cmd_history(args):
    engine = build_engine()
    snapshots = engine.topic_history(args.topic, hours=args.hours)
    if _emit(snapshots, args.json):
        return
    for s in snapshots:
        print(f"  {s.snapshot_at:%Y-%m-%d %H:%M}  {s.total_engagement:>10,}  {s.total_posts:>5} posts")
    if not snapshots:
        print(f"  No snapshots for '{args.topic}' in the last {args.hours:g}h")


def main():
    parser = argparse.ArgumentParser(
        description="trendpulse — cross-platform trend aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    sub = parser.add_subparsers(dest="cmd")

    # topics
    p_topics = sub.add_parser("topics", help="Trending topics merged across sources")
    p_topics.add_argument("--sources", default=None, help="Comma-separated source ids")
    p_topics.add_argument("--region", default=None)
    p_topics.add_argument("--limit", type=int, default=30)
    p_topics.add_argument("--snapshot", action="store_true", help="Record a history snapshot per topic")

    # viral
    p_viral = sub.add_parser("viral", help="Viral posts ranked by engagement")
    p_viral.add_argument("--sources", default=None)
    p_viral.add_argument("--region", default=None)
    p_viral.add_argument("--category", default=None)
    p_viral.add_argument("--limit", type=int, default=50)

    # hashtags
    p_tags = sub.add_parser("hashtags", help="Trending hashtags with momentum")
    p_tags.add_argument("--sources", default=None)
    p_tags.add_argument("--region", default=None)
    p_tags.add_argument("--limit", type=int, default=20)
    p_tags.add_argument("--stored", action="store_true", help="Show stored momentum instead of fetching")
    p_tags.add_argument("--direction", default=None, choices=["rising", "falling", "stable"])

    # search
    p_search = sub.add_parser("search", help="Search sources that support it")
    p_search.add_argument("query")
    p_search.add_argument("--sources", default=None)
    p_search.add_argument("--limit", type=int, default=25)

    # watch
    p_watch = sub.add_parser("watch", help="Manage watched trends")
    watch_sub = p_watch.add_subparsers(dest="watch_cmd")
    p_add = watch_sub.add_parser("add")
    p_add.add_argument("query")
    p_add.add_argument("--type", default="keyword", choices=["hashtag", "keyword", "phrase"])
    p_add.add_argument("--sources", default=None)
    p_add.add_argument("--regions", default=None)
    p_remove = watch_sub.add_parser("remove")
    p_remove.add_argument("id")
    watch_sub.add_parser("list")

    # sources
    p_sources = sub.add_parser("sources", help="List, enable or disable source adapters")
    p_sources.add_argument("--enable", default=None, metavar="ID")
    p_sources.add_argument("--disable", default=None, metavar="ID")

    # poll
    p_poll = sub.add_parser("poll", help="Snapshot watches not polled recently")
    p_poll.add_argument("--stale-minutes", type=int, default=WATCH_STALE_MINUTES)

    # history
    p_history = sub.add_parser("history", help="Snapshot history for a topic")
    p_history.add_argument("topic")
    p_history.add_argument("--hours", type=float, default=24)

    args = parser.parse_args()

    if args.verbose:
        set_verbose(True)

    if not args.cmd:
        parser.print_help()
        return

    handlers = {
        "topics": cmd_topics,
        "viral": cmd_viral,
        "hashtags": cmd_hashtags,
        "search": cmd_search,
        "watch": cmd_watch,
        "sources": cmd_sources,
        "poll": cmd_poll,
        "history": cmd_history,
    }
    try:
        handlers[args.cmd](args)
    except ValueError as e:
        print(f"  Error: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
