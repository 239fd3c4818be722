"""Tests for trendpulse/sources — adapters with mocked HTTP."""

import time
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from trendpulse.noise import NoiseFilter
from trendpulse.sources import (
    GoogleTrendsSource,
    RedditSource,
    SourcePost,
    TikTokSource,
    TrendingItem,
    XSource,
    YouTubeSource,
    build_sources,
)
from trendpulse.sources.feeds import entry_datetime, fetch_feed
from trendpulse.sources.google_trends import parse_traffic
from trendpulse.sources.tiktok import BOARD_URL
from trendpulse.sources.x import TrendPageParser

HT_NS = 'xmlns:ht="https://trends.google.com/trending/rss"'


def _response(json_data=None, content=b"", text=""):
    resp = MagicMock()
    resp.json.return_value = json_data
    resp.content = content
    resp.text = text
    resp.raise_for_status.return_value = None
    return resp


def _child(post_id, title, ups=0, comments=0, **extra):
    data = {
        "id": post_id,
        "title": title,
        "ups": ups,
        "num_comments": comments,
        "author": "someone",
        "permalink": f"/r/news/comments/{post_id}/",
        "subreddit": "news",
        "created_utc": 1767225600,
    }
    data.update(extra)
    return {"data": data}


def _listing(*children):
    return {"data": {"children": list(children)}}


class TestBase:
    def test_counters_coerced(self):
        post = SourcePost(source="reddit", external_id="1", content="x", likes="12", reposts=-3, comments=None)
        assert (post.likes, post.reposts, post.comments) == (12, 0, 0)

    def test_engagement_score(self):
        post = SourcePost(source="reddit", external_id="1", content="x", likes=10, comments=2, reposts=1)
        assert post.engagement_score == 18

    def test_item_canonical_key(self):
        assert TrendingItem(name="#ElonMusk", source="x").canonical_key == "elonmusk"

    def test_supports_search(self):
        assert RedditSource().supports_search
        assert not XSource().supports_search
        with pytest.raises(NotImplementedError):
            XSource().search("anything")

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            YouTubeSource().fetch_viral(limit=-1)


class TestFeeds:
    @patch("trendpulse.sources.feeds.requests.get")
    def test_parses_rss(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([("Hello", "https://a", "")]))
        feed = fetch_feed("https://feed")
        assert feed.entries[0].title == "Hello"
        assert mock_get.call_args.kwargs["timeout"] == 12

    @patch("trendpulse.sources.feeds.requests.get")
    def test_http_error_raises(self, mock_get):
        resp = _response()
        resp.raise_for_status.side_effect = requests.HTTPError("503")
        mock_get.return_value = resp
        with pytest.raises(requests.HTTPError):
            fetch_feed("https://feed")

    @patch("trendpulse.sources.feeds.requests.get")
    def test_garbage_raises(self, mock_get):
        mock_get.return_value = _response(content=b"<html><body><p>nope")
        with pytest.raises(ValueError):
            fetch_feed("https://feed")

    def test_entry_datetime(self):
        entry = {"published_parsed": time.gmtime(86400)}
        assert entry_datetime(entry) == datetime(1970, 1, 2, tzinfo=timezone.utc)
        assert entry_datetime({}) is None


class TestRedditSource:
    @patch("trendpulse.sources.reddit.requests.get")
    def test_fetch_viral(self, mock_get):
        mock_get.return_value = _response(json_data=_listing(
            _child("a", "Quiet news day", ups=100),
            _child("b", "Big debate #Election", ups=20, comments=40),
            _child("s", "Megathread rules", ups=9999, stickied=True),
        ))
        posts = RedditSource({"subreddits": ["news"]}).fetch_viral(limit=10)

        assert [p.external_id for p in posts] == ["b", "a"]
        top = posts[0]
        assert top.source == "reddit"
        assert top.comments == 40
        assert top.hashtags == ["#election"]
        assert top.url == "https://reddit.com/r/news/comments/b/"
        assert top.posted_at.tzinfo is not None
        url = mock_get.call_args.args[0]
        assert url == "https://www.reddit.com/r/news/hot.json"

    @patch("trendpulse.sources.reddit.requests.get")
    def test_region_and_category_filter(self, mock_get):
        mock_get.return_value = _response(json_data=_listing())
        RedditSource().fetch_viral(region="singapore", category="General", limit=10)
        urls = sorted(c.args[0] for c in mock_get.call_args_list)
        assert urls == [
            "https://www.reddit.com/r/popular/hot.json",
            "https://www.reddit.com/r/singapore/hot.json",
        ]

    @patch("trendpulse.sources.reddit.requests.get")
    def test_dedupes_crossposts(self, mock_get):
        mock_get.return_value = _response(json_data=_listing(_child("a", "Same post", ups=5)))
        posts = RedditSource({"subreddits": ["news", "worldnews"]}).fetch_viral(limit=10)
        assert len(posts) == 1

    @patch("trendpulse.retry.time.sleep")
    @patch("trendpulse.sources.reddit.requests.get")
    def test_failure_returns_empty(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("refused")
        assert RedditSource({"subreddits": ["news"]}).fetch_viral() == []
        assert mock_get.call_count == 2

    @patch("trendpulse.sources.reddit.requests.get")
    def test_fetch_trending(self, mock_get):
        mock_get.return_value = _response(json_data=_listing(
            _child("a", "Earthquake hits Tokyo", ups=100, comments=10),
            _child("b", "Tokyo earthquake aftershock", ups=50, comments=5),
            _child("c", "Cat learns piano", ups=10),
        ))
        topics = RedditSource({"subreddits": ["news"]}).fetch_trending()
        assert [t.name for t in topics] == ["earthquake", "tokyo"]
        assert topics[0].post_count == 2
        assert topics[0].engagement == 165
        assert topics[0].source == "reddit"

    @patch("trendpulse.sources.reddit.requests.get")
    def test_search(self, mock_get):
        mock_get.return_value = _response(json_data=_listing(_child("a", "Eclipse photos", ups=3)))
        posts = RedditSource().search("eclipse", limit=5)
        assert [p.content for p in posts] == ["Eclipse photos"]
        assert mock_get.call_args.kwargs["params"]["q"] == "eclipse"

    def test_empty_search(self):
        with pytest.raises(ValueError):
            RedditSource().search("  ")


class TestGoogleTrendsSource:
    def test_parse_traffic(self):
        assert parse_traffic("200,000+") == 200000
        assert parse_traffic("50K+") == 50000
        assert parse_traffic("2M+") == 2000000
        assert parse_traffic("") is None

    @patch("trendpulse.sources.feeds.requests.get")
    def test_feed(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([
            ("Super Bowl", "https://t/1", "<ht:approx_traffic>200,000+</ht:approx_traffic>"),
            ("viral", "https://t/2", ""),
            ("Taylor Swift", "https://t/3", ""),
        ], namespaces=HT_NS))
        src = GoogleTrendsSource({"geos": [{"geo": "US", "region": "global"}]})
        topics = src.fetch_trending()

        assert [(t.name, t.engagement) for t in topics] == [("Super Bowl", 200000), ("Taylor Swift", 900)]
        assert topics[0].url == "https://t/1"
        assert topics[0].source == "google_trends"

    @patch("trendpulse.sources.feeds.requests.get")
    def test_dedupes_across_geos(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([("Eclipse", "https://t/1", "")]))
        src = GoogleTrendsSource({"geos": [{"geo": "US", "region": "global"}, {"geo": "GB", "region": "global"}]})
        assert len(src.fetch_trending()) == 1
        assert mock_get.call_count == 2

    def test_region_falls_back_to_global_geos(self):
        src = GoogleTrendsSource()
        assert [g["geo"] for g in src._geos_for("singapore")] == ["SG"]
        assert [g["geo"] for g in src._geos_for("atlantis")] == ["US", "GB"]

    @patch("trendpulse.sources.feeds.requests.get")
    def test_geos_fetched_in_parallel(self, mock_get, rss_bytes):
        def slow_get(url, **kwargs):
            time.sleep(0.2)
            geo = url.rsplit("=", 1)[1]
            return _response(content=rss_bytes([(f"Storm {geo}", f"https://t/{geo}", "")]))

        mock_get.side_effect = slow_get
        geos = [{"geo": g, "region": "global"} for g in ("US", "GB", "AU", "SG")]
        started = time.monotonic()
        topics = GoogleTrendsSource({"geos": geos}).fetch_trending()
        assert time.monotonic() - started < 0.6
        assert mock_get.call_count == 4
        # Equal traffic keeps geo order
        assert [t.name for t in topics] == ["Storm US", "Storm GB", "Storm AU", "Storm SG"]

    @patch("pytrends.request.TrendReq")
    @patch("trendpulse.sources.feeds.requests.get")
    def test_pytrends_fallback(self, mock_get, mock_trendreq, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([]))
        frame = mock_trendreq.return_value.trending_searches.return_value
        frame.__getitem__.return_value.head.return_value.tolist.return_value = ["Eclipse", "fyp"]

        topics = GoogleTrendsSource({"geos": [{"geo": "US", "region": "global"}]}).fetch_trending()
        assert [(t.name, t.engagement) for t in topics] == [("Eclipse", 1000)]
        mock_trendreq.assert_called_once_with(hl="en-US", tz=0, timeout=(5, 10))
        mock_trendreq.return_value.trending_searches.assert_called_once_with(pn="united_states")

    @patch("trendpulse.sources.feeds.requests.get")
    def test_fetch_viral(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([("Eclipse", "https://t/1", "")]))
        [post] = GoogleTrendsSource({"geos": [{"geo": "US", "region": "global"}]}).fetch_viral(limit=5)
        assert post.external_id == "gt-eclipse"
        assert post.likes == post.views == 1000
        assert post.category == "Trending"


class TestXSource:
    @patch("trendpulse.sources.feeds.requests.get")
    def test_mirror(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([
            ("#Ukraine", "https://mirror/ukraine", ""),
            ("Champions League", "https://mirror/ucl", ""),
        ]))
        src = XSource({"mirrors": [{"url": "https://mirror/feed", "name": "Mirror"}]})
        topics = src.fetch_trending(region="us")

        assert [t.name for t in topics] == ["#Ukraine", "Champions League"]
        assert [t.engagement for t in topics] == [1000, 970]
        assert topics[0].hashtag == "#Ukraine"
        assert topics[1].hashtag is None
        assert topics[0].url == "https://mirror/ukraine"
        assert {t.region for t in topics} == {"us"}

    @patch("trendpulse.sources.x.requests.get")
    def test_scrape_prefers_links(self, mock_get):
        mock_get.return_value = _response(text=(
            '<ol><li><a class="trend-link" href="/t/1">#WorldCup</a></li>'
            '<li><a class="trend-link" href="/t/2">Elections</a></li>'
            '<li><span class="trend-name">Ignored</span></li></ol>'
        ))
        topics = XSource({"mirrors": []}).fetch_trending(region="singapore")
        assert [t.name for t in topics] == ["#WorldCup", "Elections"]
        assert topics[1].url == "https://x.com/search?q=Elections"
        assert mock_get.call_args.args[0] == "https://getdaytrends.com/singapore/"

    def test_parser_spans(self):
        parser = TrendPageParser()
        parser.feed('<span class="trend-name">Eclipse</span><span class="other">x</span><span class="trend">X</span>')
        assert parser.links == []
        assert parser.spans == ["Eclipse", "X"]

    @patch("trendpulse.retry.time.sleep")
    @patch("trendpulse.sources.x.requests.get")
    def test_everything_down_returns_empty(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("down")
        assert XSource().fetch_trending() == []

    @patch("trendpulse.sources.feeds.requests.get")
    def test_fetch_viral(self, mock_get, rss_bytes):
        mock_get.return_value = _response(content=rss_bytes([("#Ukraine", "https://mirror/u", "")]))
        [post] = XSource({"mirrors": [{"url": "https://m", "name": "M"}]}).fetch_viral()
        assert post.external_id == "x-ukraine"
        assert post.hashtags == ["#ukraine"]
        assert post.likes == 1000


YT_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:yt="http://www.youtube.com/xml/schemas/2015">
<title>Channel</title>
{entries}
</feed>"""

YT_ENTRY = """<entry><id>yt:video:{vid}</id><yt:videoId>{vid}</yt:videoId><title>{title}</title>
<link rel="alternate" href="https://www.youtube.com/watch?v={vid}"/><published>{published}</published></entry>"""


def _yt_feed(*videos):
    entries = "".join(YT_ENTRY.format(vid=v, title=t, published=p) for v, t, p in videos)
    return YT_FEED.format(entries=entries).encode("utf-8")


class TestYouTubeSource:
    CHANNEL = {"channels": [{"id": "UC1", "name": "Newsroom", "category": "News", "region": "global"}]}

    @patch("trendpulse.sources.feeds.requests.get")
    def test_fetch_viral_newest_first(self, mock_get):
        mock_get.return_value = _response(content=_yt_feed(
            ("old1", "Older upload", "2026-03-01T08:00:00+00:00"),
            ("new1", "Newer upload", "2026-03-01T10:00:00+00:00"),
        ))
        posts = YouTubeSource(self.CHANNEL).fetch_viral(limit=10)
        assert [p.external_id for p in posts] == ["yt-new1", "yt-old1"]
        assert posts[0].author_handle == "Newsroom"
        assert posts[0].category == "News"

    @patch("trendpulse.sources.feeds.requests.get")
    def test_fetch_trending(self, mock_get):
        mock_get.return_value = _response(content=_yt_feed(
            ("v1", "Solar eclipse over Mexico", "2026-03-01T10:00:00+00:00"),
            ("v2", "Eclipse chasers gather in Texas", "2026-03-01T09:00:00+00:00"),
            ("v3", "Mexico eclipse crowds LIVE", "2026-03-01T08:00:00+00:00"),
        ))
        topics = YouTubeSource(self.CHANNEL).fetch_trending()
        assert [(t.name, t.engagement) for t in topics] == [("eclipse", 300), ("mexico", 200)]

    def test_region_filter(self):
        src = YouTubeSource()
        with patch.object(src, "_fetch_channel", return_value=[]) as fetch:
            src.fetch_viral(region="singapore", category="News")
        names = sorted(c.args[0]["name"] for c in fetch.call_args_list)
        assert names == ["BBC News", "CNA", "CNN", "NBC News"]


class TestTikTokSource:
    @patch("trendpulse.sources.tiktok.requests.get")
    def test_board(self, mock_get):
        mock_get.return_value = _response(json_data={"trends": [
            {"name": "#DanceChallenge", "count": 5000},
            {"name": "fyp"},
            {"name": "Recipe"},
        ]})
        topics = TikTokSource().fetch_trending()
        assert [t.name for t in topics] == ["#DanceChallenge", "Recipe"]
        assert (topics[0].post_count, topics[0].engagement) == (5000, 5000)
        assert (topics[1].post_count, topics[1].engagement) == (97, 9700)
        assert topics[1].hashtag == "#Recipe"
        assert topics[1].url == "https://www.tiktok.com/tag/Recipe"

    @patch("trendpulse.sources.tiktok.requests.get")
    def test_board_down(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        assert TikTokSource().fetch_trending() == []

    @patch("trendpulse.sources.tiktok.requests.get")
    def test_viral_from_board(self, mock_get):
        mock_get.return_value = _response(json_data={"trends": [
            {"name": "#DanceChallenge", "count": 5000},
            {"name": "Recipe"},
        ]})
        posts = TikTokSource({"news_feeds": []}).fetch_viral(limit=10)
        assert [p.external_id for p in posts] == ["tokboard-recipe", "tokboard-dancechallenge"]
        assert posts[0].views == 97000
        assert posts[1].hashtags == ["#dancechallenge"]

    @patch("trendpulse.sources.tiktok.requests.get")
    def test_news_posts(self, mock_get, rss_bytes):
        feed = rss_bytes([
            ("TikTok bans #fyp dance #Ballet", "https://news/1", ""),
            ("Unrelated story", "https://news/2", ""),
        ])

        def fake_get(url, **kwargs):
            if url == BOARD_URL:
                raise requests.ConnectionError("down")
            return _response(content=feed)

        mock_get.side_effect = fake_get
        [post] = TikTokSource({"news_feeds": ["https://news/feed"]}).fetch_viral(limit=10)
        assert post.external_id.startswith("tiktok-news-")
        assert len(post.external_id) == len("tiktok-news-") + 16
        assert post.hashtags == ["#ballet"]
        assert post.category == "News"


class TestRegistry:
    def test_all_enabled_by_default(self):
        sources = build_sources(config={})
        assert set(sources) == {"reddit", "google_trends", "x", "youtube", "tiktok"}
        assert all(src.name == sid for sid, src in sources.items())

    def test_disable_and_configure(self):
        noise = NoiseFilter(["giveaway"])
        config = {"sources": {
            "tiktok": {"enabled": False},
            "reddit": {"subreddits": ["python"]},
        }}
        sources = build_sources(config=config, noise=noise)
        assert "tiktok" not in sources
        assert sources["reddit"].subreddits == [{"sub": "python", "region": "global", "category": "General"}]
        assert sources["google_trends"].noise is noise
