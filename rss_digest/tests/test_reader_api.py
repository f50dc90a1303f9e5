"""
Tests for subscription listing and stream retrieval.
"""

import pytest

from rss_digest.exceptions import NetworkError
from rss_digest.reader_api import ReaderClient, Subscription, sort_by_published

from .conftest import (
    API_URL,
    ICON_BASE,
    FakeHttp,
    json_response,
    make_item,
    make_subscription,
    stream_fragment,
    text_response,
)


class TestSorting:

    def test_newest_first(self):
        items = [{"published": 1}, {"published": 3}, {"published": 2}]
        assert [i["published"] for i in sort_by_published(items)] == [3, 2, 1]

    def test_ties_keep_response_order(self):
        items = [{"id": "a", "published": 5}, {"id": "b", "published": 5}, {"id": "c", "published": 9}]
        assert [i["id"] for i in sort_by_published(items)] == ["c", "a", "b"]

    def test_missing_published_sorts_last(self):
        items = [{"id": "x"}, {"id": "y", "published": 1}]
        assert [i["id"] for i in sort_by_published(items)] == ["y", "x"]


class TestUrls:

    def test_stream_url_encodes_stream_id(self):
        reader = ReaderClient(FakeHttp(), API_URL + "/", max_items=100)
        url = reader.stream_url("feed/https://example.com/rss?x=1")
        assert url == (
            f"{API_URL}/reader/api/0/stream/contents/"
            "feed%2Fhttps%3A%2F%2Fexample.com%2Frss%3Fx%3D1?n=100"
        )

    def test_subscription_list_url(self):
        reader = ReaderClient(FakeHttp(), API_URL)
        assert reader.subscription_list_url() == f"{API_URL}/reader/api/0/subscription/list?output=json"


class TestListSubscriptions:
    """Tests for the subscription listing."""

    @pytest.mark.asyncio
    async def test_parses_subscriptions(self):
        http = FakeHttp({"subscription/list": json_response({
            "subscriptions": [make_subscription("feed/1", "One"), make_subscription("feed/2", "Two")]
        })})

        subs = await ReaderClient(http, API_URL).list_subscriptions("tok")

        assert [s.id for s in subs] == ["feed/1", "feed/2"]
        assert subs[0].title == "One"
        assert subs[0].icon_url.endswith("One.ico")
        assert http.headers[0] == {"Authorization": "GoogleLogin auth=tok"}

    @pytest.mark.asyncio
    async def test_missing_field_yields_empty(self):
        http = FakeHttp({"subscription/list": json_response({"other": []})})
        assert await ReaderClient(http, API_URL).list_subscriptions("tok") == []

    @pytest.mark.asyncio
    async def test_malformed_field_yields_empty(self):
        http = FakeHttp({"subscription/list": json_response({"subscriptions": "nope"})})
        assert await ReaderClient(http, API_URL).list_subscriptions("tok") == []

    @pytest.mark.asyncio
    async def test_non_json_yields_empty(self):
        http = FakeHttp({"subscription/list": text_response("<html>error</html>")})
        assert await ReaderClient(http, API_URL).list_subscriptions("tok") == []

    @pytest.mark.asyncio
    async def test_network_failure_yields_empty(self):
        http = FakeHttp({"subscription/list": NetworkError("u", 3, "down")})
        assert await ReaderClient(http, API_URL).list_subscriptions("tok") == []

    @pytest.mark.asyncio
    async def test_skips_entries_without_id(self):
        http = FakeHttp({"subscription/list": json_response({
            "subscriptions": [{"title": "No id"}, "junk", make_subscription("feed/1", "One")]
        })})

        subs = await ReaderClient(http, API_URL).list_subscriptions("tok")

        assert [s.id for s in subs] == ["feed/1"]


class TestFetchArticles:
    """Tests for per-stream retrieval."""

    @pytest.mark.asyncio
    async def test_returns_sorted_items(self):
        items = [make_item("old", 100), make_item("new", 300), make_item("mid", 200)]
        http = FakeHttp({stream_fragment("feed/1"): json_response({"items": items})})

        result = await ReaderClient(http, API_URL, max_items=25).fetch_articles("tok", "feed/1")

        assert [i["title"] for i in result] == ["new", "mid", "old"]
        assert http.calls[0].endswith("?n=25")

    @pytest.mark.asyncio
    async def test_failure_yields_empty(self):
        http = FakeHttp({stream_fragment("feed/1"): NetworkError("u", 3, "down")})
        assert await ReaderClient(http, API_URL).fetch_articles("tok", "feed/1") == []

    @pytest.mark.asyncio
    async def test_infinite_published_sorts_last(self):
        """JSON Infinity in a publish time is treated as missing."""
        items = [make_item("broken", 0), make_item("fine", 100)]
        items[0]["published"] = float("inf")
        http = FakeHttp({stream_fragment("feed/1"): json_response({"items": items})})

        result = await ReaderClient(http, API_URL).fetch_articles("tok", "feed/1")

        assert [i["title"] for i in result] == ["fine", "broken"]

    @pytest.mark.asyncio
    async def test_missing_items_yields_empty(self):
        http = FakeHttp({stream_fragment("feed/1"): json_response({"id": "feed/1"})})
        assert await ReaderClient(http, API_URL).fetch_articles("tok", "feed/1") == []


class TestFetchSubscription:
    """Tests for the per-subscription result value."""

    @pytest.mark.asyncio
    async def test_success_result(self):
        sub = Subscription(id="feed/1", title="One", icon_url="https://x/one.ico")
        http = FakeHttp({stream_fragment("feed/1"): json_response({"items": [make_item("a", 1)]})})

        result = await ReaderClient(http, API_URL).fetch_subscription("tok", sub, ICON_BASE)

        assert result.ok is True
        assert result.error is None
        assert [a.title for a in result.articles] == ["a"]
        assert result.articles[0].icon == "https://static.example.com/p/one.ico"

    @pytest.mark.asyncio
    async def test_failure_result(self):
        """A failing stream becomes an ok=False value instead of an exception."""
        sub = Subscription(id="feed/1", title="One", icon_url="")
        http = FakeHttp({stream_fragment("feed/1"): NetworkError("u", 3, "down")})

        result = await ReaderClient(http, API_URL).fetch_subscription("tok", sub, ICON_BASE)

        assert result.ok is False
        assert result.articles == []
        assert "down" in result.error

    @pytest.mark.asyncio
    async def test_empty_stream_is_ok(self):
        sub = Subscription(id="feed/1", title="One", icon_url="")
        http = FakeHttp({stream_fragment("feed/1"): json_response({"items": []})})

        result = await ReaderClient(http, API_URL).fetch_subscription("tok", sub, ICON_BASE)

        assert result.ok is True
        assert result.articles == []
