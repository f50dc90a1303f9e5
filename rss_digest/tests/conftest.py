"""
Pytest fixtures for digest tests.
"""

import json
from typing import Any
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from rss_digest.cache import DigestCache
from rss_digest.config import state
from rss_digest.exceptions import NetworkError
from rss_digest.http_client import HttpResponse
from rss_digest.pipeline import DigestPipeline, PipelineSettings
from rss_digest.server import app

API_URL = "https://reader.example.com/api/greader.php"
ICON_BASE = "https://static.example.com/p/"


class FakeHttp:
    """
    Stand-in for HttpClient that answers from a table of URL fragments.

    A route value may be an HttpResponse, an exception to raise, or a
    callable taking the URL and returning either.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes = routes or {}
        self.calls: list[str] = []
        self.headers: list[dict] = []
        self.raise_modes: list[bool] = []

    async def __aenter__(self) -> "FakeHttp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def get(self, url: str, headers: dict | None = None, raise_for_status: bool = True) -> HttpResponse:
        self.calls.append(url)
        self.headers.append(headers or {})
        self.raise_modes.append(raise_for_status)
        for fragment, outcome in self.routes.items():
            if fragment in url:
                if callable(outcome):
                    outcome = outcome(url)
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise NetworkError(url, 1, "no route")


def text_response(body: str, status: int = 200) -> HttpResponse:
    return HttpResponse(url="https://reader.example.com", status=status, text=body)


def json_response(data: Any, status: int = 200) -> HttpResponse:
    return text_response(json.dumps(data), status)


def login_response(token: str = "tok-123") -> HttpResponse:
    return text_response(f"SID=abc\nLSID=def\nAuth={token}\n")


def stream_fragment(stream_id: str) -> str:
    return f"stream/contents/{quote(stream_id, safe='')}?"


def make_item(title: str, published: int, link: str | None = None, summary: str = "<p>Body</p>") -> dict:
    return {
        "title": title,
        "published": published,
        "summary": {"content": summary},
        "alternate": [{"href": link or f"https://example.com/{title.replace(' ', '-')}"}],
    }


def make_subscription(stream_id: str, title: str) -> dict:
    return {
        "id": stream_id,
        "title": title,
        "iconUrl": f"https://reader.example.com/f.php?{stream_id}/favicons/{title}.ico",
    }


def upstream_routes(feeds: dict[str, tuple[str, list[dict]]]) -> dict[str, Any]:
    """
    Build FakeHttp routes for a login, a subscription list and one stream per feed.

    Args:
        feeds: stream id -> (site title, raw items)
    """
    routes: dict[str, Any] = {
        "accounts/ClientLogin": login_response(),
        "subscription/list": json_response({
            "subscriptions": [make_subscription(sid, title) for sid, (title, _) in feeds.items()]
        }),
    }
    for sid, (_, items) in feeds.items():
        routes[stream_fragment(sid)] = json_response({"items": items})
    return routes


@pytest.fixture
def settings() -> PipelineSettings:
    """Pipeline settings with no delays."""
    return PipelineSettings(
        api_url=API_URL,
        username="alice@example.com",
        password="pass!word'(x)*",
        icon_base_url=ICON_BASE,
        batch_size=2,
        batch_pause=0,
        time_budget=60,
        max_items=50,
        max_retries=0,
        retry_base_delay=0,
        request_timeout=1,
    )


@pytest.fixture
def cache() -> DigestCache:
    return DigestCache(ttl_seconds=300, cooldown_seconds=60)


@pytest.fixture
def three_feeds() -> dict[str, tuple[str, list[dict]]]:
    return {
        "feed/a": ("Site A", [make_item(f"A{i}", 1_700_000_000 + i * 60) for i in range(12)]),
        "feed/b": ("Site B", [make_item("B0", 1_700_000_100), make_item("B1", 1_700_000_200)]),
        "feed/c": ("Site C", [make_item("C0", 1_700_000_300)]),
    }


@pytest.fixture
def make_pipeline(settings, cache):
    """Factory for a pipeline wired to a FakeHttp."""
    def factory(http: FakeHttp, **kwargs) -> DigestPipeline:
        options = {"settings": settings, "cache": cache, "http_factory": lambda: http}
        options.update(kwargs)
        return DigestPipeline(**options)
    return factory


@pytest.fixture
def client(settings):
    """Create a test client with an isolated cache and pipeline."""
    # Store original state
    original_cache = state.cache
    original_pipeline = state.pipeline

    http = FakeHttp()
    state.cache = DigestCache(ttl_seconds=300, cooldown_seconds=60)
    state.pipeline = DigestPipeline(settings, state.cache, http_factory=lambda: http)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client, http

    # Restore original state
    state.cache = original_cache
    state.pipeline = original_pipeline
