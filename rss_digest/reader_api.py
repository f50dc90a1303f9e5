"""
Reader API - Subscription listing and stream retrieval.

Talks to the Google Reader compatible endpoints:
- /reader/api/0/subscription/list?output=json
- /reader/api/0/stream/contents/<stream id>?n=<count>

Listing and per-stream failures are soft: they produce empty results
rather than exceptions, so one bad feed never aborts its siblings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from .auth import auth_headers
from .exceptions import NetworkError
from .formatter import format_articles, published_epoch
from .http_client import HttpClient
from .schemas import FormattedArticle

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """One subscribed feed as reported by the reader API."""
    id: str
    title: str
    icon_url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Subscription":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            icon_url=data.get("iconUrl") or "",
        )


@dataclass
class SubscriptionResult:
    """Per-subscription outcome of a batch."""
    subscription: Subscription
    ok: bool
    articles: list[FormattedArticle] = field(default_factory=list)
    error: str | None = None


def sort_by_published(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Newest first; ties keep response order."""
    return sorted(items, key=published_epoch, reverse=True)


class ReaderClient:
    """Authenticated access to one reader API for the duration of a run."""

    def __init__(self, http: HttpClient, api_url: str, max_items: int = 1000):
        self.http = http
        self.api_url = api_url.rstrip("/")
        self.max_items = max_items

    def subscription_list_url(self) -> str:
        return f"{self.api_url}/reader/api/0/subscription/list?output=json"

    def stream_url(self, stream_id: str) -> str:
        return f"{self.api_url}/reader/api/0/stream/contents/{quote(stream_id, safe='')}?n={self.max_items}"

    async def list_subscriptions(self, token: str) -> list[Subscription]:
        """Fetch the subscription list. Any failure yields an empty list."""
        try:
            response = await self.http.get(self.subscription_list_url(), headers=auth_headers(token))
            data = response.json()
        except (NetworkError, ValueError) as e:
            logger.error(f"Failed to list subscriptions: {e}")
            return []

        raw = data.get("subscriptions") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            logger.warning("Subscription list response has no 'subscriptions' array")
            return []

        subscriptions = []
        for entry in raw:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            subscriptions.append(Subscription.from_api(entry))
        return subscriptions

    async def _fetch_items(self, token: str, stream_id: str) -> list[dict[str, Any]]:
        """Fetch and sort a stream's items, raising on failure."""
        response = await self.http.get(self.stream_url(stream_id), headers=auth_headers(token))
        data = response.json()
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return sort_by_published([item for item in items if isinstance(item, dict)])

    async def fetch_articles(self, token: str, stream_id: str) -> list[dict[str, Any]]:
        """Fetch a stream's recent items, newest first. Any failure yields an empty list."""
        try:
            return await self._fetch_items(token, stream_id)
        except (NetworkError, ValueError) as e:
            logger.error(f"Failed to fetch subscription {stream_id}: {e}")
            return []

    async def fetch_subscription(
        self,
        token: str,
        subscription: Subscription,
        icon_base_url: str,
    ) -> SubscriptionResult:
        """Fetch and format one subscription, reporting failure as a value."""
        try:
            items = await self._fetch_items(token, subscription.id)
        except (NetworkError, ValueError) as e:
            logger.error(f"Failed to fetch subscription {subscription.id}: {e}")
            return SubscriptionResult(subscription=subscription, ok=False, error=str(e))

        if not items:
            logger.info(f"No new content for {subscription.title or subscription.id}")
        articles = format_articles(items, subscription, icon_base_url)
        return SubscriptionResult(subscription=subscription, ok=True, articles=articles)
