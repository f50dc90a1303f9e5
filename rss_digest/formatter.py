"""
Article formatting: upstream reader items -> compact display records.

Pure functions, no I/O.
"""

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup

from .schemas import FormattedArticle

if TYPE_CHECKING:
    from .reader_api import Subscription

UNTITLED = "untitled"
NO_LINK = "#"
UNKNOWN_SITE = "unknown site"

DESCRIPTION_LIMIT = 100
ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s+")
# Tags that only appear after entity decoding, e.g. from double-escaped summaries
_RESIDUAL_TAG = re.compile(r"<!--.*?-->|</?[A-Za-z][^<>]*>", re.DOTALL)


def published_epoch(article: dict[str, Any]) -> int:
    """Publish time in epoch seconds; missing or malformed values count as 0."""
    try:
        return int(float(article.get("published") or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def format_time(epoch: int) -> str:
    """Render epoch seconds as a minute-precision UTC timestamp."""
    try:
        moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        moment = datetime.fromtimestamp(0, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M")


def clean_text(html: str) -> str:
    """Strip markup and collapse whitespace."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(separator=" ")
    text = _RESIDUAL_TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + ELLIPSIS


def icon_url(upstream_icon: str | None, base_url: str) -> str:
    """
    Re-root the upstream favicon under our own static path.

    Assumes the last path segment of the upstream icon URL is a stable filename.
    """
    if not upstream_icon:
        return ""
    filename = upstream_icon.rstrip("/").split("/")[-1]
    if not filename:
        return ""
    return f"{base_url.rstrip('/')}/{filename}"


def _first_link(article: dict[str, Any]) -> str:
    alternates = article.get("alternate") or []
    if alternates and isinstance(alternates[0], dict):
        return alternates[0].get("href") or NO_LINK
    return NO_LINK


def _summary_html(article: dict[str, Any]) -> str:
    summary = article.get("summary")
    if isinstance(summary, dict):
        return summary.get("content") or ""
    return ""


def format_article(article: dict[str, Any], site_name: str, icon: str) -> FormattedArticle:
    epoch = published_epoch(article)
    return FormattedArticle(
        site_name=site_name,
        title=article.get("title") or UNTITLED,
        link=_first_link(article),
        time=format_time(epoch),
        description=truncate(clean_text(_summary_html(article))),
        icon=icon,
        published=epoch,
    )


def format_articles(
    articles: list[dict[str, Any]],
    subscription: "Subscription",
    icon_base_url: str,
) -> list[FormattedArticle]:
    """Format every raw article of a subscription, preserving order."""
    site_name = subscription.title or UNKNOWN_SITE
    icon = icon_url(subscription.icon_url, icon_base_url)
    return [format_article(article, site_name, icon) for article in articles]
