"""
Digest pipeline: cache gate -> login -> list -> batched fetch -> merge -> commit.

Handles:
- Serving the cached digest while it is fresh (TTL or cooldown)
- Single-flight runs: concurrent requests on a stale cache share one run
- Fixed-size batches, concurrent within a batch, sequential across batches
- A cooperative wall-clock budget checked between batches
- Falling back to the last digest when a run fails
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from .auth import Credentials, login
from .cache import DigestCache
from .config import Config
from .exceptions import AuthenticationError, DigestError, EmptyListingError
from .http_client import HttpClient
from .reader_api import ReaderClient, Subscription, SubscriptionResult
from .schemas import ArticleDigest, FormattedArticle, RunReportResponse

logger = logging.getLogger(__name__)

MAX_ARTICLES_PER_SITE = 10

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineSettings:
    """Snapshot of the settings one pipeline works with."""
    api_url: str
    username: str
    password: str
    icon_base_url: str
    batch_size: int = 10
    concurrent: bool = True
    batch_pause: float = 0.5  # seconds
    time_budget: float = 8.0  # seconds
    max_items: int = 1000
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds
    request_timeout: float = 10.0  # seconds
    preserve_cookies: bool = False

    @classmethod
    def from_config(cls, cfg: Config) -> "PipelineSettings":
        return cls(
            api_url=cfg.RSS_API_URL,
            username=cfg.RSS_USER,
            password=cfg.RSS_PASS,
            icon_base_url=cfg.ICON_BASE_URL,
            batch_size=max(1, cfg.BATCH_SIZE),
            concurrent=cfg.CONCURRENT_BATCHES,
            batch_pause=cfg.BATCH_PAUSE_MS / 1000,
            time_budget=cfg.TIME_BUDGET_MS / 1000,
            max_items=cfg.MAX_ITEMS_PER_FEED,
            max_retries=max(0, cfg.MAX_RETRIES),
            retry_base_delay=cfg.RETRY_BASE_DELAY_MS / 1000,
            request_timeout=cfg.REQUEST_TIMEOUT_MS / 1000,
            preserve_cookies=cfg.PRESERVE_COOKIES,
        )

    @property
    def credentials(self) -> Credentials:
        return Credentials(username=self.username, password=self.password)


@dataclass
class RunReport:
    """What happened during the last pipeline run."""
    started_at: datetime
    finished_at: datetime | None = None
    outcome: str = "running"  # "success", "partial", "stale", "failed"
    batches_processed: int = 0
    batches_total: int = 0
    subscriptions_ok: int = 0
    subscriptions_failed: int = 0
    budget_exhausted: bool = False
    message: str | None = None

    def finish(self, outcome: str, message: str | None = None) -> None:
        self.outcome = outcome
        self.message = message
        self.finished_at = datetime.now(timezone.utc)

    def to_response(self) -> RunReportResponse:
        return RunReportResponse(
            started_at=self.started_at.isoformat(),
            finished_at=self.finished_at.isoformat() if self.finished_at else None,
            outcome=self.outcome,
            batches_processed=self.batches_processed,
            batches_total=self.batches_total,
            subscriptions_ok=self.subscriptions_ok,
            subscriptions_failed=self.subscriptions_failed,
            budget_exhausted=self.budget_exhausted,
            message=self.message,
        )


def chunk(items: list[T], size: int) -> list[list[T]]:
    """Split a list into contiguous groups of at most `size` items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def _identity(article: FormattedArticle) -> tuple[str, str, int]:
    return (article.link, article.title, article.published)


def merge_site(
    new: list[FormattedArticle],
    existing: list[FormattedArticle],
    limit: int = MAX_ARTICLES_PER_SITE,
) -> list[FormattedArticle]:
    """
    Combine new and existing articles for one site.

    Newest first (ties favour the new articles), exact repeats collapsed,
    cut to `limit`.
    """
    combined = sorted(new + existing, key=lambda a: a.published, reverse=True)
    merged = []
    seen = set()
    for article in combined:
        key = _identity(article)
        if key in seen:
            continue
        seen.add(key)
        merged.append(article)
        if len(merged) == limit:
            break
    return merged


def merge_digest(previous: ArticleDigest | None, results: list[SubscriptionResult]) -> ArticleDigest:
    """Merge one batch of results into a copy of the previous digest."""
    fresh: dict[str, list[FormattedArticle]] = {}
    for result in results:
        for article in result.articles:
            fresh.setdefault(article.site_name, []).append(article)

    merged = dict(previous or {})
    for site_name, articles in fresh.items():
        merged[site_name] = merge_site(articles, merged.get(site_name, []))
    return merged


def _default_http_factory(settings: PipelineSettings) -> Callable[[], HttpClient]:
    def factory() -> HttpClient:
        return HttpClient(
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            timeout=settings.request_timeout,
            preserve_cookies=settings.preserve_cookies,
        )
    return factory


class DigestPipeline:
    """Builds the per-site digest and owns all writes to the digest cache."""

    def __init__(
        self,
        settings: PipelineSettings,
        cache: DigestCache,
        http_factory: Callable[[], Any] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.cache = cache
        self._http_factory = http_factory or _default_http_factory(settings)
        self._sleep = sleep
        self._monotonic = monotonic
        self._inflight: asyncio.Future | None = None
        self.last_report: RunReport | None = None

    async def get_digest(self) -> ArticleDigest:
        """
        Return the digest, running the pipeline only when the cache is not fresh.

        Requests arriving while a run is in flight await that run's outcome
        (digest, stale fallback or error) instead of starting their own.

        Raises:
            DigestError: If the run failed and there is no earlier digest to serve
        """
        cached = self.cache.get_fresh()
        if cached is not None:
            logger.info("Serving cached digest")
            return cached

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run_shared())
        else:
            logger.info("Joining pipeline run already in progress")
        # A cancelled request must not cancel the run other requests wait on
        return await asyncio.shield(self._inflight)

    async def _run_shared(self) -> ArticleDigest:
        try:
            return await self._run_with_fallback()
        finally:
            self._inflight = None

    async def _run_with_fallback(self) -> ArticleDigest:
        try:
            return await self.run()
        except DigestError as e:
            return self._fallback(e, str(e))
        except Exception as e:
            logger.exception("Unexpected error during pipeline run")
            return self._fallback(e, repr(e))

    def _fallback(self, error: Exception, message: str) -> ArticleDigest:
        """Serve the previous digest if there is one, otherwise re-raise `error`."""
        stale = self.cache.digest
        if self.last_report is not None:
            self.last_report.finish("stale" if stale is not None else "failed", message)
        if stale is not None:
            logger.warning(f"Pipeline failed ({message}); returning previous digest")
            return stale
        logger.error(f"Pipeline failed with no cached digest: {message}")
        raise error

    async def run(self) -> ArticleDigest:
        """Run the full pipeline once and commit the result to the cache."""
        report = RunReport(started_at=datetime.now(timezone.utc))
        self.last_report = report
        started = self._monotonic()
        settings = self.settings

        if not (settings.username and settings.password):
            raise AuthenticationError("Reader credentials are not configured")

        async with self._http_factory() as http:
            result = await login(http, settings.api_url, settings.credentials)
            if not result.success or not result.token:
                raise AuthenticationError(result.message or "No Auth token received")
            token = result.token

            reader = ReaderClient(http, settings.api_url, max_items=settings.max_items)
            subscriptions = await reader.list_subscriptions(token)
            if not subscriptions:
                raise EmptyListingError("Subscription list is empty")
            logger.info(f"Found {len(subscriptions)} subscriptions")

            batches = chunk(subscriptions, settings.batch_size)
            report.batches_total = len(batches)
            digest = self.cache.digest or {}

            for index, batch in enumerate(batches):
                logger.info(f"Processing batch {index + 1}/{len(batches)}")
                results = await self._process_batch(reader, token, batch)
                digest = merge_digest(digest, results)

                report.batches_processed += 1
                report.subscriptions_ok += sum(1 for r in results if r.ok)
                report.subscriptions_failed += sum(1 for r in results if not r.ok)

                if index == len(batches) - 1:
                    break
                elapsed = self._monotonic() - started
                if elapsed >= settings.time_budget:
                    report.budget_exhausted = True
                    logger.warning(
                        f"Time budget reached after {elapsed:.1f}s; "
                        f"skipping {len(batches) - index - 1} remaining batch(es)"
                    )
                    break
                await self._sleep(settings.batch_pause)

        self.cache.commit(digest)
        partial = report.budget_exhausted or report.subscriptions_failed > 0
        report.finish("partial" if partial else "success")
        logger.info(
            f"Digest updated: {len(digest)} sites, "
            f"{report.subscriptions_ok} ok, {report.subscriptions_failed} failed"
        )
        return digest

    async def _process_batch(
        self,
        reader: ReaderClient,
        token: str,
        batch: list[Subscription],
    ) -> list[SubscriptionResult]:
        icon_base = self.settings.icon_base_url

        if self.settings.concurrent:
            outcomes = await asyncio.gather(
                *(reader.fetch_subscription(token, sub, icon_base) for sub in batch),
                return_exceptions=True,
            )
        else:
            outcomes = []
            for sub in batch:
                try:
                    outcomes.append(await reader.fetch_subscription(token, sub, icon_base))
                except Exception as e:
                    outcomes.append(e)

        results = []
        for sub, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected error fetching {sub.id}: {outcome!r}")
                outcome = SubscriptionResult(subscription=sub, ok=False, error=str(outcome))
            results.append(outcome)
        return results
