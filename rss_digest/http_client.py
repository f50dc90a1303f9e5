"""
HTTP Client - Outbound requests for the reader API.

Handles:
- Bounded retries with linearly increasing delay (base x attempt number)
- Per-attempt timeouts (a hung attempt counts as a failed one)
- "Fail on non-2xx" and "return any status" modes
- Optional cookie preservation across the requests of one client
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)
from yarl import URL

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


@dataclass
class HttpResponse:
    """Body and status of a completed request."""
    url: str
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text)


def _log_retry(retry_state: RetryCallState) -> None:
    url = retry_state.args[0] if retry_state.args else "?"
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Request {_redact(url)} failed (attempt {retry_state.attempt_number}): {exc!r}, retrying"
    )


def _redact(url: str) -> str:
    """Hide the password query parameter of login URLs in log output."""
    if "Passwd=" not in url:
        return url
    head, _, tail = url.partition("Passwd=")
    _, amp, rest = tail.partition("&")
    return f"{head}Passwd=***{amp}{rest}"


class HttpClient:
    """
    Retrying GET client shared by every outbound call of a pipeline run.

    Use as an async context manager; the underlying aiohttp session (and its
    cookie jar, when cookies are preserved) lives for the duration of the block.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        timeout: float = 10.0,
        preserve_cookies: bool = False,
    ):
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self.preserve_cookies = preserve_cookies
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HttpClient":
        cookie_jar = aiohttp.CookieJar(unsafe=True) if self.preserve_cookies else aiohttp.DummyCookieJar()
        self._session = aiohttp.ClientSession(cookie_jar=cookie_jar)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        raise_for_status: bool = True,
    ) -> HttpResponse:
        """
        GET a URL, retrying transient failures.

        Args:
            url: Fully encoded URL (it is sent as-is, without requoting)
            headers: Request headers
            raise_for_status: If False, any HTTP status is returned to the caller

        Returns:
            HttpResponse with the decoded body

        Raises:
            NetworkError: If every attempt failed
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_incrementing(start=self.retry_base_delay, increment=self.retry_base_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            return await retrying(self._send, url, headers or {}, raise_for_status)
        except RETRYABLE_ERRORS as e:
            raise NetworkError(_redact(url), self.attempts, str(e) or type(e).__name__) from e

    async def _send(self, url: str, headers: dict[str, str], raise_for_status: bool) -> HttpResponse:
        """Perform a single attempt."""
        if self._session is None:
            raise RuntimeError("HttpClient used outside of its context")

        async with self._session.get(
            URL(url, encoded=True),
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            if raise_for_status:
                resp.raise_for_status()
            # Undecodable bytes become U+FFFD rather than failing the request
            text = await resp.text(errors="replace")
            return HttpResponse(url=str(resp.url), status=resp.status, text=text)
