"""
Cache - Process-lifetime digest cache.

A single slot holding the last committed digest, with two freshness checks:
- TTL: the digest is served as-is until it expires
- Cooldown: shortly after a refresh, the digest is served even past TTL,
  so bursts of requests do not each re-run the pipeline

The entry is replaced as a whole on commit; readers never see a half-merged digest.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from .schemas import ArticleDigest


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    digest: ArticleDigest | None
    expires_at: datetime | None
    last_refreshed_at: datetime | None


EMPTY_ENTRY = CacheEntry(digest=None, expires_at=None, last_refreshed_at=None)


class DigestCache:
    """Single-writer, atomically replaced digest cache."""

    def __init__(
        self,
        ttl_seconds: int = 300,
        cooldown_seconds: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self._clock = clock
        self._entry = EMPTY_ENTRY

    @property
    def entry(self) -> CacheEntry:
        return self._entry

    @property
    def digest(self) -> ArticleDigest | None:
        """Last committed digest regardless of age."""
        return self._entry.digest

    def is_populated(self) -> bool:
        return self._entry.digest is not None

    def within_ttl(self) -> bool:
        entry = self._entry
        return entry.expires_at is not None and self._clock() < entry.expires_at

    def within_cooldown(self) -> bool:
        entry = self._entry
        if entry.last_refreshed_at is None:
            return False
        return self._clock() - entry.last_refreshed_at < self.cooldown

    def get_fresh(self) -> ArticleDigest | None:
        """Return the digest if either freshness check passes, else None."""
        if not self.is_populated():
            return None
        if self.within_ttl() or self.within_cooldown():
            return self._entry.digest
        return None

    def commit(self, digest: ArticleDigest) -> CacheEntry:
        """Replace the cached digest and reset both timers."""
        now = self._clock()
        self._entry = CacheEntry(
            digest=digest,
            expires_at=now + self.ttl,
            last_refreshed_at=now,
        )
        return self._entry

    def clear(self) -> None:
        self._entry = EMPTY_ENTRY
