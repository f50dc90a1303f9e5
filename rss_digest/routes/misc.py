"""
Miscellaneous routes: health check.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import config, state
from ..schemas import CacheStatus, StatusResponse

router = APIRouter(tags=["misc"])


# ─────────────────────────────────────────────────────────────
# Health Check
# ─────────────────────────────────────────────────────────────

@router.get("/status")
async def health_check() -> StatusResponse:
    """API health check with cache and last-run details."""
    cache_status = CacheStatus(populated=False, site_count=0, expires_at=None, last_refreshed_at=None)
    if state.cache:
        entry = state.cache.entry
        cache_status = CacheStatus(
            populated=entry.digest is not None,
            site_count=len(entry.digest or {}),
            expires_at=entry.expires_at.isoformat() if entry.expires_at else None,
            last_refreshed_at=entry.last_refreshed_at.isoformat() if entry.last_refreshed_at else None,
        )

    last_run = None
    if state.pipeline and state.pipeline.last_report:
        last_run = state.pipeline.last_report.to_response()

    return StatusResponse(
        status="ok",
        version=__version__,
        credentials_configured=config.has_credentials(),
        cache=cache_status,
        last_run=last_run,
    )
