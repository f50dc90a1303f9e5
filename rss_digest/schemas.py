"""
Pydantic models for API request/response validation.
"""

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────
# Digest Schemas
# ─────────────────────────────────────────────────────────────

class FormattedArticle(BaseModel):
    """Compact display record for one article."""
    model_config = ConfigDict(frozen=True)

    site_name: str
    title: str
    link: str
    time: str  # "YYYY-MM-DD HH:MM" UTC
    description: str
    icon: str

    # Publish epoch, used for ordering only
    published: int = Field(default=0, exclude=True)


ArticleDigest = dict[str, list[FormattedArticle]]


# ─────────────────────────────────────────────────────────────
# Status Schemas
# ─────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Body returned when no digest can be served."""
    error: str
    message: str


class CacheStatus(BaseModel):
    populated: bool
    site_count: int
    expires_at: str | None
    last_refreshed_at: str | None


class RunReportResponse(BaseModel):
    started_at: str
    finished_at: str | None
    outcome: str
    batches_processed: int
    batches_total: int
    subscriptions_ok: int
    subscriptions_failed: int
    budget_exhausted: bool
    message: str | None = None


class StatusResponse(BaseModel):
    """Health check payload."""
    status: str
    version: str
    credentials_configured: bool
    cache: CacheStatus
    last_run: RunReportResponse | None = None
