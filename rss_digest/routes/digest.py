"""
Digest route: the per-site article digest served to the front end.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import get_pipeline
from ..pipeline import DigestPipeline
from ..schemas import FormattedArticle

router = APIRouter(tags=["digest"])


@router.get("/")
@router.get("/api/rss")
async def get_digest(
    pipeline: Annotated[DigestPipeline, Depends(get_pipeline)]
) -> dict[str, list[FormattedArticle]]:
    """Up to ten most recent articles per subscribed site, newest first."""
    return await pipeline.get_digest()
