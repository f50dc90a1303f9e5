"""
API route modules.
"""

from .digest import router as digest_router
from .misc import router as misc_router

__all__ = [
    "digest_router",
    "misc_router",
]
