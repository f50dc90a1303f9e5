"""
RSS Digest Backend

A FastAPI service that logs into a Google Reader compatible API,
collects the newest articles of every subscription and serves them
as a compact per-site digest.
"""

__version__ = "1.0.0"
