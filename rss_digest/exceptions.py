"""
Error types for the digest pipeline and the payload shape used at the HTTP boundary.

Per-subscription failures are not exceptions; they travel as
SubscriptionResult values (see reader_api) so one feed cannot take down its siblings.
"""


class DigestError(Exception):
    """Base class for pipeline-level failures."""

    error = "Failed to fetch RSS data"

    def to_payload(self) -> dict:
        return error_payload(self.error, str(self))


class NetworkError(DigestError):
    """Raised once an outbound request has used up all of its attempts."""

    error = "Upstream request failed"

    def __init__(self, url: str, attempts: int, reason: str):
        self.url = url
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"Request to {url} failed after {attempts} attempt(s): {reason}")


class AuthenticationError(DigestError):
    """Login did not yield an Auth token. Terminal for the run."""

    error = "Login failed"


class EmptyListingError(DigestError):
    """The subscription list came back empty. Terminal for the run."""

    error = "No subscriptions"


def error_payload(error: str, message: str) -> dict:
    """Build the JSON body returned on terminal failure."""
    return {"error": error, "message": message}
