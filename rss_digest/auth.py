"""
ClientLogin authentication against the Google Reader compatible API.

The login endpoint answers with a plain-text body of Key=Value lines,
one of which is Auth=<token>. Some servers return that body with a
non-2xx status, so the status code is never trusted on its own.
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import quote

from .exceptions import NetworkError
from .http_client import HttpClient

logger = logging.getLogger(__name__)

AUTH_MARKER = "Auth="

# Browser-like headers; some greader.php deployments reject default client agents
LOGIN_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/114.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
}

_TOKEN_PATTERN = re.compile(re.escape(AUTH_MARKER) + r"([^\r\n]*)")


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass
class LoginResult:
    """Outcome of a login attempt."""
    success: bool
    token: str | None = None
    message: str = ""


def encode_component(value: str) -> str:
    """
    Percent-encode a query value the way the legacy API expects.

    Everything outside A-Z a-z 0-9 - _ . ~ is escaped, including
    space and the sub-delimiters ! ' ( ) *.
    """
    return quote(value, safe="")


def build_login_url(api_url: str, credentials: Credentials) -> str:
    return (
        f"{api_url.rstrip('/')}/accounts/ClientLogin"
        f"?Email={encode_component(credentials.username)}"
        f"&Passwd={encode_component(credentials.password)}"
    )


def extract_token(body: str) -> str | None:
    """Return the value after Auth= up to the end of its line, or None."""
    match = _TOKEN_PATTERN.search(body)
    if not match:
        return None
    token = match.group(1).strip()
    return token or None


def auth_headers(token: str) -> dict[str, str]:
    """Headers for authenticated reader API calls."""
    return {"Authorization": f"GoogleLogin auth={token}"}


async def login(client: HttpClient, api_url: str, credentials: Credentials) -> LoginResult:
    """
    Log in and extract the session token.

    Never raises for upstream problems; a failed login is reported
    through LoginResult.success so the caller decides what it means for the run.
    """
    url = build_login_url(api_url, credentials)

    try:
        response = await client.get(url, headers=LOGIN_HEADERS, raise_for_status=False)
    except NetworkError as e:
        logger.error(f"Login request failed: {e}")
        return LoginResult(success=False, message=str(e))

    logger.debug(f"Login response status: {response.status}")
    token = extract_token(response.text)
    if token:
        logger.info("Login succeeded")
        return LoginResult(success=True, token=token)

    snippet = response.text.strip()[:200]
    logger.error(f"No Auth token in login response (HTTP {response.status}): {snippet}")
    return LoginResult(
        success=False,
        message=f"No Auth token in login response (HTTP {response.status})",
    )
