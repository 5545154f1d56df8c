"""OAuth client-credentials token handling for the official Reddit API."""

import logging
import time
from typing import Optional

import aiohttp

from creator_scout.collector.error_handler import with_linear_backoff
from creator_scout.collector.http_client import HttpClient, HttpResponse
from creator_scout.errors import AuthenticationError, UpstreamError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
TOKEN_ATTEMPTS = 3
TOKEN_RETRY_DELAY_SEC = 2.0

# Tokens are refreshed this many seconds before the upstream expiry
EXPIRY_MARGIN_SEC = 60


class Authenticator:
    """
    Obtains and caches an application-only bearer token.

    Concurrent callers racing an expired token may each refresh it; the last
    response wins the cache, which is harmless.
    """

    def __init__(self, http: HttpClient, client_id: str, client_secret: str, user_agent: str = "creator_scout/0.1"):
        self.http = http
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.access_token: Optional[str] = None
        self.expires_at = 0.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_token(self) -> str:
        """
        Return a bearer token with at least 60 seconds of validity left.

        Raises:
            AuthenticationError: If credentials are missing, the token endpoint
                answers with a non-2xx status, or it stays unreachable after retries
        """
        if self.access_token and time.time() < self.expires_at:
            return self.access_token

        if not self.has_credentials:
            raise AuthenticationError("Reddit API credentials not configured")

        try:
            response = await self._request_token()
        except UpstreamError as e:
            raise AuthenticationError("Reddit token request failed", status=e.status, body=e.body) from e
        if not response.ok:
            raise AuthenticationError("Reddit token request failed", status=response.status, body=response.text)

        try:
            payload = response.json()
            token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(
                "Malformed token response", status=response.status, body=response.text
            ) from e

        self.access_token = token
        self.expires_at = time.time() + expires_in - EXPIRY_MARGIN_SEC
        logger.info(f"Obtained Reddit access token, valid for {expires_in:.0f}s")
        return token

    @with_linear_backoff(max_retries=TOKEN_ATTEMPTS, retry_delay=TOKEN_RETRY_DELAY_SEC)
    async def _request_token(self) -> HttpResponse:
        # Server errors and network failures are retried; 4xx is returned as is
        response = await self.http.post(
            TOKEN_URL,
            "reddit_api",
            data={"grant_type": "client_credentials"},
            headers={"User-Agent": self.user_agent},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
        )
        if response.status >= 500:
            raise UpstreamError("reddit_api", status=response.status, body=response.text)
        return response

    def invalidate(self) -> None:
        """Drop the cached token so the next call refreshes it."""
        self.access_token = None
        self.expires_at = 0.0
