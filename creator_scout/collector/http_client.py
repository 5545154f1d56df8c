"""Thin aiohttp wrapper shared by every acquisition strategy."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from creator_scout.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 15.0


@dataclass
class HttpResponse:
    """A fully-read HTTP response."""

    status: int
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on malformed payloads."""
        return json.loads(self.text)


class HttpClient:
    """
    Async HTTP client holding a single aiohttp session.

    Responses are read eagerly so callers never deal with open connections.
    Network errors and timeouts surface as UpstreamError with no status.
    """

    def __init__(self, timeout_sec: float = DEFAULT_TIMEOUT_SEC, user_agent: str = "creator_scout/0.1"):
        self.timeout_sec = timeout_sec
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec),
                headers={"User-Agent": self.user_agent},
            )
        return self.session

    async def close(self) -> None:
        """Close the underlying session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def request(
        self,
        method: str,
        url: str,
        source: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Any] = None,
        auth: Optional[aiohttp.BasicAuth] = None,
    ) -> HttpResponse:
        """
        Perform a request and return the fully-read response.

        Args:
            method: HTTP method
            url: Absolute URL
            source: Strategy identifier used in error messages
            params: Query parameters
            headers: Extra request headers
            data: Form body
            auth: Optional basic auth credentials

        Returns:
            HttpResponse for any HTTP status

        Raises:
            UpstreamError: On network failure or timeout
        """
        session = self._ensure_session()
        try:
            async with session.request(
                method, url, params=params, headers=headers, data=data, auth=auth
            ) as response:
                text = await response.text()
                return HttpResponse(
                    status=response.status,
                    text=text,
                    headers={k.lower(): v for k, v in response.headers.items()},
                )
        except asyncio.TimeoutError as e:
            logger.warning(f"{source}: timeout requesting {url}")
            raise UpstreamError(source, message=f"{source}: request timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"{source}: network error requesting {url}: {e}")
            raise UpstreamError(source, message=f"{source}: network error: {e}") from e

    async def get(self, url: str, source: str, **kwargs: Any) -> HttpResponse:
        return await self.request("GET", url, source, **kwargs)

    async def post(self, url: str, source: str, **kwargs: Any) -> HttpResponse:
        return await self.request("POST", url, source, **kwargs)
