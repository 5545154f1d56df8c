"""Error taxonomy for the scraping core."""

from typing import Optional


class ScraperError(Exception):
    """Base class for all Creator Scout errors."""


class AuthenticationError(ScraperError):
    """Credentials are missing or the token endpoint rejected them."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        if status is not None:
            message = f"{message} (status={status}, body={body!r})"
        super().__init__(message)
        self.status = status
        self.body = body


class UpstreamError(ScraperError):
    """A non-2xx response or network failure from an upstream."""

    def __init__(self, source: str, status: Optional[int] = None, body: str = "", message: str = ""):
        self.source = source
        self.status = status
        self.body = body
        if not message:
            if status is None:
                message = f"{source}: request failed"
            else:
                message = f"{source}: HTTP {status}"
        super().__init__(message)


class UpstreamRateLimited(UpstreamError):
    """HTTP 429 from an upstream."""

    def __init__(self, source: str, retry_after: Optional[float] = None, body: str = ""):
        super().__init__(source, status=429, body=body, message=f"{source}: rate limited (HTTP 429)")
        self.retry_after = retry_after


class ClassifierUnavailable(ScraperError):
    """The content classifier could not produce an analysis."""


class NoDataAvailable(ScraperError):
    """Every strategy failed or produced zero posts for a subreddit."""

    def __init__(self, result):
        errors = "; ".join(result.errors) if result.errors else "no errors recorded"
        super().__init__(f"No data available for r/{result.subreddit}: {errors}")
        self.result = result
