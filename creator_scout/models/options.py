"""Scraping options and Reddit name parsing."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

VALID_SORTS = ("hot", "new", "top", "rising")
VALID_TIMEFRAMES = ("hour", "day", "week", "month", "year", "all")
VALID_FORMATS = ("json", "csv")

_SUBREDDIT_URL = re.compile(r"reddit\.com/r/([A-Za-z0-9_]+)", re.IGNORECASE)
_SUBREDDIT_NAME = re.compile(r"^/?(?:r/)?([A-Za-z0-9_]{2,21})/?$", re.IGNORECASE)
_USERNAME_URL = re.compile(r"reddit\.com/(?:user|u)/([A-Za-z0-9_-]+)", re.IGNORECASE)
_USERNAME_NAME = re.compile(r"^/?(?:u/)?([A-Za-z0-9_-]{3,20})/?$", re.IGNORECASE)


def parse_subreddit(value: str) -> Optional[str]:
    """
    Extract a subreddit name from ``name``, ``r/name``, ``/r/name`` or a URL.

    Returns:
        The bare subreddit name, or None if the input is not recognisable
    """
    if not value:
        return None
    value = value.strip()

    match = _SUBREDDIT_URL.search(value)
    if match:
        return match.group(1)

    match = _SUBREDDIT_NAME.match(value)
    if match:
        return match.group(1)
    return None


def parse_username(value: str) -> Optional[str]:
    """Extract a username from ``name``, ``u/name`` or a profile URL."""
    if not value:
        return None
    value = value.strip()

    match = _USERNAME_URL.search(value)
    if match:
        return match.group(1)

    match = _USERNAME_NAME.match(value)
    if match:
        return match.group(1)
    return None


@dataclass
class ScrapingOptions:
    """Parameters consumed by every acquisition strategy."""

    subreddit: str
    limit: int = 100
    sort: str = "hot"
    timeframe: str = "week"
    flair_filter: List[str] = field(default_factory=list)
    keyword_filter: List[str] = field(default_factory=list)
    min_score: Optional[int] = None
    max_age_days: Optional[float] = None
    max_retries: int = 3
    retry_delay: float = 2.0
    use_archive: bool = True
    verbose: bool = False
    query: Optional[str] = None
    output_format: str = "json"
    output_file: Optional[str] = None

    def __post_init__(self):
        name = parse_subreddit(self.subreddit)
        if name is None:
            raise ValueError(f"Invalid subreddit name: {self.subreddit!r}")
        self.subreddit = name

        if self.sort not in VALID_SORTS:
            raise ValueError(f"Invalid sort {self.sort!r}, expected one of {', '.join(VALID_SORTS)}")
        if self.timeframe not in VALID_TIMEFRAMES:
            raise ValueError(
                f"Invalid timeframe {self.timeframe!r}, expected one of {', '.join(VALID_TIMEFRAMES)}"
            )
        if self.output_format not in VALID_FORMATS:
            raise ValueError(f"Invalid output format {self.output_format!r}")
        if self.limit <= 0:
            raise ValueError("limit must be greater than 0")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be 0 or greater")
