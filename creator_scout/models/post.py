"""Canonical data models shared by every acquisition strategy."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Authors that never represent a real creator
SENTINEL_AUTHORS = frozenset({"[deleted]", "[removed]"})
BOT_AUTHORS = frozenset({"automoderator"})

# Column order of the flattened CSV export
CSV_COLUMNS = [
    "id", "title", "url", "author", "upvotes", "score", "num_comments",
    "created_date", "subreddit", "permalink", "selftext", "is_self",
    "flair_text", "domain", "over_18", "source",
]


def is_excluded_author(author: Optional[str]) -> bool:
    """Return True for empty, sentinel and known bot authors."""
    if not author or not author.strip():
        return True
    author = author.strip()
    return author in SENTINEL_AUTHORS or author.lower() in BOT_AUTHORS


@dataclass
class Post:
    """A Reddit submission in strategy-independent form."""

    id: str
    title: str
    author: str
    subreddit: str
    created_utc: float
    url: str = ""
    permalink: str = ""
    selftext: str = ""
    upvotes: int = 0
    score: int = 0
    num_comments: int = 0
    flair_text: Optional[str] = None
    domain: str = ""
    is_self: bool = False
    over_18: bool = False
    stickied: bool = False
    locked: bool = False
    archived: bool = False
    awards: int = 0
    source: str = ""

    @property
    def created_date(self) -> str:
        """Creation time as an ISO-8601 UTC string."""
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc).isoformat()

    @property
    def text(self) -> str:
        """Title and body joined, as used by keyword matching."""
        return f"{self.title} {self.selftext or ''}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_date"] = self.created_date
        return data

    def to_record(self) -> Dict[str, Any]:
        """Flatten the post into the CSV export column set."""
        data = self.to_dict()
        return {column: data.get(column) for column in CSV_COLUMNS}


@dataclass
class ScrapingResult:
    """Outcome of one run of the fallback chain."""

    subreddit: str
    posts: List[Post] = field(default_factory=list)
    total_found: int = 0
    source: str = "none"
    errors: List[str] = field(default_factory=list)
    rate_limited: bool = False
    execution_time: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_empty(self) -> bool:
        return not self.posts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "posts": [post.to_dict() for post in self.posts],
            "total_found": self.total_found,
            "source": self.source,
            "errors": list(self.errors),
            "rate_limited": self.rate_limited,
            "execution_time": self.execution_time,
            "subreddit": self.subreddit,
            "timestamp": self.timestamp,
        }


@dataclass
class UserProfile:
    """Karma figures for a Reddit account."""

    username: str
    link_karma: int = 0
    comment_karma: int = 0
    total_karma: int = 0
    created_utc: Optional[float] = None
