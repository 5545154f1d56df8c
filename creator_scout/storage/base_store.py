"""Defines the protocol for creator persistence backends."""

from typing import Any, Dict, List, Optional, Protocol


class CreatorStore(Protocol):
    """A protocol that defines the interface for creator stores."""

    def get_creator_by_username(self, username: str) -> Optional[Any]:
        """Returns the stored creator with this username, if any."""
        ...

    def create_creator(self, **fields: Any) -> Any:
        """Creates a creator and returns it."""
        ...

    def update_creator(self, creator_id: int, **fields: Any) -> Any:
        """Updates the given fields of a creator and returns it."""
        ...

    def create_post(self, **fields: Any) -> Any:
        """Creates a post and returns it."""
        ...

    def get_post_by_reddit_id(self, reddit_id: str) -> Optional[Any]:
        """Returns the stored post with this Reddit id, if any."""
        ...

    def get_subreddits(self, active_only: bool = False) -> List[Any]:
        """Returns the tracked subreddits."""
        ...

    def mark_subreddit_crawled(self, name: str) -> None:
        """Records that a subreddit has just been crawled."""
        ...

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """Returns aggregate counts for dashboards."""
        ...
