"""Per-author aggregate built from one acquisition run."""

from dataclasses import dataclass, field
from typing import List, Set

from creator_scout.models.post import Post


@dataclass
class CreatorAggregate:
    """Posts and derived metrics for a single author."""

    username: str
    posts: List[Post] = field(default_factory=list)
    categories: Set[str] = field(default_factory=set)

    @property
    def post_count(self) -> int:
        return len(self.posts)

    @property
    def total_score(self) -> int:
        return sum(post.score for post in self.posts)

    @property
    def average_score(self) -> float:
        if not self.posts:
            return 0.0
        return self.total_score / len(self.posts)

    @property
    def total_awards(self) -> int:
        return sum(post.awards for post in self.posts)

    @property
    def total_comments(self) -> int:
        return sum(post.num_comments for post in self.posts)

    def ranking_score(self, weight: int) -> int:
        return self.total_score + self.post_count * weight

    @property
    def profile_link(self) -> str:
        return f"https://reddit.com/user/{self.username}"
