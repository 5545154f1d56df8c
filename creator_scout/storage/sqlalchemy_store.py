"""
SQLAlchemy persistence for discovered creators.

Provides the ORM models for creators, their posts and the tracked subreddits,
plus a store implementing :class:`creator_scout.storage.base_store.CreatorStore`.
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, create_engine, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class CreatorORM(Base):
    """A Reddit creator discovered by the pipeline."""

    __tablename__ = "creators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="Reddit")
    subreddit: Mapped[str] = mapped_column(String(64), nullable=False)
    karma: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    engagement_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    profile_link: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_active: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    posts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<CreatorORM(id={self.id}, username='{self.username}', score={self.engagement_score})>"


class PostORM(Base):
    """A post contributing to a creator's ranking."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[int] = mapped_column(ForeignKey("creators.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subreddit: Mapped[str] = mapped_column(String(64), nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    awards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reddit_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    reddit_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<PostORM(id={self.id}, reddit_id='{self.reddit_id}')>"


class SubredditORM(Base):
    """A subreddit tracked for crawling."""

    __tablename__ = "subreddits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_crawled: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SubredditORM(name='{self.name}', active={self.is_active})>"


class SQLAlchemyCreatorStore:
    """Creator store backed by any SQLAlchemy-supported database."""

    def __init__(self, database_url: str = "sqlite://", create_tables: bool = True):
        """
        Initialize the store and its connection pool.

        Args:
            database_url: SQLAlchemy database URL (in-memory SQLite by default)
            create_tables: Create missing tables on startup
        """
        url = make_url(database_url)
        engine_kwargs: Dict[str, Any] = {}
        if url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if not url.database or url.database == ":memory:":
                engine_kwargs["poolclass"] = StaticPool
            else:
                directory = os.path.dirname(url.database)
                if directory:
                    os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(database_url, **engine_kwargs)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self.engine)
        logger.info(f"Creator store ready ({url.render_as_string(hide_password=True)})")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Get a database session that commits on success and rolls back on error.

        Yields:
            SQLAlchemy session
        """
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_creator_by_username(self, username: str) -> Optional[CreatorORM]:
        with self.session() as db:
            return db.scalar(select(CreatorORM).where(CreatorORM.username == username))

    def create_creator(self, **fields: Any) -> CreatorORM:
        with self.session() as db:
            creator = CreatorORM(**fields)
            db.add(creator)
            db.flush()
            logger.debug(f"Created creator {creator.username}")
            return creator

    def update_creator(self, creator_id: int, **fields: Any) -> CreatorORM:
        with self.session() as db:
            creator = db.get(CreatorORM, creator_id)
            if creator is None:
                raise KeyError(f"Creator {creator_id} not found")
            for key, value in fields.items():
                setattr(creator, key, value)
            db.flush()
            return creator

    def list_creators(self, limit: int = 50) -> List[CreatorORM]:
        with self.session() as db:
            stmt = select(CreatorORM).order_by(CreatorORM.engagement_score.desc()).limit(limit)
            return list(db.scalars(stmt))

    def create_post(self, **fields: Any) -> PostORM:
        with self.session() as db:
            post = PostORM(**fields)
            db.add(post)
            db.flush()
            return post

    def get_post_by_reddit_id(self, reddit_id: str) -> Optional[PostORM]:
        with self.session() as db:
            return db.scalar(select(PostORM).where(PostORM.reddit_id == reddit_id))

    def get_subreddits(self, active_only: bool = False) -> List[SubredditORM]:
        with self.session() as db:
            stmt = select(SubredditORM).order_by(SubredditORM.name)
            if active_only:
                stmt = stmt.where(SubredditORM.is_active.is_(True))
            return list(db.scalars(stmt))

    def ensure_subreddits(self, names: Iterable[str]) -> int:
        """
        Insert any subreddits not yet tracked.

        Returns:
            Number of subreddits added
        """
        added = 0
        with self.session() as db:
            existing = {name.lower() for name in db.scalars(select(SubredditORM.name))}
            for name in names:
                if name.lower() not in existing:
                    db.add(SubredditORM(name=name))
                    existing.add(name.lower())
                    added += 1
        if added:
            logger.info(f"Seeded {added} subreddits")
        return added

    def mark_subreddit_crawled(self, name: str) -> None:
        with self.session() as db:
            subreddit = db.scalar(select(SubredditORM).where(func.lower(SubredditORM.name) == name.lower()))
            if subreddit is None:
                subreddit = SubredditORM(name=name)
                db.add(subreddit)
            subreddit.last_crawled = _utcnow()

    def get_dashboard_stats(self) -> Dict[str, Any]:
        with self.session() as db:
            avg_engagement = db.scalar(select(func.avg(CreatorORM.engagement_score)))
            return {
                "total_creators": db.scalar(select(func.count(CreatorORM.id))) or 0,
                "total_posts": db.scalar(select(func.count(PostORM.id))) or 0,
                "active_subreddits": db.scalar(
                    select(func.count(SubredditORM.id)).where(SubredditORM.is_active.is_(True))
                ) or 0,
                "avg_engagement": round(float(avg_engagement), 1) if avg_engagement is not None else 0.0,
            }
