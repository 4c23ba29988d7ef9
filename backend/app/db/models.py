"""
SQLAlchemy ORM models.

Column names and constraints mirror alembic/versions/0001_initial_schema.py.
Types are the portable SQLAlchemy ones (Uuid rather than the Postgres
dialect UUID) so the same models run against SQLite in tests.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class User(Base):
    """
    Application user. Owns exactly one ranked list.

    Rank mutations lock this row (SELECT ... FOR UPDATE) so that concurrent
    writers for the same owner are serialized by the database.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(32), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(60), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    # Relationships
    ranked_movies = relationship(
        "RankedMovie",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )
    # Follows where this user is the one following others
    following_assoc = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )
    # Follows where this user is being followed
    followers_assoc = relationship(
        "Follow",
        foreign_keys="Follow.following_id",
        back_populates="following_user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class RankedMovie(Base):
    """
    One entry in a user's ordered list.

    rank — 1-based position; lower is better. For a fixed user the ranks are
           exactly {1..N}. Only app.services.rank_store writes this column.
    """
    __tablename__ = "ranked_movies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tmdb_id = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    poster_path = Column(String(500), nullable=True)
    overview = Column(Text, nullable=True)
    rank = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        # A user can only rank each movie once
        UniqueConstraint("user_id", "tmdb_id", name="uq_ranked_movie_user_tmdb"),
        # No two entries share a rank (shifts go through a negative offset)
        UniqueConstraint("user_id", "rank", name="uq_ranked_movie_user_rank"),
        Index("idx_ranked_movies_user_rank", "user_id", "rank"),
    )

    # Relationships
    user = relationship("User", back_populates="ranked_movies")

    def __repr__(self) -> str:
        return f"<RankedMovie user={self.user_id} tmdb={self.tmdb_id} rank={self.rank}>"


class Follow(Base):
    """
    Directed follow relationship: follower → following_user.
    Followers are the audience for a user's feed activity.
    """
    __tablename__ = "follows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    follower_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    following_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follow"),
        CheckConstraint("follower_id <> following_id", name="chk_no_self_follow"),
    )

    # Relationships
    follower = relationship("User", foreign_keys=[follower_id], back_populates="following_assoc")
    following_user = relationship("User", foreign_keys=[following_id], back_populates="followers_assoc")

    def __repr__(self) -> str:
        return f"<Follow {self.follower_id} → {self.following_id}>"


class FeedActivity(Base):
    """
    A feed entry shown to the followers of user_id.

    Written after a ranking completes; a rerank replaces the previous entry
    for the same movie, and removing the movie deletes its entries.
    """
    __tablename__ = "feed_activities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_type = Column(String(32), nullable=False, default="ranked_movie")
    tmdb_id = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    poster_path = Column(String(500), nullable=True)
    overview = Column(Text, nullable=True)
    rank = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_feed_activities_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<FeedActivity user={self.user_id} {self.activity_type} tmdb={self.tmdb_id}>"
