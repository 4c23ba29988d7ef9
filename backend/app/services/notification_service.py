"""
Ranking notifications — feed activity for followers.

After a ranking completes, the owner's followers should see it in their
feed. This module writes FeedActivity rows; delivery to devices (push, SSE)
reads from there and is not handled here.

The ranking service calls the notifier only after the rank mutation has
committed, and catches anything it raises.
"""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.models import FeedActivity, Follow, RankedMovie

logger = logging.getLogger(__name__)


def list_follower_ids(db: Session, user_id: UUID) -> list[UUID]:
    """IDs of everyone following *user_id*."""
    rows = db.query(Follow.follower_id).filter(Follow.following_id == user_id).all()
    return [follower_id for (follower_id,) in rows]


class FeedActivityNotifier:
    """Records ranking events as FeedActivity rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def ranking_added(self, owner_id: UUID, rank: int, item: RankedMovie) -> FeedActivity:
        # A rerank re-adds the same movie; keep one activity per movie.
        self.db.query(FeedActivity).filter(
            FeedActivity.user_id == owner_id,
            FeedActivity.tmdb_id == item.tmdb_id,
        ).delete(synchronize_session=False)

        activity = FeedActivity(
            user_id=owner_id,
            activity_type="ranked_movie",
            tmdb_id=item.tmdb_id,
            title=item.title,
            poster_path=item.poster_path,
            overview=item.overview,
            rank=rank,
        )
        self.db.add(activity)
        self.db.commit()

        followers = list_follower_ids(self.db, owner_id)
        logger.info(
            "Feed activity for user %s: tmdb_id=%s at rank %s, %d followers",
            owner_id, item.tmdb_id, rank, len(followers),
        )
        return activity

    def ranking_changed(self, owner_id: UUID, removed_tmdb_id: int | None = None) -> None:
        if removed_tmdb_id is not None:
            self.db.query(FeedActivity).filter(
                FeedActivity.user_id == owner_id,
                FeedActivity.tmdb_id == removed_tmdb_id,
            ).delete(synchronize_session=False)
            self.db.commit()
        logger.info("Ranking changed for user %s", owner_id)
