"""
Rank store — the only writer of RankedMovie.rank.

Every mutation keeps the owner's ranks exactly {1..N}:
  INSERT  shifts rank >= target up by one, then writes the new row.
  REMOVE  deletes the row, then shifts rank > removed down by one.

Shifts park the affected rows at negative ranks first and flip them back
afterwards, so the (user_id, rank) unique constraint never sees two rows on
the same rank mid-statement. Each mutation locks the owner's users row
(SELECT ... FOR UPDATE) and commits as a single transaction.
"""
import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import RankedMovie, User
from app.schemas.rankings import MovieSummary
from app.services.ranking_errors import DuplicateItemError, RankingNotFoundError, StorageError

logger = logging.getLogger(__name__)


class RankStore:
    """Durable per-owner ranked list on top of a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ── Reads ─────────────────────────────────────────────────────────────────

    def list_ordered_by_rank(self, owner_id: UUID) -> list[RankedMovie]:
        """All of the owner's entries, best first. Unknown owners have none."""
        try:
            return (
                self.db.query(RankedMovie)
                .filter(RankedMovie.user_id == owner_id)
                .order_by(RankedMovie.rank.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to load ranked list") from exc

    def ordered_tmdb_ids(self, owner_id: UUID) -> list[int]:
        """The owner's movie ids in rank order (cheap version check)."""
        try:
            rows = (
                self.db.query(RankedMovie.tmdb_id)
                .filter(RankedMovie.user_id == owner_id)
                .order_by(RankedMovie.rank.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to load ranked list") from exc
        return [tmdb_id for (tmdb_id,) in rows]

    def count(self, owner_id: UUID) -> int:
        try:
            return self.db.query(RankedMovie).filter(RankedMovie.user_id == owner_id).count()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to count ranked list") from exc

    def exists_for_owner(self, owner_id: UUID, tmdb_id: int) -> bool:
        try:
            row = (
                self.db.query(RankedMovie.id)
                .filter(RankedMovie.user_id == owner_id, RankedMovie.tmdb_id == tmdb_id)
                .first()
            )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to check for duplicate") from exc
        return row is not None

    # ── Writes ────────────────────────────────────────────────────────────────

    def insert_at_rank(
        self,
        owner_id: UUID,
        candidate: MovieSummary,
        rank: int,
    ) -> RankedMovie:
        """
        Persist *candidate* at *rank*, pushing everything at or below it down.

        Raises:
            ValueError: rank is outside 1..N+1.
            DuplicateItemError: the owner already ranked this movie.
            StorageError: any other database failure.
        """
        try:
            self._lock_owner(owner_id)
            size = self.db.query(RankedMovie).filter(RankedMovie.user_id == owner_id).count()
            if not 1 <= rank <= size + 1:
                self.db.rollback()
                raise ValueError(f"rank {rank} is outside 1..{size + 1}")

            self._shift(owner_id, from_rank=rank, delta=1)
            item = RankedMovie(
                user_id=owner_id,
                tmdb_id=candidate.tmdb_id,
                title=candidate.title,
                poster_path=candidate.poster_path,
                overview=candidate.overview,
                rank=rank,
            )
            self.db.add(item)
            self.db.flush()
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if "tmdb" in str(exc.orig).lower():
                raise DuplicateItemError("You have already ranked this movie") from exc
            raise StorageError("Failed to insert ranked movie") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to insert ranked movie") from exc

        logger.info(
            "Inserted tmdb_id=%s at rank %s for user %s (list size now %s)",
            candidate.tmdb_id, rank, owner_id, size + 1,
        )
        return item

    def remove_and_close_gap(self, owner_id: UUID, item_id: UUID) -> MovieSummary:
        """
        Delete one entry and pull everything below it up by one.

        Returns the removed movie's display fields so it can be re-inserted.
        """
        try:
            self._lock_owner(owner_id)
            item = (
                self.db.query(RankedMovie)
                .filter(RankedMovie.id == item_id, RankedMovie.user_id == owner_id)
                .first()
            )
            if item is None:
                self.db.rollback()
                raise RankingNotFoundError(f"Ranked movie {item_id} not found")

            removed = MovieSummary.model_validate(item)
            removed_rank = item.rank
            self.db.delete(item)
            self.db.flush()
            self._shift(owner_id, from_rank=removed_rank + 1, delta=-1)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to remove ranked movie") from exc

        logger.info(
            "Removed tmdb_id=%s from rank %s for user %s",
            removed.tmdb_id, removed_rank, owner_id,
        )
        return removed

    # ── Internals ─────────────────────────────────────────────────────────────

    def _lock_owner(self, owner_id: UUID) -> None:
        """Serialize rank mutations per owner. No-op on SQLite."""
        self.db.query(User.id).filter(User.id == owner_id).with_for_update().first()

    def _shift(self, owner_id: UUID, *, from_rank: int, delta: int) -> None:
        """Move every rank >= from_rank by delta without transient duplicates."""
        affected = self.db.query(RankedMovie).filter(
            RankedMovie.user_id == owner_id,
            RankedMovie.rank >= from_rank,
        )
        affected.update(
            {RankedMovie.rank: (RankedMovie.rank + delta) * -1},
            synchronize_session="fetch",
        )
        self.db.query(RankedMovie).filter(
            RankedMovie.user_id == owner_id,
            RankedMovie.rank < 0,
        ).update(
            {RankedMovie.rank: RankedMovie.rank * -1},
            synchronize_session="fetch",
        )
