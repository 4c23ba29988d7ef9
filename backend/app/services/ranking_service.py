"""
Ranking business logic — insert by comparison, rerank, remove, list.

INSERT  first movie goes straight to rank 1; otherwise a comparison session
        opens over the current list and each answer halves the window.
RERANK  removes the movie (closing its gap) and re-inserts it the same way.
REMOVE  deletes a movie and closes the gap.

All operations for one owner run under the session store's owner lock, and
each rank write is its own DB transaction (see rank_store). Enrichment and
notifications run outside that guarantee: their failures are logged and
never undo a committed rank change.
"""
import logging
from dataclasses import dataclass
from typing import Literal, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.models import RankedMovie
from app.schemas.rankings import MovieSummary
from app.services.comparison_session import ComparisonSession, ComparisonSessionStore
from app.services.rank_store import RankStore
from app.services.ranking_errors import (
    ComparisonStateInvalidError,
    DuplicateItemError,
    NoActiveSessionError,
)

logger = logging.getLogger(__name__)


# ── Collaborators ────────────────────────────────────────────────────────────


class MetadataEnricher(Protocol):
    def enrich(self, candidate: MovieSummary) -> MovieSummary: ...


class RankingNotifier(Protocol):
    def ranking_added(self, owner_id: UUID, rank: int, item: RankedMovie) -> object: ...

    def ranking_changed(self, owner_id: UUID, removed_tmdb_id: int | None = None) -> None: ...


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass
class InsertionResult:
    status: Literal["added", "compare"]
    item: RankedMovie | None = None
    prompt: MovieSummary | None = None
    session_id: UUID | None = None

    @classmethod
    def added(cls, item: RankedMovie) -> "InsertionResult":
        return cls(status="added", item=item)

    @classmethod
    def compare(cls, session: ComparisonSession) -> "InsertionResult":
        return cls(status="compare", prompt=session.prompt(), session_id=session.session_id)


# ── Service ──────────────────────────────────────────────────────────────────


class RankingService:
    def __init__(
        self,
        db: Session,
        sessions: ComparisonSessionStore,
        notifier: RankingNotifier,
        enricher: MetadataEnricher,
    ) -> None:
        self.db = db
        self.store = RankStore(db)
        self.sessions = sessions
        self.notifier = notifier
        self.enricher = enricher

    def list_rankings(self, owner_id: UUID) -> list[RankedMovie]:
        return self.store.list_ordered_by_rank(owner_id)

    def start_insertion(self, owner_id: UUID, candidate: MovieSummary) -> InsertionResult:
        """
        Begin placing *candidate* in the owner's list.

        Raises:
            DuplicateItemError: the movie is already ranked; nothing changes.
        """
        with self.sessions.owner_lock(owner_id):
            if self.store.exists_for_owner(owner_id, candidate.tmdb_id):
                raise DuplicateItemError("You have already ranked this movie")

            existing = self.store.list_ordered_by_rank(owner_id)
            if not existing:
                return self._place(owner_id, candidate, 1)
            return self._begin(owner_id, candidate, existing)

    def submit_preference(
        self,
        owner_id: UUID,
        preferred_tmdb_id: int,
        session_id: UUID | None = None,
    ) -> InsertionResult:
        """
        Apply one answer to the owner's open comparison.

        Raises:
            NoActiveSessionError: nothing to answer (never started, expired,
                cancelled, or already completed).
            InvalidPreferenceError: the id is neither movie on screen; the
                session is unchanged.
            ComparisonStateInvalidError: the answer targets a replaced session,
                or the list changed since the session began (session dropped).
        """
        with self.sessions.owner_lock(owner_id):
            session = self.sessions.get(owner_id)
            if session is None:
                raise NoActiveSessionError("No active comparison session")

            if session_id is not None and session_id != session.session_id:
                raise ComparisonStateInvalidError(
                    "This answer belongs to a comparison that has been replaced"
                )

            current_ids = self.store.ordered_tmdb_ids(owner_id)
            if current_ids != [movie.tmdb_id for movie in session.snapshot]:
                raise self._invalidate(session, "ranked list changed since the comparison began")

            try:
                target = session.answer(preferred_tmdb_id)
            except ComparisonStateInvalidError as exc:
                raise self._invalidate(session, str(exc)) from exc

            if target is None:
                return InsertionResult.compare(session)

            try:
                return self._place(owner_id, session.candidate, target)
            finally:
                self.sessions.discard(owner_id)

    def cancel_comparison(self, owner_id: UUID) -> bool:
        """Drop the owner's open comparison. Returns False if there was none."""
        with self.sessions.owner_lock(owner_id):
            cancelled = self.sessions.discard(owner_id)
        if cancelled:
            logger.info("Comparison cancelled for user %s", owner_id)
        return cancelled

    def remove_item(self, owner_id: UUID, item_id: UUID) -> MovieSummary:
        """
        Remove one ranked movie and close the gap.

        Any open comparison for the owner is dropped, so its next answer gets
        NoActiveSessionError.
        """
        with self.sessions.owner_lock(owner_id):
            removed = self.store.remove_and_close_gap(owner_id, item_id)
            if self.sessions.discard(owner_id):
                logger.info("Comparison for user %s dropped after removal", owner_id)
            self._notify_changed(owner_id, removed.tmdb_id)
            return removed

    def start_rerank(self, owner_id: UUID, item_id: UUID) -> InsertionResult:
        """
        Take a ranked movie out and start placing it again from scratch.

        The removal commits before the re-insert, so if placing it fails the
        movie is no longer in the list.
        """
        with self.sessions.owner_lock(owner_id):
            removed = self.store.remove_and_close_gap(owner_id, item_id)
            self._notify_changed(owner_id, removed.tmdb_id)

            remaining = self.store.list_ordered_by_rank(owner_id)
            if not remaining:
                return self._place(owner_id, removed, 1)
            return self._begin(owner_id, removed, remaining)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _begin(
        self,
        owner_id: UUID,
        candidate: MovieSummary,
        existing: list[RankedMovie],
    ) -> InsertionResult:
        snapshot = [MovieSummary.model_validate(movie) for movie in existing]
        session = self.sessions.begin(owner_id, candidate, snapshot)
        logger.info(
            "Comparison %s started for user %s: tmdb_id=%s against %d ranked movies",
            session.session_id, owner_id, candidate.tmdb_id, len(snapshot),
        )
        return InsertionResult.compare(session)

    def _place(self, owner_id: UUID, candidate: MovieSummary, rank: int) -> InsertionResult:
        item = self.store.insert_at_rank(owner_id, self._enrich(candidate), rank)
        self._notify_added(owner_id, item)
        return InsertionResult.added(item)

    def _invalidate(self, session: ComparisonSession, reason: str) -> ComparisonStateInvalidError:
        self.sessions.discard(session.owner_id)
        logger.error(
            "Comparison %s for user %s invalidated: %s",
            session.session_id, session.owner_id, reason,
        )
        return ComparisonStateInvalidError(f"Comparison is no longer valid: {reason}")

    def _enrich(self, candidate: MovieSummary) -> MovieSummary:
        try:
            return self.enricher.enrich(candidate)
        except Exception:
            logger.exception("Metadata enrichment failed for tmdb_id=%s", candidate.tmdb_id)
            return candidate

    def _notify_added(self, owner_id: UUID, item: RankedMovie) -> None:
        try:
            self.notifier.ranking_added(owner_id, item.rank, item)
        except Exception:
            self.db.rollback()
            logger.exception("Notification failed after ranking tmdb_id=%s", item.tmdb_id)

    def _notify_changed(self, owner_id: UUID, removed_tmdb_id: int) -> None:
        try:
            self.notifier.ranking_changed(owner_id, removed_tmdb_id)
        except Exception:
            self.db.rollback()
            logger.exception("Notification failed after removing tmdb_id=%s", removed_tmdb_id)
