"""
Comparison sessions — the in-memory half of binary insertion.

A session holds one candidate movie and the window [low, high] over a
snapshot of the owner's ranked list taken when the session began. It never
touches the database; when the window closes it reports the target rank and
the ranking service does the write.

Sessions live in a ComparisonSessionStore keyed by owner:
  • at most one session per owner; begin() replaces any previous one
  • idle sessions expire after ttl_seconds
  • owner_lock() serializes begin/answer/remove for one owner in-process

Sessions are not persisted. A restart drops them and clients get
NoActiveSessionError on their next answer.
"""
import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from app.schemas.rankings import MovieSummary
from app.services.insertion_math import is_settled, midpoint, narrow, target_rank
from app.services.ranking_errors import ComparisonStateInvalidError, InvalidPreferenceError

logger = logging.getLogger(__name__)


@dataclass
class ComparisonSession:
    owner_id: UUID
    candidate: MovieSummary
    snapshot: tuple[MovieSummary, ...]
    low: int
    high: int
    session_id: UUID = field(default_factory=uuid4)
    touched_at: float = 0.0

    @property
    def comparator_index(self) -> int:
        return midpoint(self.low, self.high)

    @property
    def settled(self) -> bool:
        return is_settled(self.low, self.high)

    def prompt(self) -> MovieSummary:
        """The snapshot entry the candidate is currently compared against."""
        index = self.comparator_index
        if not 0 <= index < len(self.snapshot):
            raise ComparisonStateInvalidError(
                f"Comparator index {index} is outside a list of {len(self.snapshot)}"
            )
        return self.snapshot[index]

    def answer(self, preferred_tmdb_id: int) -> int | None:
        """
        Apply one preference and return the target rank once the window closes.

        Returns None while more answers are needed. On InvalidPreferenceError
        the window is left untouched so the client can retry.
        """
        if self.settled:
            raise ComparisonStateInvalidError("Session already settled")

        comparator = self.prompt()
        if comparator.tmdb_id == self.candidate.tmdb_id:
            raise InvalidPreferenceError("A movie cannot be compared with itself")

        if preferred_tmdb_id == self.candidate.tmdb_id:
            candidate_preferred = True
        elif preferred_tmdb_id == comparator.tmdb_id:
            candidate_preferred = False
        else:
            raise InvalidPreferenceError(
                f"Preferred movie {preferred_tmdb_id} is not part of this comparison "
                f"({self.candidate.tmdb_id} vs {comparator.tmdb_id})"
            )

        self.low, self.high = narrow(self.low, self.high, candidate_preferred)
        if self.settled:
            return target_rank(self.low)
        return None


class ComparisonSessionStore:
    """Thread-safe map of owner_id → ComparisonSession with idle expiry."""

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[UUID, ComparisonSession] = {}
        self._owner_locks: dict[UUID, threading.RLock] = {}
        self._lock_users: dict[UUID, int] = {}
        self._guard = threading.Lock()

    def begin(
        self,
        owner_id: UUID,
        candidate: MovieSummary,
        snapshot: Sequence[MovieSummary],
    ) -> ComparisonSession:
        """Open a session over *snapshot* (must be non-empty), replacing any old one."""
        if not snapshot:
            raise ValueError("Cannot start a comparison against an empty list")

        session = ComparisonSession(
            owner_id=owner_id,
            candidate=candidate,
            snapshot=tuple(snapshot),
            low=0,
            high=len(snapshot) - 1,
            touched_at=self._clock(),
        )
        with self._guard:
            previous = self._sessions.get(owner_id)
            self._sessions[owner_id] = session

        if previous is not None:
            logger.info(
                "Replaced comparison session %s for user %s (candidate tmdb_id=%s)",
                previous.session_id, owner_id, previous.candidate.tmdb_id,
            )
        return session

    def get(self, owner_id: UUID) -> ComparisonSession | None:
        """Return the live session for *owner_id*, refreshing its idle timer."""
        now = self._clock()
        with self._guard:
            session = self._sessions.get(owner_id)
            if session is None:
                return None
            if self._expired(session, now):
                del self._sessions[owner_id]
                logger.info("Comparison session %s for user %s expired", session.session_id, owner_id)
                return None
            session.touched_at = now
            return session

    def discard(self, owner_id: UUID) -> bool:
        with self._guard:
            return self._sessions.pop(owner_id, None) is not None

    def purge_expired(self) -> int:
        """Drop every idle session. Returns how many were removed."""
        now = self._clock()
        with self._guard:
            stale = [oid for oid, s in self._sessions.items() if self._expired(s, now)]
            for oid in stale:
                del self._sessions[oid]
        if stale:
            logger.info("Purged %d expired comparison sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    @contextmanager
    def owner_lock(self, owner_id: UUID) -> Iterator[None]:
        """Hold the owner's re-entrant lock. It is dropped once nobody holds or awaits it."""
        with self._guard:
            lock = self._owner_locks.setdefault(owner_id, threading.RLock())
            self._lock_users[owner_id] = self._lock_users.get(owner_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._lock_users[owner_id] -= 1
                if not self._lock_users[owner_id]:
                    del self._lock_users[owner_id]
                    del self._owner_locks[owner_id]

    def _expired(self, session: ComparisonSession, now: float) -> bool:
        return now - session.touched_at > self.ttl_seconds
