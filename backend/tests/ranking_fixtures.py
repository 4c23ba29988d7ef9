"""
Shared helpers for ranking tests: an in-memory SQLite database with the app's
tables, plus recording stand-ins for the notifier and enricher.
"""
from uuid import UUID, uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import Base, RankedMovie, User
from app.schemas.rankings import MovieSummary


def make_db() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return factory()


def add_user(db: Session, name: str | None = None) -> UUID:
    name = name or f"user_{uuid4().hex[:8]}"
    user = User(username=name, email=f"{name}@example.com")
    db.add(user)
    db.commit()
    return user.id


def movie(tmdb_id: int, title: str | None = None, **extra) -> MovieSummary:
    return MovieSummary(tmdb_id=tmdb_id, title=title or f"Movie {tmdb_id}", **extra)


def ranked(db: Session, owner_id: UUID) -> list[tuple[int, int]]:
    """(rank, tmdb_id) pairs for the owner, best first."""
    rows = (
        db.query(RankedMovie.rank, RankedMovie.tmdb_id)
        .filter(RankedMovie.user_id == owner_id)
        .order_by(RankedMovie.rank)
        .all()
    )
    return [(rank, tmdb_id) for rank, tmdb_id in rows]


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.added: list[tuple[UUID, int, int]] = []
        self.changed: list[tuple[UUID, int | None]] = []

    def ranking_added(self, owner_id, rank, item):
        if self.fail:
            raise RuntimeError("notifier down")
        self.added.append((owner_id, rank, item.tmdb_id))

    def ranking_changed(self, owner_id, removed_tmdb_id=None):
        if self.fail:
            raise RuntimeError("notifier down")
        self.changed.append((owner_id, removed_tmdb_id))


class StaticEnricher:
    """Fills poster_path from a fixed map; raises when *fail* is set."""

    def __init__(self, posters: dict[int, str] | None = None, fail: bool = False) -> None:
        self.posters = posters or {}
        self.fail = fail

    def enrich(self, candidate: MovieSummary) -> MovieSummary:
        if self.fail:
            raise RuntimeError("tmdb down")
        poster = self.posters.get(candidate.tmdb_id)
        if poster is None or candidate.poster_path:
            return candidate
        return candidate.model_copy(update={"poster_path": poster})
