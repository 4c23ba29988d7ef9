"""
Ranking dependencies — one process-wide session store, one service per request.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.services.comparison_session import ComparisonSessionStore
from app.services.notification_service import FeedActivityNotifier
from app.services.ranking_service import RankingService
from app.services.tmdb_sync import build_enricher

comparison_sessions = ComparisonSessionStore(
    ttl_seconds=settings.COMPARISON_SESSION_TTL_SECONDS,
)


def get_comparison_sessions() -> ComparisonSessionStore:
    return comparison_sessions


def get_ranking_service(
    db: Session = Depends(get_db),
    sessions: ComparisonSessionStore = Depends(get_comparison_sessions),
) -> RankingService:
    return RankingService(
        db,
        sessions,
        notifier=FeedActivityNotifier(db),
        enricher=build_enricher(),
    )
