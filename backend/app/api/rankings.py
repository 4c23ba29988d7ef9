"""
Rankings API — /rankings
──────────────────────────
Endpoints:
  GET    /rankings/me                 — Current user's ranked list, best first
  POST   /rankings                    — Start placing a movie (added | compare)
  POST   /rankings/compare            — Answer the open comparison
  DELETE /rankings/compare            — Cancel the open comparison (204)
  POST   /rankings/{ranking_id}/rerank — Take a movie out and place it again
  DELETE /rankings/{ranking_id}       — Remove a movie and close the gap (204)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.db.models import User
from app.deps.auth import get_current_user
from app.deps.ranking import get_ranking_service
from app.schemas.rankings import (
    InsertionResponse,
    MovieSummary,
    RankedMovieItem,
    StartInsertionRequest,
    SubmitPreferenceRequest,
)
from app.services.ranking_errors import (
    ComparisonStateInvalidError,
    DuplicateItemError,
    InvalidPreferenceError,
    NoActiveSessionError,
    RankingError,
    RankingNotFoundError,
    StorageError,
)
from app.services.ranking_service import InsertionResult, RankingService

router = APIRouter()

# (status, code) per error type; checked in order, so subclasses first.
_ERROR_MAP: list[tuple[type[RankingError], int, str]] = [
    (DuplicateItemError, status.HTTP_409_CONFLICT, "DUPLICATE_ITEM"),
    (NoActiveSessionError, status.HTTP_409_CONFLICT, "NO_ACTIVE_SESSION"),
    (InvalidPreferenceError, status.HTTP_400_BAD_REQUEST, "INVALID_PREFERENCE"),
    (ComparisonStateInvalidError, status.HTTP_409_CONFLICT, "COMPARISON_STATE_INVALID"),
    (RankingNotFoundError, status.HTTP_404_NOT_FOUND, "RANKING_NOT_FOUND"),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE, "STORAGE_ERROR"),
]


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


def _http_error(exc: RankingError) -> HTTPException:
    for error_type, status_code, code in _ERROR_MAP:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=_error(code, str(exc)))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_error("INTERNAL", str(exc)),
    )


def _to_response(result: InsertionResult) -> InsertionResponse:
    if result.status == "added":
        return InsertionResponse(
            status="added",
            item=RankedMovieItem.model_validate(result.item),
        )
    return InsertionResponse(
        status="compare",
        prompt=result.prompt,
        session_id=result.session_id,
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("/me", response_model=list[RankedMovieItem])
def get_my_rankings(
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> list:
    """Return the authenticated user's ranked list, rank 1 first."""
    try:
        return service.list_rankings(current_user.id)
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post("", response_model=InsertionResponse)
def start_insertion_endpoint(
    payload: StartInsertionRequest,
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> InsertionResponse:
    """
    Start placing a movie in the user's list.

    An empty list places it at rank 1 immediately (status "added"). Otherwise
    the response carries the first movie to compare against (status "compare").
    """
    candidate = MovieSummary.model_validate(payload.model_dump())
    try:
        result = service.start_insertion(current_user.id, candidate)
    except RankingError as exc:
        raise _http_error(exc) from exc
    return _to_response(result)


@router.post("/compare", response_model=InsertionResponse)
def submit_preference_endpoint(
    payload: SubmitPreferenceRequest,
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> InsertionResponse:
    """Record which of the two movies on screen the user prefers."""
    try:
        result = service.submit_preference(
            current_user.id,
            payload.preferred_tmdb_id,
            session_id=payload.session_id,
        )
    except RankingError as exc:
        raise _http_error(exc) from exc
    return _to_response(result)


@router.delete("/compare", status_code=status.HTTP_204_NO_CONTENT)
def cancel_comparison_endpoint(
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> None:
    """Abandon the open comparison. The ranked list is not touched."""
    if not service.cancel_comparison(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("NO_ACTIVE_SESSION", "No active comparison session"),
        )


@router.post("/{ranking_id}/rerank", response_model=InsertionResponse)
def start_rerank_endpoint(
    ranking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> InsertionResponse:
    """Remove a ranked movie and start placing it again."""
    try:
        result = service.start_rerank(current_user.id, ranking_id)
    except RankingError as exc:
        raise _http_error(exc) from exc
    return _to_response(result)


@router.delete("/{ranking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ranking_endpoint(
    ranking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: RankingService = Depends(get_ranking_service),
) -> None:
    """Remove a ranking. Only the owning user may delete their own ranking."""
    try:
        service.remove_item(current_user.id, ranking_id)
    except RankingError as exc:
        raise _http_error(exc) from exc
