"""
TMDB Metadata Service
─────────────────────
Wraps the TMDB v3 REST API for the one thing rankings need from it:
filling in a candidate's missing poster_path / overview before it is stored.

Enrichment is best-effort. Any TMDB failure is logged and the candidate is
stored with whatever fields the client sent.
"""
import logging

import httpx

from app.core.config import settings
from app.schemas.rankings import MovieSummary

logger = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"


class TMDBConfigError(Exception):
    """Raised when TMDB client is used without an API key."""


class TMDBUpstreamError(Exception):
    """Raised for non-recoverable TMDB request/response errors."""


class TMDBService:
    """
    Thin synchronous wrapper around TMDB v3 API.

    Ranking endpoints are sync (they hold a SQLAlchemy session), so this uses
    httpx.Client rather than AsyncClient. Pass *client* to reuse a pool or to
    mount a mock transport.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key or settings.TMDB_API_KEY
        if not self.api_key:
            raise TMDBConfigError(
                "TMDB_API_KEY is not set. "
                "Add it to your .env file or pass it explicitly."
            )
        self.timeout = timeout if timeout is not None else settings.TMDB_TIMEOUT_SECONDS
        self._client = client

    def get_movie_details(self, tmdb_id: int) -> dict | None:
        """
        Fetch display fields for a single movie.

        Returns None if the movie is not found.
        """
        params = {"api_key": self.api_key, "language": "en-US"}
        url = f"{TMDB_BASE_URL}/movie/{tmdb_id}"

        try:
            if self._client is not None:
                response = self._client.get(url, params=params, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(url, params=params)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TMDBUpstreamError(
                f"TMDB details failed with status {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise TMDBUpstreamError("TMDB details request failed") from exc

        return self._map_details(response.json())

    def enrich(self, candidate: MovieSummary) -> MovieSummary:
        """Return *candidate* with poster_path / overview filled where TMDB has them."""
        if candidate.poster_path and candidate.overview:
            return candidate

        try:
            details = self.get_movie_details(candidate.tmdb_id)
        except (TMDBUpstreamError, KeyError, ValueError) as exc:
            logger.warning("TMDB enrichment failed for tmdb_id=%s: %s", candidate.tmdb_id, exc)
            return candidate
        if details is None:
            return candidate

        return candidate.model_copy(
            update={
                "poster_path": candidate.poster_path or details["poster_path"],
                "overview": candidate.overview or details["overview"],
            }
        )

    def _map_details(self, raw: dict) -> dict:
        """Normalize a TMDB /movie/{id} details payload."""
        return {
            "tmdb_id": int(raw["id"]),
            "title": raw.get("title"),
            "poster_path": raw.get("poster_path") or None,
            "overview": raw.get("overview") or None,
        }


class PassthroughEnricher:
    """Used when TMDB is not configured: candidates are stored as sent."""

    def enrich(self, candidate: MovieSummary) -> MovieSummary:
        return candidate


def build_enricher() -> TMDBService | PassthroughEnricher:
    if not settings.TMDB_API_KEY:
        return PassthroughEnricher()
    return TMDBService()
