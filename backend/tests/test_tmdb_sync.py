import unittest
from unittest.mock import patch

import httpx

from ranking_fixtures import movie

from app.core.config import settings
from app.services.tmdb_sync import (
    PassthroughEnricher,
    TMDBConfigError,
    TMDBService,
    TMDBUpstreamError,
)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestTMDBService(unittest.TestCase):
    def test_requires_api_key(self) -> None:
        with patch.object(settings, "TMDB_API_KEY", ""):
            with self.assertRaises(TMDBConfigError):
                TMDBService()

    def test_enrich_fills_missing_fields(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"id": 27205, "title": "Inception", "poster_path": "/inc.jpg", "overview": "Dreams."},
            )

        service = TMDBService("key", client=_client(handler))
        enriched = service.enrich(movie(27205, "Inception"))

        self.assertEqual(enriched.poster_path, "/inc.jpg")
        self.assertEqual(enriched.overview, "Dreams.")
        self.assertEqual(seen[0].url.path, "/3/movie/27205")
        self.assertEqual(seen[0].url.params["api_key"], "key")

    def test_enrich_keeps_client_values(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": 1, "poster_path": "/tmdb.jpg", "overview": "From TMDB"})

        service = TMDBService("key", client=_client(handler))
        enriched = service.enrich(movie(1, poster_path="/mine.jpg"))

        self.assertEqual(enriched.poster_path, "/mine.jpg")
        self.assertEqual(enriched.overview, "From TMDB")

    def test_enrich_skips_request_when_complete(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("TMDB should not be called")

        service = TMDBService("key", client=_client(handler))
        candidate = movie(1, poster_path="/p.jpg", overview="Known")
        self.assertIs(service.enrich(candidate), candidate)

    def test_enrich_swallows_upstream_errors(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        service = TMDBService("key", client=_client(handler))
        candidate = movie(1)
        self.assertEqual(service.enrich(candidate), candidate)

    def test_details_not_found(self) -> None:
        service = TMDBService("key", client=_client(lambda request: httpx.Response(404)))
        self.assertIsNone(service.get_movie_details(1))

    def test_details_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        service = TMDBService("key", client=_client(handler))
        with self.assertRaises(TMDBUpstreamError):
            service.get_movie_details(1)

    def test_passthrough(self) -> None:
        candidate = movie(1)
        self.assertIs(PassthroughEnricher().enrich(candidate), candidate)

