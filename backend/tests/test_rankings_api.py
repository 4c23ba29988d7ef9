import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.db.session import get_db
from app.deps.auth import get_current_user
from app.deps.ranking import get_ranking_service
from app.main import app
from app.schemas.rankings import MovieSummary
from app.services.ranking_errors import (
    ComparisonStateInvalidError,
    DuplicateItemError,
    InvalidPreferenceError,
    NoActiveSessionError,
    RankingNotFoundError,
    StorageError,
)
from app.services.ranking_service import InsertionResult


def _fake_ranked_row(**overrides):
    base = {
        "id": uuid4(),
        "tmdb_id": 27205,
        "title": "Inception",
        "poster_path": "/inception.jpg",
        "overview": None,
        "rank": 1,
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
    }
    base.update(overrides)
    return SimpleNamespace(**base)


class TestRankingsApi(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.user_id = uuid4()
        self.service = MagicMock()
        app.dependency_overrides[get_db] = lambda: iter([object()])
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=self.user_id)
        app.dependency_overrides[get_ranking_service] = lambda: self.service

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_requires_auth(self) -> None:
        del app.dependency_overrides[get_current_user]
        response = self.client.get("/rankings/me")
        self.assertEqual(response.status_code, 401)

    def test_rejects_bad_token(self) -> None:
        del app.dependency_overrides[get_current_user]
        response = self.client.get(
            "/rankings/me",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        self.assertEqual(response.status_code, 401)

    def test_rejects_token_without_uuid_subject(self) -> None:
        del app.dependency_overrides[get_current_user]
        token = create_access_token("not-a-uuid")
        response = self.client.get(
            "/rankings/me",
            headers={"Authorization": f"Bearer {token}"},
        )
        self.assertEqual(response.status_code, 401)

    def test_list_my_rankings(self) -> None:
        self.service.list_rankings.return_value = [
            _fake_ranked_row(rank=1),
            _fake_ranked_row(rank=2, tmdb_id=155, title="The Dark Knight"),
        ]
        response = self.client.get("/rankings/me")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([row["rank"] for row in payload], [1, 2])
        self.assertEqual(payload[1]["title"], "The Dark Knight")
        self.service.list_rankings.assert_called_once_with(self.user_id)

    def test_start_insertion_added(self) -> None:
        self.service.start_insertion.return_value = InsertionResult.added(_fake_ranked_row())
        response = self.client.post(
            "/rankings",
            json={"tmdb_id": 27205, "title": "Inception", "poster_path": "/inception.jpg"},
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "added")
        self.assertEqual(payload["item"]["rank"], 1)
        self.assertIsNone(payload["prompt"])

        owner_id, candidate = self.service.start_insertion.call_args.args
        self.assertEqual(owner_id, self.user_id)
        self.assertEqual(candidate.tmdb_id, 27205)

    def test_start_insertion_compare(self) -> None:
        session_id = uuid4()
        self.service.start_insertion.return_value = InsertionResult(
            status="compare",
            prompt=MovieSummary(tmdb_id=155, title="The Dark Knight", poster_path="/tdk.jpg"),
            session_id=session_id,
        )
        response = self.client.post("/rankings", json={"tmdb_id": 27205, "title": "Inception"})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "compare")
        self.assertEqual(payload["prompt"]["tmdb_id"], 155)
        self.assertEqual(payload["session_id"], str(session_id))
        self.assertIsNone(payload["item"])

    def test_start_insertion_validates_payload(self) -> None:
        response = self.client.post("/rankings", json={"tmdb_id": 0, "title": "   "})
        self.assertEqual(response.status_code, 422)
        self.service.start_insertion.assert_not_called()

    def test_start_insertion_duplicate(self) -> None:
        self.service.start_insertion.side_effect = DuplicateItemError("already ranked")
        response = self.client.post("/rankings", json={"tmdb_id": 5, "title": "Movie"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["error"]["code"], "DUPLICATE_ITEM")

    def test_submit_preference_passes_session_id(self) -> None:
        session_id = uuid4()
        self.service.submit_preference.return_value = InsertionResult.added(_fake_ranked_row(rank=2))
        response = self.client.post(
            "/rankings/compare",
            json={"preferred_tmdb_id": 27205, "session_id": str(session_id)},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["item"]["rank"], 2)
        self.service.submit_preference.assert_called_once_with(
            self.user_id, 27205, session_id=session_id
        )

    def test_submit_preference_error_mapping(self) -> None:
        cases = [
            (NoActiveSessionError("none"), 409, "NO_ACTIVE_SESSION"),
            (InvalidPreferenceError("bad"), 400, "INVALID_PREFERENCE"),
            (ComparisonStateInvalidError("stale"), 409, "COMPARISON_STATE_INVALID"),
            (StorageError("db down"), 503, "STORAGE_ERROR"),
        ]
        for error, status_code, code in cases:
            with self.subTest(code=code):
                self.service.submit_preference.side_effect = error
                response = self.client.post("/rankings/compare", json={"preferred_tmdb_id": 1})
                self.assertEqual(response.status_code, status_code)
                self.assertEqual(response.json()["detail"]["error"]["code"], code)

    def test_cancel_comparison(self) -> None:
        self.service.cancel_comparison.return_value = True
        response = self.client.delete("/rankings/compare")
        self.assertEqual(response.status_code, 204)

    def test_cancel_without_session(self) -> None:
        self.service.cancel_comparison.return_value = False
        response = self.client.delete("/rankings/compare")
        self.assertEqual(response.status_code, 404)

    def test_delete_ranking(self) -> None:
        ranking_id = uuid4()
        self.service.remove_item.return_value = MovieSummary(tmdb_id=1, title="Gone")
        response = self.client.delete(f"/rankings/{ranking_id}")

        self.assertEqual(response.status_code, 204)
        self.service.remove_item.assert_called_once_with(self.user_id, ranking_id)

    def test_delete_ranking_not_found(self) -> None:
        self.service.remove_item.side_effect = RankingNotFoundError("missing")
        response = self.client.delete(f"/rankings/{uuid4()}")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["error"]["code"], "RANKING_NOT_FOUND")

    def test_rerank_compare(self) -> None:
        self.service.start_rerank.return_value = InsertionResult(
            status="compare",
            prompt=MovieSummary(tmdb_id=155, title="The Dark Knight"),
            session_id=uuid4(),
        )
        response = self.client.post(f"/rankings/{uuid4()}/rerank")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "compare")

    def test_rerank_not_found(self) -> None:
        self.service.start_rerank.side_effect = RankingNotFoundError("missing")
        response = self.client.post(f"/rankings/{uuid4()}/rerank")
        self.assertEqual(response.status_code, 404)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
