"""HTTP layer tests — routing, identity headers and error mapping.

The app is driven in-process through ``httpx.ASGITransport``.  The lifespan
does not run; DB session, tracker and review service are replaced through
``dependency_overrides``.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from suivi_engine.review import ReviewService
from suivi_engine.tracker import SuiviTracker
from suivi_server.app import create_app
from suivi_server.config import ServerSettings
from suivi_server.dependencies import get_db, get_review_service, get_tracker

from fakes.builders import make_circuit, make_document, make_record
from fakes.repository import MockReviewRepository

HEADERS = {"X-User-ID": "user1"}


def _build_app(results, documents, circuits, settings=None):
    app = create_app(settings or ServerSettings())
    tracker = SuiviTracker(
        results=results, documents=documents, circuits=circuits, batch_pause=0,
    )
    reviews = ReviewService(tracker)
    reviews._repo = MockReviewRepository()

    async def override_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_tracker] = lambda: tracker
    app.dependency_overrides[get_review_service] = lambda: reviews
    return app


@pytest.fixture
def app(results, documents, circuits):
    return _build_app(results, documents, circuits)


@pytest_asyncio.fixture
async def http(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestIdentity:

    @pytest.mark.asyncio
    async def test_user_header_required(self, http):
        resp = await http.get("/api/v1/reviews/s1")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_proxy_secret_enforced(self, results, documents, circuits):
        app = _build_app(
            results, documents, circuits,
            ServerSettings(trusted_proxy_secret="s3cret"),
        )
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/v1/reviews/s1", headers=HEADERS)
            assert resp.status_code == 403
            resp = await client.get(
                "/api/v1/reviews/s1", headers={**HEADERS, "X-Proxy-Secret": "s3cret"},
            )
            assert resp.status_code == 404, "Valid secret reaches the route"


class TestReviewRoutes:

    @pytest.mark.asyncio
    async def test_review_flow(self, http, results):
        results.results["42"] = [make_record("Code", "echoue", 1, dossier_id="42")]
        resp = await http.post(
            "/api/v1/reviews", json={"session_id": "s1", "dossier_id": "42"}, headers=HEADERS,
        )
        assert resp.status_code == 201
        assert resp.json()["verdict"] == "echoue"

        resp = await http.post(
            "/api/v1/reviews/s1/attempts/codeConduite", json={"result": "reussi"}, headers=HEADERS,
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["accepted"] is True
        assert body["prompt"]["trigger"] == "success"

        resp = await http.post("/api/v1/reviews/s1/prompt/confirm", headers=HEADERS)
        assert resp.json()["prompt"] is None

        resp = await http.patch(
            "/api/v1/reviews/s1/attempts/codeConduite/1", json={"result": "echoue"}, headers=HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["accepted"] is False, "Locked attempt edit is rejected, not an error"

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self, http):
        payload = {"session_id": "s1", "dossier_id": "42"}
        await http.post("/api/v1/reviews", json=payload, headers=HEADERS)
        resp = await http.post("/api/v1/reviews", json=payload, headers=HEADERS)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_session_is_not_found(self, http):
        resp = await http.post("/api/v1/reviews/nope/reload", headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Resource not found"

    @pytest.mark.asyncio
    async def test_confirm_without_prompt_is_conflict(self, http):
        await http.post(
            "/api/v1/reviews", json={"session_id": "s1", "dossier_id": "42"}, headers=HEADERS,
        )
        resp = await http.post("/api/v1/reviews/s1/prompt/confirm", headers=HEADERS)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_category_is_rejected(self, http):
        resp = await http.post(
            "/api/v1/reviews/s1/attempts/moto", json={"result": "reussi"}, headers=HEADERS,
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_backend_failure_is_bad_gateway(self, http, results):
        results.failing.add("42")
        resp = await http.post(
            "/api/v1/reviews", json={"session_id": "s1", "dossier_id": "42"}, headers=HEADERS,
        )
        assert resp.status_code == 502
        assert resp.json()["notice"]["dismissible"] is True


class TestSuiviRoutes:

    @pytest.mark.asyncio
    async def test_verdicts(self, http, results):
        results.results["1"] = [make_record("Tour de ville", "absent", dossier_id="1")]
        resp = await http.post(
            "/api/v1/suivi/verdicts", json={"dossier_ids": ["1", "2"]}, headers=HEADERS,
        )
        assert resp.status_code == 200
        assert [(r["dossier_id"], r["verdict"]) for r in resp.json()] == [
            ("1", "absent"), ("2", "non_saisi"),
        ]

    @pytest.mark.asyncio
    async def test_progress(self, http, circuits, documents):
        circuits.circuits["NOUVEAU PERMIS"] = make_circuit(["1"], ["2"])
        documents.documents = [make_document("a", dossier_id="1", piece="1")]
        resp = await http.post(
            "/api/v1/suivi/progress",
            json={"dossier_ids": ["1", "2"], "type_demande_name": "Nouveau permis"},
            headers=HEADERS,
        )
        rows = {r["dossier_id"]: r for r in resp.json()}
        assert rows["1"]["progress_percent"] == 50
        assert rows["1"]["label"]["color"] == "primary"
        assert rows["2"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_empty_list_is_invalid(self, http):
        resp = await http.post("/api/v1/suivi/verdicts", json={"dossier_ids": []}, headers=HEADERS)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_stage_details(self, http, circuits, documents):
        circuits.circuits["DUPLICATA"] = make_circuit(["4"], entity_name="DUPLICATA")
        documents.documents = [make_document("a", dossier_id="9", type_doc="4")]
        resp = await http.get(
            "/api/v1/suivi/dossiers/9/stages",
            params={"type_demande_name": "DUPLICATA"},
            headers=HEADERS,
        )
        body = resp.json()
        assert body["circuit_label"] == "Circuit test"
        assert body["stages"][0]["complete"] is True
        assert body["stages"][0]["pieces"][0]["resolver"] == "type_document"
