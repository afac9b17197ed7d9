"""HTTP layer tests — routes, status codes and error mapping.

The app is built with ``create_app()`` and exercised through FastAPI's
TestClient without running the lifespan: ``get_db`` and the service
dependencies are overridden with the in-memory fakes from ``conftest``.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from helpers.mocks import FakeGenerator
from survey_server.app import create_app
from survey_server.config import ServerSettings
from survey_server.dependencies import get_db, get_orchestrator, get_presets

API = "/api/v1"


@pytest.fixture
def client(orchestrator, presets, mock_db):
    app = create_app(ServerSettings())

    async def _db():
        yield mock_db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_presets] = lambda: presets
    return TestClient(app)


def _new_session(client, **body):
    body.setdefault("purpose", "Decide whether to change careers")
    resp = client.post(f"{API}/sessions", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


class TestSessionFlow:

    def test_create_answer_finalize(self, client):
        sid = _new_session(client, report_target=10)

        resp = client.post(f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5})
        assert resp.status_code == 200
        questions = resp.json()["questions"]
        assert [q["question_index"] for q in questions] == [1, 2, 3, 4, 5]

        for q in questions:
            resp = client.post(
                f"{API}/sessions/{sid}/answers",
                json={"question_id": q["id"], "answer": {"kind": "choice", "index": 0}},
            )
            assert resp.status_code == 200
        body = resp.json()
        assert body["analysis"]["batch_index"] == 1
        assert body["batch"]["generated"] == [6, 7, 8, 9, 10]
        assert body["decision"]["can_finalize"] is True

        resp = client.post(f"{API}/sessions/{sid}/reports")
        assert resp.status_code == 201
        assert resp.json()["version"] == 1

        latest = client.get(f"{API}/sessions/{sid}/reports/latest").json()
        assert latest["version"] == 1
        assert latest["citations"][0]["marker"] == "[Q1]"

        state = client.get(f"{API}/sessions/{sid}").json()
        assert state["session"]["status"] == "completed"
        assert state["answered_count"] == 5
        assert state["questions"][0]["answer"] == {"kind": "choice", "index": 0}

    def test_list_sessions(self, client):
        first = _new_session(client)
        second = _new_session(client)
        resp = client.get(f"{API}/sessions", params={"limit": 1})
        assert [s["id"] for s in resp.json()] == [second]
        resp = client.get(f"{API}/sessions", params={"limit": 1, "offset": 1})
        assert [s["id"] for s in resp.json()] == [first]

    def test_analysis_endpoint(self, client):
        sid = _new_session(client)
        client.post(f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5})
        resp = client.post(f"{API}/sessions/{sid}/analyses", json={"batch_index": 1})
        assert resp.status_code == 400, "batch not answered yet"


class TestErrorMapping:

    def test_malformed_id_is_400(self, client):
        resp = client.get(f"{API}/sessions/not-a-uuid")
        assert resp.status_code == 400
        assert "not a valid UUID" in resp.json()["detail"]

    def test_unknown_session_is_404(self, client):
        resp = client.get(f"{API}/sessions/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Resource not found"}

    def test_bad_target_is_400(self, client):
        resp = client.post(f"{API}/sessions", json={"purpose": "p", "report_target": 12})
        assert resp.status_code == 400

    def test_unknown_answer_kind_is_422(self, client):
        sid = _new_session(client)
        resp = client.post(
            f"{API}/sessions/{sid}/answers",
            json={"question_id": str(uuid.uuid4()), "answer": {"kind": "bogus"}},
        )
        assert resp.status_code == 422

    def test_report_too_early_is_400(self, client):
        sid = _new_session(client)
        assert client.post(f"{API}/sessions/{sid}/reports").status_code == 400

    def test_no_report_is_404(self, client):
        sid = _new_session(client)
        assert client.get(f"{API}/sessions/{sid}/reports/latest").status_code == 404

    def test_model_failure_is_502_without_raw_text(self, client, generator):
        generator.overrides["questions"] = "SECRET raw model output"
        sid = _new_session(client)
        resp = client.post(f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5})
        assert resp.status_code == 502
        assert "SECRET" not in resp.text

    def test_in_flight_report_is_409(self, client, orchestrator):
        sid = _new_session(client)
        orchestrator._guard._held.add((sid, "report", 0))
        assert client.post(f"{API}/sessions/{sid}/reports").status_code == 409

    def test_in_flight_batch_is_409(self, client, orchestrator, generator):
        sid = _new_session(client)
        orchestrator._guard._held.add((sid, "batch", 1))
        resp = client.post(f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5})
        assert resp.status_code == 409
        assert generator.calls_of("questions") == []


class TestPresets:

    def _create(self, client, **extra):
        body = {"title": "Team survey", "purpose": "How the team sees remote work"}
        body.update(extra)
        resp = client.post(f"{API}/presets", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    def test_create_open_and_manage(self, client):
        created = self._create(client)
        slug, token = created["slug"], created["admin_token"]

        public = client.get(f"{API}/presets/{slug}").json()
        assert public["title"] == "Team survey"
        assert "admin_token" not in public

        sid = _new_session(client, preset_slug=slug, purpose=None)
        dashboard = client.get(f"{API}/admin/{token}").json()
        assert [s["id"] for s in dashboard["sessions"]] == [sid]

        resp = client.patch(f"{API}/admin/{token}", json={"title": "Renamed"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "Renamed"

    def test_wrong_token_is_404(self, client):
        assert client.get(f"{API}/admin/nope").status_code == 404

    def test_invalid_email_is_422(self, client):
        resp = client.post(f"{API}/presets", json={
            "title": "t", "purpose": "p", "notification_email": "nope",
        })
        assert resp.status_code == 422

    def test_survey_report_without_responses_is_400(self, client):
        token = self._create(client)["admin_token"]
        resp = client.post(f"{API}/admin/{token}/survey-reports", json={})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "no responses yet"

    def test_failed_survey_report_is_502_with_record(self, client, generator):
        created = self._create(client)
        sid = _new_session(client, preset_slug=created["slug"], purpose=None)
        questions = client.post(
            f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5},
        ).json()["questions"]
        client.post(
            f"{API}/sessions/{sid}/answers",
            json={"question_id": questions[0]["id"], "answer": {"kind": "free_text", "text": "mine"}},
        )
        generator.failures.add("survey_report")

        resp = client.post(f"{API}/admin/{created['admin_token']}/survey-reports", json={})

        assert resp.status_code == 502
        assert resp.json()["status"] == "failed"
        assert resp.json()["version"] == 1
        history = client.get(f"{API}/admin/{created['admin_token']}/survey-reports").json()
        assert [r["status"] for r in history] == ["failed"]

    def test_survey_report_commits_generating_version_first(self, client, mock_db, mock_repo, generator):
        created = self._create(client)
        sid = _new_session(client, preset_slug=created["slug"], purpose=None)
        questions = client.post(
            f"{API}/sessions/{sid}/questions/generate", json={"start_index": 1, "end_index": 5},
        ).json()["questions"]
        client.post(
            f"{API}/sessions/{sid}/answers",
            json={"question_id": questions[0]["id"], "answer": {"kind": "choice", "index": 1}},
        )
        seen = []

        async def commit():
            seen.append(([r.status for r in mock_repo.survey_reports], len(generator.calls_of("survey_report"))))

        mock_db.commit.side_effect = commit
        resp = client.post(f"{API}/admin/{created['admin_token']}/survey-reports", json={})

        assert resp.status_code == 201
        assert seen == [(["generating"], 0)]
        history = client.get(f"{API}/admin/{created['admin_token']}/survey-reports").json()
        assert history[0]["status"] == "completed"
        assert history[0]["citations"][0]["marker"] == "[U1-Q1]"

    def test_authoring_helpers(self, client):
        resp = client.post(f"{API}/presets/generate-background", json={"purpose": "Remote work"})
        assert resp.json() == {"background_text": "A neutral background text."}
        resp = client.post(f"{API}/presets/generate-themes", json={"purpose": "Remote work"})
        assert len(resp.json()["themes"]) == 5

    def test_authoring_failure_is_502(self, client, presets):
        presets._generator = FakeGenerator(failures={"themes"})
        resp = client.post(f"{API}/presets/generate-themes", json={"purpose": "Remote work"})
        assert resp.status_code == 502
