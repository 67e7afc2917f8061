"""HTTP API tests — FastAPI TestClient over an in-memory remote store.

The app is built with ``create_app(settings, synchronizer=MockSynchronizer)``
so the lifespan, dependency injection, exception handlers and routes run
exactly as in production, without a database.
"""

import pytest
from fastapi.testclient import TestClient

from trias_server.app import create_app
from trias_server.config import ServerSettings

from test_engine import MockSynchronizer

API = "/api/v1"
U1 = {"X-User-ID": "u1"}
U2 = {"X-User-ID": "u2"}


@pytest.fixture
def sync(yaml_catalog):
    return MockSynchronizer(yaml_catalog)


@pytest.fixture
def client(sync):
    app = create_app(ServerSettings(), synchronizer=sync)
    with TestClient(app) as c:
        yield c


def walk_to_completion(client, headers, option=2):
    """Answer every question with *option* and advance until completed."""
    view = client.post(f"{API}/assessment/start", headers=headers).json()
    while view["status"] == "in_progress":
        qid = view["question"]["question_id"]
        resp = client.post(
            f"{API}/assessment/answer",
            json={"question_id": qid, "selected_option": option},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        view = client.post(f"{API}/assessment/advance", headers=headers).json()
    return view


# =====================================================================
# Health and catalog
# =====================================================================


class TestCatalogEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "themes": 4}

    def test_list_themes(self, client):
        themes = client.get(f"{API}/catalog/themes").json()
        assert [t["id"] for t in themes] == [
            "general", "cognitive", "physical", "socialEmotional",
        ]
        assert all(t["question_count"] == 2 for t in themes)
        assert themes[0]["title"]["nl"] == "Algemeen Welzijn"

    def test_list_questions_for_theme(self, client):
        questions = client.get(f"{API}/catalog/questions", params={"theme_id": "cognitive"}).json()
        assert [q["id"] for q in questions] == ["3", "4"]
        assert questions[0]["option_count"] == 5

    def test_unknown_theme(self, client):
        resp = client.get(f"{API}/catalog/questions", params={"theme_id": "nope"})
        assert resp.status_code == 404


# =====================================================================
# Identity
# =====================================================================


class TestIdentity:
    def test_missing_user_header(self, client):
        resp = client.get(f"{API}/assessment")
        assert resp.status_code == 401

    def test_proxy_secret_required_when_configured(self, sync):
        app = create_app(ServerSettings(trusted_proxy_secret="s3cret"), synchronizer=sync)
        with TestClient(app) as c:
            assert c.get(f"{API}/assessment", headers=U1).status_code == 403
            wrong = {**U1, "X-Proxy-Secret": "nope"}
            assert c.get(f"{API}/assessment", headers=wrong).status_code == 403
            right = {**U1, "X-Proxy-Secret": "s3cret"}
            assert c.get(f"{API}/assessment", headers=right).status_code == 200

    def test_users_are_isolated(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        assert client.get(f"{API}/assessment", headers=U1).json()["status"] == "in_progress"
        assert client.get(f"{API}/assessment", headers=U2).json()["status"] == "not_started"


# =====================================================================
# Assessment flow
# =====================================================================


class TestAssessmentFlow:
    def test_start_returns_first_question(self, client):
        resp = client.post(f"{API}/assessment/start", headers=U1)
        assert resp.status_code == 201
        view = resp.json()
        assert view["status"] == "in_progress"
        assert view["theme"]["theme_id"] == "general"
        assert view["question"]["question_id"] == "1"
        assert view["progress"] == {"answered": 0, "total": 8, "fraction": 0.0}

    def test_complete_flow_with_report_and_latest(self, client, sync):
        view = walk_to_completion(client, U1, option=4)
        assert view["status"] == "completed"
        assert [(r["theme_id"], r["score"], r["status"]) for r in view["results"]] == [
            ("general", 100, "normal"),
            ("cognitive", 100, "normal"),
            ("physical", 100, "normal"),
            ("socialEmotional", 100, "normal"),
        ]

        report = client.get(f"{API}/assessment/report", headers=U1).json()
        assert [s["status_label"] for s in report["sections"]] == ["Normal"] * 4
        assert report["session_id"] == view["session_id"]
        assert report["user_name"] == "User", "Report names the signed-in user"

        latest = client.get(f"{API}/results/latest", headers=U1).json()
        assert latest["session_id"] == view["session_id"]
        assert sync.sessions[view["session_id"]]["completed_at"] is not None

    def test_start_twice_conflicts(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        resp = client.post(f"{API}/assessment/start", headers=U1)
        assert resp.status_code == 409
        assert resp.json()["reason"] == "invalid_state"

    def test_answer_validation(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        resp = client.post(
            f"{API}/assessment/answer",
            json={"question_id": "2", "selected_option": 1},
            headers=U1,
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "question_not_current"

        resp = client.post(
            f"{API}/assessment/answer",
            json={"question_id": "1", "selected_option": 9},
            headers=U1,
        )
        assert resp.status_code == 422
        assert resp.json()["reason"] == "option_out_of_range"

        resp = client.post(
            f"{API}/assessment/answer",
            json={"question_id": "99", "selected_option": 1},
            headers=U1,
        )
        assert resp.status_code == 404

    def test_answer_shows_selection(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        view = client.post(
            f"{API}/assessment/answer",
            json={"question_id": "1", "selected_option": 3},
            headers=U1,
        ).json()
        assert view["selected_option"] == 3
        assert view["progress"]["answered"] == 1

    def test_reset(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        view = client.post(f"{API}/assessment/reset", headers=U1).json()
        assert view["status"] == "not_started"
        assert view["session_id"] is None

    def test_language(self, client):
        client.post(f"{API}/assessment/start", headers=U1)
        view = client.put(f"{API}/assessment/language", json={"language": "nl"}, headers=U1).json()
        assert view["language"] == "nl"
        assert view["theme"]["title"] == "Algemeen Welzijn"

        resp = client.put(f"{API}/assessment/language", json={"language": "fr"}, headers=U1)
        assert resp.status_code == 422
        assert resp.json()["reason"] == "unsupported_language"

    def test_report_before_completion(self, client):
        resp = client.get(f"{API}/assessment/report", headers=U1)
        assert resp.status_code == 409

    def test_no_latest_results(self, client):
        assert client.get(f"{API}/results/latest", headers=U1).status_code == 404


# =====================================================================
# Remote failures
# =====================================================================


class TestRemoteFailures:
    def test_start_failure_is_502_with_safe_detail(self, client, sync):
        sync.fail.add("create_session")
        resp = client.post(f"{API}/assessment/start", headers=U1)
        assert resp.status_code == 502
        body = resp.json()
        assert body == {"detail": "Remote store unavailable", "reason": "remote_failure"}
        assert client.get(f"{API}/assessment", headers=U1).json()["status"] == "not_started"

    def test_completion_failure_can_be_retried(self, client, sync):
        client.post(f"{API}/assessment/start", headers=U1)
        for _ in range(7):
            client.post(f"{API}/assessment/advance", headers=U1)
        client.post(
            f"{API}/assessment/answer",
            json={"question_id": "8", "selected_option": 4},
            headers=U1,
        )

        sync.fail.add("mark_session_complete")
        assert client.post(f"{API}/assessment/advance", headers=U1).status_code == 502
        assert client.get(f"{API}/assessment", headers=U1).json()["question"]["question_id"] == "8"

        sync.fail.clear()
        view = client.post(f"{API}/assessment/advance", headers=U1).json()
        assert view["status"] == "completed"
        assert [r["theme_id"] for r in view["results"]] == ["socialEmotional"], (
            "Only the answered theme is scored"
        )

    def test_completion_without_answers_conflicts(self, client, sync):
        client.post(f"{API}/assessment/start", headers=U1)
        for _ in range(7):
            client.post(f"{API}/assessment/advance", headers=U1)

        resp = client.post(f"{API}/assessment/advance", headers=U1)
        assert resp.status_code == 409
        assert resp.json()["reason"] == "invalid_state"
        view = client.get(f"{API}/assessment", headers=U1).json()
        assert view["status"] == "in_progress"
        assert view["question"]["question_id"] == "8"
        assert "mark_session_complete" not in sync.calls

    def test_health_reports_catalog_failure(self, yaml_catalog):
        sync = MockSynchronizer(None)
        app = create_app(ServerSettings(), synchronizer=sync)
        with TestClient(app) as c:
            assert c.get("/health").json() == {"status": "error", "reason": "remote_failure"}
            assert c.get(f"{API}/catalog/themes").status_code == 502


# =====================================================================
# Persistence across restarts
# =====================================================================


class TestFileCache:
    def test_session_resumes_after_restart(self, sync, tmp_path):
        settings = ServerSettings(cache_dir=str(tmp_path))
        with TestClient(create_app(settings, synchronizer=sync)) as c:
            c.post(f"{API}/assessment/start", headers=U1)
            c.post(
                f"{API}/assessment/answer",
                json={"question_id": "1", "selected_option": 4},
                headers=U1,
            )
            c.post(f"{API}/assessment/advance", headers=U1)

        with TestClient(create_app(settings, synchronizer=sync)) as c:
            view = c.get(f"{API}/assessment", headers=U1).json()
        assert view["status"] == "in_progress"
        assert view["question"]["question_id"] == "2"
        assert view["progress"]["answered"] == 1


# =====================================================================
# Engine eviction
# =====================================================================


class TestEngineEviction:
    """Idle engines beyond ``max_engines`` are dropped and rebuilt from the cache."""

    @pytest.mark.parametrize("on_disk", [False, True])
    def test_evicted_session_resumes(self, sync, tmp_path, on_disk):
        settings = ServerSettings(cache_dir=str(tmp_path) if on_disk else None, max_engines=1)
        with TestClient(create_app(settings, synchronizer=sync)) as c:
            registry = c.app.state.registry
            c.post(f"{API}/assessment/start", headers=U1)
            c.post(
                f"{API}/assessment/answer",
                json={"question_id": "1", "selected_option": 3},
                headers=U1,
            )
            c.post(f"{API}/assessment/advance", headers=U1)

            c.get(f"{API}/assessment", headers=U2)
            assert len(registry) == 1, "Only one live engine"
            assert "u1" not in registry, "Idle engine of u1 evicted"

            view = c.get(f"{API}/assessment", headers=U1).json()
            assert "u2" not in registry
        assert view["status"] == "in_progress", "Session restored from the cache"
        assert view["question"]["question_id"] == "2"
        assert view["progress"]["answered"] == 1

    def test_engine_with_unsent_answers_is_kept(self, sync):
        settings = ServerSettings(max_engines=1)
        with TestClient(create_app(settings, synchronizer=sync)) as c:
            registry = c.app.state.registry
            c.post(f"{API}/assessment/start", headers=U1)
            sync.fail.add("upsert_answer")
            c.post(
                f"{API}/assessment/answer",
                json={"question_id": "1", "selected_option": 3},
                headers=U1,
            )
            # Any later request on the same loop lets the failed upsert settle
            c.get(f"{API}/assessment", headers=U1)

            c.get(f"{API}/assessment", headers=U2)
            assert "u1" in registry, "Failed answer still waits to be re-sent"
            assert len(registry) == 2, "Cap is exceeded rather than losing it"
