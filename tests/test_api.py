"""
Integration tests for the HTTP API.
"""
import threading

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db, get_runner
from app.llm.match_scorer import MatchScorer
from app.main import app
from app.scraper.registry import AdapterRegistry
from app.services.session_runner import SessionRunner

from conftest import FakeAdapter, FakeProvider, make_company, make_posting


@pytest.fixture
def release():
    """Set to let the blocking adapter return."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def adapter(release):
    return FakeAdapter(
        boards={"acme": [make_posting(1), make_posting(2)]},
        on_fetch=lambda _token: release.wait(10),
    )


@pytest.fixture
def runner(session_factory, adapter, release):
    registry = AdapterRegistry()
    registry.register(adapter)
    runner = SessionRunner(session_factory, registry=registry, scorer=MatchScorer(provider=FakeProvider()))
    yield runner
    release.set()
    runner.shutdown()


@pytest.fixture
def client(session_factory, runner):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_runner] = lambda: runner
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_and_health(client):
    assert client.get("/").json() == {"status": "JobRadar API running"}

    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "connected"
    assert data["sessions"] == {"scrape_active": False, "match_active": False}
    assert data["circuit_breakers"] == []


# ---- companies --------------------------------------------------------------

def test_create_company_detects_platform(client):
    response = client.post("/companies", json={"name": "Acme", "careers_url": "https://jobs.lever.co/acme"})

    assert response.status_code == 201
    data = response.json()
    assert data["platform"] == "lever"
    assert data["is_active"] is True
    assert client.get(f"/companies/{data['id']}").json()["name"] == "Acme"


def test_create_company_rejects_unknown_platform(client):
    response = client.post("/companies", json={"name": "Acme", "careers_url": "https://acme.com", "platform": "myspace"})

    assert response.status_code == 422


def test_changing_careers_url_redetects_platform(client, db_session):
    company = make_company(db_session, "Acme")

    response = client.patch(f"/companies/{company.id}", json={"careers_url": "https://jobs.ashbyhq.com/acme"})

    assert response.status_code == 200
    assert response.json()["platform"] == "ashby"
    assert response.json()["board_token"] is None


def test_unknown_company_returns_404(client):
    assert client.get("/companies/999").status_code == 404
    assert client.delete("/companies/999").status_code == 404
    assert client.post("/companies/999/refresh").status_code == 404


def test_refresh_inactive_company(client, db_session):
    company = make_company(db_session, "Dormant", is_active=False)

    response = client.post(f"/companies/{company.id}/refresh")

    assert response.status_code == 400
    assert response.json()["detail"] == "Company is not active"


# ---- scrape sessions --------------------------------------------------------

def test_scrape_session_lifecycle_with_stop(client, runner, release, db_session):
    make_company(db_session, "Acme")

    response = client.post("/scrape-sessions", json={})
    assert response.status_code == 202
    session = response.json()
    assert session["status"] in ("queued", "in_progress")
    assert session["companies_total"] == 1

    assert client.post("/scrape-sessions", json={}).status_code == 409
    assert client.delete(f"/scrape-sessions/{session['id']}").status_code == 409

    stopped = client.post(f"/scrape-sessions/{session['id']}/stop")
    assert stopped.status_code == 200
    assert stopped.json()["status"] == "failed"
    assert stopped.json()["error_message"] == "Stopped by user"

    release.set()
    runner.wait(session["id"], timeout=30)

    logs = client.get(f"/scrape-sessions/{session['id']}/logs").json()
    assert logs[-1]["status"] == "stopped"
    assert client.get(f"/scrape-sessions/{session['id']}").json()["status"] == "failed"
    assert client.post(f"/scrape-sessions/{session['id']}/stop").status_code == 409

    assert client.delete(f"/scrape-sessions/{session['id']}").status_code == 204
    assert client.get(f"/scrape-sessions/{session['id']}").status_code == 404


def test_scrape_session_runs_to_completion(client, runner, release, db_session):
    make_company(db_session, "Acme")
    release.set()

    session = client.post("/scrape-sessions", json={}).json()
    runner.wait(session["id"], timeout=30)

    data = client.get(f"/scrape-sessions/{session['id']}").json()
    assert data["status"] == "completed"
    assert data["jobs_added"] == 2
    listing = client.get("/scrape-sessions", params={"status": "completed"}).json()
    assert listing["total"] == 1
    assert listing["sessions"][0]["id"] == session["id"]


def test_scrape_session_validation(client):
    assert client.post("/scrape-sessions", json={"trigger": "auto_scrape"}).status_code == 422
    # No active companies
    assert client.post("/scrape-sessions", json={}).status_code == 400
    assert client.get("/scrape-sessions/nope").status_code == 404
    assert client.get("/scrape-sessions/nope/logs").status_code == 404


# ---- match sessions ---------------------------------------------------------

def test_match_session_validation(client):
    assert client.post("/match-sessions", json={"trigger": "auto_scrape"}).status_code == 422
    response = client.post("/match-sessions", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "No jobs to match"
    assert client.post("/match-sessions/nope/stop").status_code == 404


def test_match_session_scores_jobs(client, runner, db_session, profile):
    from app.db.models.job_posting import JobPosting
    company = make_company(db_session, "Acme")
    job = JobPosting(company_id=company.id, external_id="greenhouse-acme-1", title="Engineer", content_hash="x")
    db_session.add(job)
    db_session.commit()

    session = client.post("/match-sessions", json={"job_ids": [job.id]}).json()
    runner.wait(session["id"], timeout=30)

    data = client.get(f"/match-sessions/{session['id']}").json()
    assert data["status"] == "completed"
    assert data["jobs_succeeded"] == 1
    logs = client.get(f"/match-sessions/{session['id']}/logs").json()
    assert [log["status"] for log in logs] == ["success"]


# ---- settings and profile ---------------------------------------------------

def test_settings_round_trip(client):
    settings = client.get("/settings").json()["settings"]
    assert settings["matcher_concurrency_limit"] == 3

    response = client.put("/settings", json={"settings": {"matcher_batch_size": 50, "matcher_bulk_enabled": True}})
    assert response.status_code == 200
    assert response.json()["settings"]["matcher_batch_size"] == 10
    assert response.json()["settings"]["matcher_bulk_enabled"] is True

    assert client.put("/settings", json={"settings": {"turbo": True}}).status_code == 422


def test_profile_upsert(client):
    assert client.get("/profile").status_code == 404

    response = client.put("/profile", json={"full_name": "Sam Rivera", "skills": "python, sql"})
    assert response.status_code == 200
    assert response.json()["skills"] == ["python", "sql"]

    client.put("/profile", json={"full_name": "Sam Rivera", "skills": ["go"]})
    data = client.get("/profile").json()
    assert data["skills"] == ["go"]
    assert data["id"] == response.json()["id"]
