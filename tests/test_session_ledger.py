"""
Unit tests for the session ledger.
"""
import pytest

from app.db.models.match_session import MatchLog, MatchSession
from app.db.models.scrape_session import ScrapeLog, ScrapeSession
from app.services.session_ledger import (
    COMPLETED,
    FAILED,
    IN_PROGRESS,
    QUEUED,
    CompanyOutcome,
    InvalidTransitionError,
    JobOutcome,
    SessionActiveError,
    SessionConflictError,
    SessionLedger,
    SessionNotFoundError,
)

from conftest import make_company, make_posting


@pytest.fixture
def ledger(session_factory):
    return SessionLedger(session_factory)


def success(company_id, added=0, found=0):
    return CompanyOutcome(
        company_id=company_id,
        company_name=f"Company {company_id}",
        platform="greenhouse",
        status="success",
        counts={"jobs_found": found, "jobs_added": added, "jobs_updated": 0, "jobs_filtered": 0, "jobs_archived": 0},
        added_job_ids=list(range(added)),
    )


def test_lifecycle_queued_in_progress_completed(ledger):
    session = ledger.create_scrape_session(company_ids=[1], companies_total=1)
    assert session.status == QUEUED

    assert ledger.begin(ScrapeSession, session.id) is True
    assert ledger.get_session(ScrapeSession, session.id).status == IN_PROGRESS

    ledger.record_company_result(session.id, success(1, added=2, found=5))
    finished = ledger.finish(ScrapeSession, session.id, COMPLETED)

    assert finished.status == COMPLETED
    assert finished.companies_completed == finished.companies_total == 1
    assert finished.jobs_found == 5
    assert finished.jobs_added == 2
    assert finished.completed_at is not None


def test_second_exclusive_session_conflicts(ledger):
    ledger.create_scrape_session(companies_total=1)
    with pytest.raises(SessionConflictError):
        ledger.create_scrape_session(companies_total=1)

    # Match sessions are tracked separately
    ledger.create_match_session([1, 2])
    # Queued behind the active one when not exclusive
    assert ledger.create_match_session([3], exclusive=False).status == QUEUED


def test_stop_queued_session_writes_stopped_log(ledger):
    session = ledger.create_match_session([1, 2, 3])

    stopped = ledger.request_stop(MatchSession, session.id)

    assert stopped.status == FAILED
    assert stopped.error_message == "Stopped by user"
    assert ledger.token_for(session.id).cancelled
    assert ledger.begin(MatchSession, session.id) is False
    logs = ledger.get_logs(MatchSession, session.id)
    assert [(log.status, log.error_type) for log in logs] == [("stopped", "cancelled")]


def test_finish_does_not_override_a_stop(ledger):
    session = ledger.create_scrape_session(companies_total=2)
    ledger.begin(ScrapeSession, session.id)
    ledger.request_stop(ScrapeSession, session.id)

    row = ledger.finish(ScrapeSession, session.id, COMPLETED)

    assert row.status == FAILED
    assert ledger.get_logs(ScrapeSession, session.id) == []


def test_terminal_sessions_cannot_be_stopped_or_restarted(ledger):
    session = ledger.create_scrape_session(companies_total=0)
    ledger.begin(ScrapeSession, session.id)
    ledger.finish(ScrapeSession, session.id, COMPLETED)

    with pytest.raises(InvalidTransitionError):
        ledger.request_stop(ScrapeSession, session.id)
    assert ledger.begin(ScrapeSession, session.id) is False


def test_match_counters_never_exceed_total(ledger, session_factory):
    db = session_factory()
    company = make_company(db)
    db.close()
    session = ledger.create_match_session([1, 2])
    ledger.begin(MatchSession, session.id)

    for job_id, ok in ((1, True), (2, False), (3, False)):
        ledger.record_match_result(session.id, JobOutcome(
            job_id=job_id, job_title="Engineer", company_name=company.name, success=ok,
            score=75.0 if ok else None, error_type=None if ok else "server_error",
        ))

    row = ledger.get_session(MatchSession, session.id)
    assert row.jobs_completed == row.jobs_total == 2
    assert row.jobs_succeeded == 1
    assert row.jobs_failed == row.error_count == 1


def test_company_counters_never_exceed_total(ledger):
    session = ledger.create_scrape_session(companies_total=1)
    ledger.begin(ScrapeSession, session.id)
    ledger.record_company_result(session.id, success(1))
    ledger.record_company_result(session.id, success(2))

    assert ledger.get_session(ScrapeSession, session.id).companies_completed == 1


def test_delete_requires_terminal_status(ledger, session_factory):
    session = ledger.create_scrape_session(companies_total=1)
    with pytest.raises(SessionActiveError):
        ledger.delete_session(ScrapeSession, session.id)

    ledger.begin(ScrapeSession, session.id)
    ledger.record_company_result(session.id, success(1))
    ledger.finish(ScrapeSession, session.id)
    ledger.delete_session(ScrapeSession, session.id)

    db = session_factory()
    assert db.query(ScrapeLog).count() == 0
    db.close()
    with pytest.raises(SessionNotFoundError):
        ledger.get_session(ScrapeSession, session.id)


def test_fail_interrupted_sessions(ledger):
    queued = ledger.create_scrape_session(companies_total=1)
    running = ledger.create_match_session([1])
    ledger.begin(MatchSession, running.id)

    assert ledger.fail_interrupted_sessions() == 2
    for model, session_id in ((ScrapeSession, queued.id), (MatchSession, running.id)):
        row = ledger.get_session(model, session_id)
        assert row.status == FAILED
        assert row.error_message == "Interrupted by restart"


def test_list_sessions_paginates_and_filters(ledger):
    for _ in range(3):
        session = ledger.create_scrape_session(companies_total=0)
        ledger.begin(ScrapeSession, session.id)
        ledger.finish(ScrapeSession, session.id)

    rows, total = ledger.list_sessions(ScrapeSession, page=1, page_size=2)
    assert total == 3
    assert len(rows) == 2

    rows, _ = ledger.list_sessions(ScrapeSession, status="failed")
    assert rows == []


def test_mirror_match_into_scrape_logs(ledger, session_factory):
    db = session_factory()
    company = make_company(db)
    from app.db.models.job_posting import JobPosting
    jobs = []
    for i in range(3):
        posting = make_posting(i)
        job = JobPosting(company_id=company.id, external_id=posting.external_id, title=posting.title, content_hash="x")
        db.add(job)
        jobs.append(job)
    db.commit()
    job_ids = [job.id for job in jobs]
    db.close()

    scrape = ledger.create_scrape_session(companies_total=2)
    ledger.begin(ScrapeSession, scrape.id)
    outcome = success(company.id, added=3, found=3)
    outcome.added_job_ids = job_ids
    ledger.record_company_result(scrape.id, outcome)
    ledger.record_company_result(scrape.id, success(99))
    ledger.finish(ScrapeSession, scrape.id)

    match = ledger.create_match_session(job_ids, trigger="auto_scrape", scrape_session_id=scrape.id)
    ledger.begin(MatchSession, match.id)
    for job_id in job_ids:
        ledger.record_match_result(match.id, JobOutcome(
            job_id=job_id, job_title="Engineer", company_name="Acme",
            success=job_id != job_ids[-1], score=70.0, duration_ms=100,
        ))
    ledger.finish(MatchSession, match.id)
    ledger.mirror_match_into_scrape_logs(match.id)

    logs = ledger.get_logs(ScrapeSession, scrape.id)
    mirrored, untouched = logs
    assert mirrored.matcher_status == COMPLETED
    assert mirrored.matcher_jobs_total == 3
    assert mirrored.matcher_jobs_completed == 3
    assert mirrored.matcher_error_count == 1
    assert mirrored.matcher_duration_ms == 300
    assert untouched.matcher_status is None

    db = session_factory()
    assert db.get(JobPosting, job_ids[0]).match_score == 70.0
    assert db.get(JobPosting, job_ids[-1]).match_score is None
    assert db.query(MatchLog).count() == 3
    db.close()
