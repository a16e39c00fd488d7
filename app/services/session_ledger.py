"""
Session ledger: the shared state of scrape and match runs.

Both orchestrators and the API read and write sessions only through this
class. Every write for a session id happens under that session's lock, in
its own short transaction, so concurrent match workers never lose counter
updates and pollers always see committed progress.

Status is monotonic: queued -> in_progress -> completed | failed, and
queued -> failed when a session is stopped before it starts.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.db.models.job_posting import JobPosting
from app.db.models.match_session import MatchLog, MatchSession
from app.db.models.scrape_session import ScrapeLog, ScrapeSession
from app.resilience.cancellation import CancellationRegistry, CancellationToken

logger = logging.getLogger(__name__)

QUEUED = "queued"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FAILED = "failed"

ACTIVE_STATUSES = (QUEUED, IN_PROGRESS)
TERMINAL_STATUSES = (COMPLETED, FAILED)

ALLOWED_TRANSITIONS = {
    QUEUED: {IN_PROGRESS, FAILED},
    IN_PROGRESS: {COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
}

STOPPED_BY_USER = "Stopped by user"
INTERRUPTED_BY_RESTART = "Interrupted by restart"

LOG_MODELS = {ScrapeSession: ScrapeLog, MatchSession: MatchLog}


class SessionError(Exception):
    pass


class SessionNotFoundError(SessionError):
    pass


class SessionConflictError(SessionError):
    """Another session of the same kind is already queued or running."""


class SessionActiveError(SessionError):
    """The session is still queued or running."""


class InvalidTransitionError(SessionError):
    pass


@dataclass
class CompanyOutcome:
    company_id: Optional[int]
    company_name: Optional[str]
    platform: Optional[str]
    status: str  # "success" | "failed"
    counts: Dict[str, int] = field(default_factory=dict)
    added_job_ids: List[int] = field(default_factory=list)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Any = None
    duration_ms: Optional[int] = None


@dataclass
class JobOutcome:
    job_id: int
    job_title: Optional[str]
    company_name: Optional[str]
    success: bool
    score: Optional[float] = None
    reasons: List[str] = field(default_factory=list)
    matched_skills: List[str] = field(default_factory=list)
    missing_skills: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    attempts: int = 0
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    model_used: Optional[str] = None


def new_session_id() -> str:
    return uuid.uuid4().hex


class SessionLedger:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cancellations: Optional[CancellationRegistry] = None,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.cancellations = cancellations or CancellationRegistry()
        self.clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._create_lock = threading.Lock()

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def lock_for(self, session_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[session_id] = lock
            return lock

    def token_for(self, session_id: str) -> CancellationToken:
        return self.cancellations.token_for(session_id)

    def _detach(self, db: Session, row):
        db.refresh(row)
        db.expunge(row)
        return row

    def _get_row(self, db: Session, model: Type, session_id: str):
        row = db.get(model, session_id)
        if row is None:
            raise SessionNotFoundError(f"{model.__name__} {session_id} not found")
        return row

    def _transition(self, row, new_status: str) -> None:
        if new_status not in ALLOWED_TRANSITIONS[row.status]:
            raise InvalidTransitionError(f"Cannot move session {row.id} from {row.status} to {new_status}")
        row.status = new_status
        if new_status == IN_PROGRESS:
            row.started_at = self.clock()
        elif new_status in TERMINAL_STATUSES:
            row.completed_at = self.clock()

    # ---- creation ---------------------------------------------------------

    def has_active(self, model: Type, db: Optional[Session] = None) -> bool:
        if db is not None:
            return db.query(model.id).filter(model.status.in_(ACTIVE_STATUSES)).first() is not None
        with self._db() as own:
            return self.has_active(model, own)

    def create_scrape_session(
        self,
        trigger: str = "manual",
        company_ids: Optional[List[int]] = None,
        companies_total: int = 0,
        exclusive: bool = True,
    ) -> ScrapeSession:
        with self._create_lock, self._db() as db:
            if exclusive and self.has_active(ScrapeSession, db):
                raise SessionConflictError("A scrape session is already queued or in progress")
            row = ScrapeSession(
                id=new_session_id(),
                trigger=trigger,
                status=QUEUED,
                company_ids=company_ids,
                companies_total=companies_total,
            )
            db.add(row)
            db.commit()
            logger.info(f"Scrape session {row.id} queued: trigger={trigger}, companies={companies_total}")
            return self._detach(db, row)

    def create_match_session(
        self,
        job_ids: List[int],
        trigger: str = "manual",
        company_id: Optional[int] = None,
        scrape_session_id: Optional[str] = None,
        exclusive: bool = True,
    ) -> MatchSession:
        with self._create_lock, self._db() as db:
            if exclusive and self.has_active(MatchSession, db):
                raise SessionConflictError("A match session is already queued or in progress")
            row = MatchSession(
                id=new_session_id(),
                trigger=trigger,
                status=QUEUED,
                company_id=company_id,
                scrape_session_id=scrape_session_id,
                job_ids=list(job_ids),
                jobs_total=len(job_ids),
            )
            db.add(row)
            db.commit()
            logger.info(f"Match session {row.id} queued: trigger={trigger}, jobs={len(job_ids)}")
            return self._detach(db, row)

    # ---- lifecycle ----------------------------------------------------------

    def begin(self, model: Type, session_id: str) -> bool:
        """queued -> in_progress. False when the session was stopped before it started."""
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, model, session_id)
            if row.status != QUEUED:
                logger.info(f"{model.__name__} {session_id} not started: status is {row.status}")
                return False
            self._transition(row, IN_PROGRESS)
            db.commit()
            return True

    def finish(self, model: Type, session_id: str, status: str = COMPLETED, error_message: Optional[str] = None):
        """
        Move an in-progress session to a terminal status.

        A session already failed by a stop request keeps its status.
        """
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, model, session_id)
            if row.status in TERMINAL_STATUSES:
                return self._detach(db, row)
            self._transition(row, status)
            if error_message:
                row.error_message = error_message
            db.commit()
            logger.info(f"{model.__name__} {session_id} finished: {status}")
            return self._detach(db, row)

    def request_stop(self, model: Type, session_id: str, reason: str = STOPPED_BY_USER):
        """
        Stop a queued or running session.

        The session is failed immediately and its cancellation token set. A
        queued session gets its stopped log here; a running one gets it from
        its worker once in-flight work has been recorded.
        """
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, model, session_id)
            if row.status not in ACTIVE_STATUSES:
                raise InvalidTransitionError(f"Session {session_id} is already {row.status}")
            was_queued = row.status == QUEUED
            self._transition(row, FAILED)
            row.error_message = reason
            if was_queued:
                db.add(self._stopped_log(model, session_id, reason))
            db.commit()
            self.cancellations.cancel(session_id, reason)
            logger.info(f"{model.__name__} {session_id} stop requested ({'queued' if was_queued else 'running'})")
            return self._detach(db, row)

    def append_stopped_log(self, model: Type, session_id: str, reason: Optional[str] = None):
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, model, session_id)
            if row.status != FAILED:
                self._transition(row, FAILED)
            reason = reason or row.error_message or STOPPED_BY_USER
            row.error_message = row.error_message or reason
            db.add(self._stopped_log(model, session_id, reason))
            db.commit()
            return self._detach(db, row)

    def _stopped_log(self, model: Type, session_id: str, reason: str):
        log_model = LOG_MODELS[model]
        if log_model is ScrapeLog:
            return ScrapeLog(session_id=session_id, status="stopped", error_type="cancelled", error_message=reason)
        return MatchLog(session_id=session_id, status="stopped", error_type="cancelled", error_message=reason)

    def fail_interrupted_sessions(self) -> int:
        """Fail sessions a previous process left queued or running."""
        count = 0
        with self._db() as db:
            for model in (ScrapeSession, MatchSession):
                for row in db.query(model).filter(model.status.in_(ACTIVE_STATUSES)).all():
                    self._transition(row, FAILED)
                    row.error_message = INTERRUPTED_BY_RESTART
                    count += 1
            db.commit()
        if count:
            logger.warning(f"Failed {count} sessions interrupted by restart")
        return count

    # ---- progress -----------------------------------------------------------

    def record_company_result(self, session_id: str, outcome: CompanyOutcome) -> None:
        """Append a company's ScrapeLog row and roll its counts into the session."""
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, ScrapeSession, session_id)
            db.add(ScrapeLog(
                session_id=session_id,
                company_id=outcome.company_id,
                company_name=outcome.company_name,
                platform=outcome.platform,
                status=outcome.status,
                added_job_ids=outcome.added_job_ids or None,
                error_type=outcome.error_type,
                error_message=outcome.error_message,
                started_at=outcome.started_at,
                duration_ms=outcome.duration_ms,
                completed_at=self.clock(),
                **outcome.counts,
            ))
            if row.companies_completed < row.companies_total:
                row.companies_completed += 1
            else:
                logger.warning(f"Scrape session {session_id} got more results than companies_total")
            for name, value in outcome.counts.items():
                setattr(row, name, (getattr(row, name) or 0) + value)
            db.commit()

    def record_match_result(self, session_id: str, outcome: JobOutcome) -> None:
        """Persist one job's score (or failure), its MatchLog row and the counters."""
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, MatchSession, session_id)
            now = self.clock()

            if outcome.success:
                job = db.get(JobPosting, outcome.job_id)
                if job is not None:
                    job.match_score = outcome.score
                    job.match_reasons = outcome.reasons
                    job.matched_skills = outcome.matched_skills
                    job.missing_skills = outcome.missing_skills
                    job.recommendations = outcome.recommendations
                    job.matched_at = now

            db.add(MatchLog(
                session_id=session_id,
                job_id=outcome.job_id,
                job_title=outcome.job_title,
                company_name=outcome.company_name,
                status="success" if outcome.success else "failed",
                score=outcome.score if outcome.success else None,
                attempts=outcome.attempts,
                error_type=outcome.error_type,
                error_message=outcome.error_message,
                duration_ms=outcome.duration_ms,
                model_used=outcome.model_used,
                completed_at=now,
            ))

            if row.jobs_completed < row.jobs_total:
                row.jobs_completed += 1
                if outcome.success:
                    row.jobs_succeeded += 1
                else:
                    row.jobs_failed += 1
                    row.error_count += 1
            else:
                logger.warning(f"Match session {session_id} got more results than jobs_total")
            db.commit()

    def set_jobs_total(self, session_id: str, jobs_total: int) -> None:
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, MatchSession, session_id)
            row.jobs_total = max(jobs_total, row.jobs_completed)
            db.commit()

    def mirror_match_into_scrape_logs(self, match_session_id: str) -> None:
        """Copy an auto-match run's per-job results onto its scrape session's company logs."""
        with self._db() as db:
            match = self._get_row(db, MatchSession, match_session_id)
            if not match.scrape_session_id:
                return
            scrape_session_id = match.scrape_session_id

        with self.lock_for(scrape_session_id), self._db() as db:
            match = self._get_row(db, MatchSession, match_session_id)
            logs_by_job = {
                log.job_id: log
                for log in db.query(MatchLog).filter(MatchLog.session_id == match_session_id, MatchLog.job_id.isnot(None))
            }
            company_logs = db.query(ScrapeLog).filter(ScrapeLog.session_id == scrape_session_id).all()
            for company_log in company_logs:
                job_ids = company_log.added_job_ids or []
                if not job_ids:
                    continue
                results = [logs_by_job[job_id] for job_id in job_ids if job_id in logs_by_job]
                company_log.matcher_status = match.status
                company_log.matcher_jobs_total = len(job_ids)
                company_log.matcher_jobs_completed = len(results)
                company_log.matcher_error_count = sum(1 for log in results if log.status == "failed")
                company_log.matcher_duration_ms = sum(log.duration_ms or 0 for log in results)
            db.commit()

    # ---- reads --------------------------------------------------------------

    def get_session(self, model: Type, session_id: str):
        with self._db() as db:
            row = self._get_row(db, model, session_id)
            db.expunge(row)
            return row

    def list_sessions(
        self,
        model: Type,
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
    ) -> Tuple[list, int]:
        with self._db() as db:
            query = db.query(model)
            if status:
                query = query.filter(model.status == status)
            total = query.count()
            rows = query.order_by(desc(model.created_at)).offset((page - 1) * page_size).limit(page_size).all()
            for row in rows:
                db.expunge(row)
            return rows, total

    def get_logs(self, model: Type, session_id: str) -> list:
        log_model = LOG_MODELS[model]
        with self._db() as db:
            self._get_row(db, model, session_id)
            logs = db.query(log_model).filter(log_model.session_id == session_id).order_by(log_model.id).all()
            for log in logs:
                db.expunge(log)
            return logs

    def delete_session(self, model: Type, session_id: str) -> None:
        with self.lock_for(session_id), self._db() as db:
            row = self._get_row(db, model, session_id)
            if row.status in ACTIVE_STATUSES:
                raise SessionActiveError(f"Session {session_id} is {row.status}; stop it before deleting")
            db.delete(row)
            db.commit()
        self.cancellations.discard(session_id)
        with self._locks_guard:
            self._locks.pop(session_id, None)
        logger.info(f"{model.__name__} {session_id} deleted")
