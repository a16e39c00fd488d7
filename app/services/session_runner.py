"""
Session runner: wires the orchestrators to background worker lanes.

There is one single-worker lane for scrape sessions and one for match
sessions, so at most one session of each kind runs at a time. Sessions
are created ``queued`` by the API thread and picked up by their lane.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.models.company import Company
from app.db.models.job_posting import JobPosting
from app.db.models.match_session import MatchSession
from app.db.models.scrape_session import ScrapeSession
from app.llm.match_scorer import MatchScorer
from app.resilience.circuit_breaker import CircuitBreakerRegistry
from app.scraper.registry import AdapterRegistry, create_default_registry
from app.services.match_queue import MatchQueue
from app.services.scrape_orchestrator import ScrapeOrchestrator
from app.services.session_ledger import COMPLETED, FAILED, SessionError, SessionLedger
from app.services.settings_service import get_matcher_settings, get_scraper_settings

logger = logging.getLogger(__name__)

TRIGGER_MANUAL = "manual"
TRIGGER_SCHEDULED = "scheduled"
TRIGGER_COMPANY_REFRESH = "company_refresh"
TRIGGER_AUTO_SCRAPE = "auto_scrape"

SCRAPE_TRIGGERS = (TRIGGER_MANUAL, TRIGGER_SCHEDULED, TRIGGER_COMPANY_REFRESH)
MATCH_TRIGGERS = (TRIGGER_MANUAL, TRIGGER_AUTO_SCRAPE, TRIGGER_COMPANY_REFRESH)

SHUTTING_DOWN = "Shutting down"


class NothingToRunError(SessionError):
    """The requested scope selects no companies or jobs."""


def select_company_ids(db: Session, company_ids: Optional[List[int]] = None) -> List[int]:
    """Active companies in the requested scope, in id order."""
    query = db.query(Company.id).filter(Company.is_active.is_(True))
    if company_ids is not None:
        query = query.filter(Company.id.in_(company_ids))
    return [row.id for row in query.order_by(Company.id).all()]


def select_job_ids(
    db: Session,
    job_ids: Optional[List[int]] = None,
    company_id: Optional[int] = None,
    rematch: bool = False,
) -> List[int]:
    """
    Jobs a match session should score.

    Explicit ids are kept as given (deduplicated, in order). Otherwise every
    non-archived job, optionally for one company, that has no score yet; with
    ``rematch`` scored jobs are included too.
    """
    if job_ids:
        return list(dict.fromkeys(job_ids))

    query = db.query(JobPosting.id).filter(JobPosting.status != "archived")
    if company_id is not None:
        query = query.filter(JobPosting.company_id == company_id)
    if not rematch:
        query = query.filter(JobPosting.match_score.is_(None))
    return [row.id for row in query.order_by(JobPosting.id).all()]


class SessionRunner:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ledger: Optional[SessionLedger] = None,
        registry: Optional[AdapterRegistry] = None,
        scorer: Optional[MatchScorer] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger or SessionLedger(session_factory)
        self.breakers = breakers or CircuitBreakerRegistry()
        self.scrape_orchestrator = ScrapeOrchestrator(
            session_factory, self.ledger, registry or create_default_registry()
        )
        self.match_queue = MatchQueue(session_factory, self.ledger, scorer or MatchScorer(), self.breakers)
        self._scrape_lane = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scrape-lane")
        self._match_lane = ThreadPoolExecutor(max_workers=1, thread_name_prefix="match-lane")
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

    def recover(self) -> int:
        """Fail sessions left active by a previous process."""
        return self.ledger.fail_interrupted_sessions()

    # ---- scrape -------------------------------------------------------------

    def start_scrape(self, company_ids: Optional[List[int]] = None, trigger: str = TRIGGER_MANUAL) -> ScrapeSession:
        """
        Queue a scrape session over the active companies in scope.

        Raises:
            SessionConflictError: a scrape session is already queued or running
            NothingToRunError: no active company matches the scope
        """
        db = self.session_factory()
        try:
            selected = select_company_ids(db, company_ids)
        finally:
            db.close()
        if not selected:
            raise NothingToRunError("No active companies to scrape")

        session = self.ledger.create_scrape_session(
            trigger=trigger, company_ids=selected, companies_total=len(selected), exclusive=True
        )
        self._submit(self._scrape_lane, session.id, self._run_scrape, session.id)
        return session

    def stop_scrape(self, session_id: str) -> ScrapeSession:
        return self.ledger.request_stop(ScrapeSession, session_id)

    def _run_scrape(self, session_id: str) -> None:
        try:
            db = self.session_factory()
            try:
                scraper_settings = get_scraper_settings(db)
                matcher_settings = get_matcher_settings(db)
            finally:
                db.close()

            result = self.scrape_orchestrator.run(session_id, scraper_settings)
            if result.status == COMPLETED and result.added_job_ids and matcher_settings.auto_match_after_scrape:
                self.enqueue_auto_match(session_id, result.added_job_ids)
        except Exception as e:
            logger.error(f"Scrape lane error for session {session_id}: {e}", exc_info=True)
            self.ledger.finish(ScrapeSession, session_id, FAILED, error_message=f"Scraper fault: {e}")

    # ---- match --------------------------------------------------------------

    def start_match(
        self,
        job_ids: Optional[List[int]] = None,
        company_id: Optional[int] = None,
        rematch: bool = False,
        trigger: str = TRIGGER_MANUAL,
    ) -> MatchSession:
        """
        Queue a match session.

        Raises:
            SessionConflictError: a match session is already queued or running
            NothingToRunError: no job needs scoring in the requested scope
        """
        db = self.session_factory()
        try:
            selected = select_job_ids(db, job_ids=job_ids, company_id=company_id, rematch=rematch)
        finally:
            db.close()
        if not selected:
            raise NothingToRunError("No jobs to match")

        session = self.ledger.create_match_session(
            selected, trigger=trigger, company_id=company_id, exclusive=True
        )
        self._submit(self._match_lane, session.id, self._run_match, session.id)
        return session

    def enqueue_auto_match(self, scrape_session_id: str, job_ids: List[int]) -> MatchSession:
        """Queue a match run for jobs a scrape just added; waits behind any active match session."""
        scrape = self.ledger.get_session(ScrapeSession, scrape_session_id)
        trigger = TRIGGER_COMPANY_REFRESH if scrape.trigger == TRIGGER_COMPANY_REFRESH else TRIGGER_AUTO_SCRAPE
        company_ids = scrape.company_ids or []
        session = self.ledger.create_match_session(
            job_ids,
            trigger=trigger,
            company_id=company_ids[0] if len(company_ids) == 1 else None,
            scrape_session_id=scrape_session_id,
            exclusive=False,
        )
        logger.info(f"Auto-match session {session.id} queued for scrape {scrape_session_id}: {len(job_ids)} jobs")
        self._mirror(session.id)
        self._submit(self._match_lane, session.id, self._run_match, session.id)
        return session

    def stop_match(self, session_id: str) -> MatchSession:
        return self.ledger.request_stop(MatchSession, session_id)

    def _run_match(self, session_id: str) -> None:
        try:
            db = self.session_factory()
            try:
                settings = get_matcher_settings(db)
            finally:
                db.close()
            self.match_queue.run(session_id, settings)
        except Exception as e:
            logger.error(f"Match lane error for session {session_id}: {e}", exc_info=True)
            self.ledger.finish(MatchSession, session_id, FAILED, error_message=f"Matcher fault: {e}")
        finally:
            self._mirror(session_id)

    def _mirror(self, match_session_id: str) -> None:
        try:
            self.ledger.mirror_match_into_scrape_logs(match_session_id)
        except Exception as e:
            logger.error(f"Could not mirror match session {match_session_id} into scrape logs: {e}", exc_info=True)

    # ---- lanes --------------------------------------------------------------

    def _submit(self, lane: ThreadPoolExecutor, session_id: str, fn, *args) -> Future:
        future = lane.submit(fn, *args)
        with self._futures_lock:
            self._futures[session_id] = future
        future.add_done_callback(lambda _f: self._forget(session_id, _f))
        return future

    def _forget(self, session_id: str, future: Future) -> None:
        with self._futures_lock:
            if self._futures.get(session_id) is future:
                del self._futures[session_id]

    def wait(self, session_id: str, timeout: Optional[float] = None) -> None:
        """Block until a submitted session's lane work is done."""
        with self._futures_lock:
            future = self._futures.get(session_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """
        Cancel running sessions, fail queued ones and drop their pending lane
        work, so nothing starts after shutdown begins.
        """
        for model in (ScrapeSession, MatchSession):
            rows, _ = self.ledger.list_sessions(model, page=1, page_size=100, status="queued")
            for row in rows:
                try:
                    self.ledger.request_stop(model, row.id, reason=SHUTTING_DOWN)
                except SessionError as e:
                    logger.info(f"Queued session {row.id} already settled at shutdown: {e}")
                    continue
                if model is MatchSession:
                    self._mirror(row.id)
            rows, _ = self.ledger.list_sessions(model, page=1, page_size=100, status="in_progress")
            for row in rows:
                self.ledger.token_for(row.id).cancel(SHUTTING_DOWN)
        self._scrape_lane.shutdown(wait=wait, cancel_futures=True)
        self._match_lane.shutdown(wait=wait, cancel_futures=True)
        logger.info("Session runner stopped")


_runner: Optional[SessionRunner] = None
_runner_lock = threading.Lock()


def get_session_runner() -> SessionRunner:
    """Process-wide runner backed by the application database."""
    global _runner
    with _runner_lock:
        if _runner is None:
            from app.db.session import SessionLocal
            _runner = SessionRunner(SessionLocal)
        return _runner
