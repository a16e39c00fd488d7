"""
Match queue: drains a match session's jobs through the AI provider.

Units of work (one job, or a batch of jobs in bulk mode) are dispatched in
the order selected, through a bounded concurrency limiter. Each provider
call runs inside the retry policy, and the whole retried call counts as one
success or failure for the provider's circuit breaker. Results are written
through the session ledger as soon as each unit finishes.

Serialize mode caps concurrency at one and spaces dispatches by the
configured inter-request delay; it composes with bulk mode (batches are
then sent one at a time).
"""
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.models.candidate_profile import CandidateProfile
from app.db.models.job_posting import JobPosting
from app.db.models.match_session import MatchSession
from app.llm.match_scorer import JobSnapshot, MatchResult, MatchScorer, ProfileSnapshot
from app.resilience.cancellation import CancellationToken
from app.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from app.resilience.errors import (
    CircuitBreakerOpenError,
    ErrorType,
    categorize_error,
    format_error_message,
)
from app.resilience.limiter import ConcurrencyLimiter
from app.resilience.retry import Retrier, RetryPolicy
from app.services.session_ledger import COMPLETED, FAILED, JobOutcome, SessionLedger
from app.services.settings_service import MatcherSettings

logger = logging.getLogger(__name__)

MISSING_RESULT_MESSAGE = "AI did not return match result"


def chunk(items: list, size: int) -> List[list]:
    return [items[i:i + size] for i in range(0, len(items), max(1, size))]


class MatchQueue:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ledger: SessionLedger,
        scorer: MatchScorer,
        breakers: CircuitBreakerRegistry,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.scorer = scorer
        self.breakers = breakers
        self.clock = clock

    def run(self, session_id: str, settings: MatcherSettings) -> None:
        """Run a queued match session to a terminal state."""
        if not self.ledger.begin(MatchSession, session_id):
            return
        logger.info(
            f"Match session {session_id} started: model={settings.model}, "
            f"concurrency={settings.effective_concurrency}, batch_size={settings.effective_batch_size}"
        )
        try:
            self._run(session_id, settings)
        except Exception as e:
            logger.error(f"Match session {session_id} aborted: {e}", exc_info=True)
            self.ledger.finish(MatchSession, session_id, FAILED, error_message=f"Matcher fault: {format_error_message(e)}")

    def _run(self, session_id: str, settings: MatcherSettings) -> None:
        token = self.ledger.token_for(session_id)
        session = self.ledger.get_session(MatchSession, session_id)
        jobs, missing_ids = self._load_jobs(session.job_ids or [])
        profile = self._load_profile()

        if profile is None:
            self.ledger.finish(MatchSession, session_id, FAILED, error_message="No candidate profile configured")
            return

        for job_id in missing_ids:
            self.ledger.record_match_result(session_id, JobOutcome(
                job_id=job_id,
                job_title=None,
                company_name=None,
                success=False,
                error_type=ErrorType.VALIDATION.value,
                error_message="Job no longer exists",
            ))

        breaker = self.breakers.get(
            self.scorer.provider_name,
            failure_threshold=settings.circuit_breaker_threshold,
            reset_timeout_ms=settings.circuit_breaker_reset_timeout_ms,
        )
        retrier = Retrier(
            policy=RetryPolicy(
                max_attempts=settings.max_retries,
                base_delay_ms=settings.backoff_base_delay_ms,
                max_delay_ms=settings.backoff_max_delay_ms,
            ),
            name=f"match {session_id[:8]}",
        )
        limiter = ConcurrencyLimiter(settings.effective_concurrency)
        dispatch_delay = settings.inter_request_delay_ms / 1000 if settings.serialize_operations else 0.0

        futures: List[Future] = []
        dispatched = 0
        with ThreadPoolExecutor(max_workers=limiter.limit, thread_name_prefix=f"match-{session_id[:8]}") as pool:
            for unit in chunk(jobs, settings.effective_batch_size):
                if token.cancelled or not limiter.acquire(token):
                    break

                if breaker.is_open():
                    limiter.release()
                    self._record_failure(
                        session_id, unit, CircuitBreakerOpenError(breaker.name), attempts=0,
                        duration_ms=0, model=settings.model,
                    )
                    continue

                if dispatched and dispatch_delay and token.wait(dispatch_delay):
                    limiter.release()
                    break

                future = pool.submit(self._process_unit, session_id, unit, profile, settings, breaker, retrier, token)
                future.add_done_callback(lambda _f: limiter.release())
                futures.append(future)
                dispatched += 1

        # A ledger write failing inside a worker is an orchestrator fault
        for future in futures:
            error = future.exception()
            if error is not None:
                raise error

        row = None if token.cancelled else self.ledger.finish(MatchSession, session_id, COMPLETED)
        if row is None or row.status == FAILED:
            row = self.ledger.append_stopped_log(MatchSession, session_id, token.reason)
            logger.info(f"Match session {session_id} stopped after {row.jobs_completed}/{row.jobs_total} jobs")
        else:
            logger.info(
                f"Match session {session_id} completed: succeeded={row.jobs_succeeded}, failed={row.jobs_failed}"
            )

    def _process_unit(
        self,
        session_id: str,
        unit: List[JobSnapshot],
        profile: ProfileSnapshot,
        settings: MatcherSettings,
        breaker: CircuitBreaker,
        retrier: Retrier,
        token: CancellationToken,
    ) -> None:
        started = self.clock()
        if len(unit) == 1:
            job = unit[0]
            operation = lambda: self.scorer.score(job, profile, settings.model, settings.timeout_ms)  # noqa: E731
        else:
            operation = lambda: self.scorer.score_batch(unit, profile, settings.model, settings.timeout_ms)  # noqa: E731

        try:
            outcome = breaker.call(retrier.run, operation, token, breaker.ensure_closed)
        except Exception as e:
            attempts = getattr(e, "attempts", 0 if isinstance(e, CircuitBreakerOpenError) else 1)
            self._record_failure(session_id, unit, e, attempts, self._elapsed_ms(started), settings.model)
            return

        duration_ms = self._elapsed_ms(started)
        if len(unit) == 1:
            results: Dict[int, MatchResult] = {unit[0].id: outcome.value}
        else:
            results = outcome.value

        for job in unit:
            result = results.get(job.id)
            if result is None:
                self.ledger.record_match_result(session_id, JobOutcome(
                    job_id=job.id,
                    job_title=job.title,
                    company_name=job.company_name,
                    success=False,
                    attempts=outcome.attempts,
                    error_type=ErrorType.NO_OBJECT.value,
                    error_message=MISSING_RESULT_MESSAGE,
                    duration_ms=duration_ms,
                    model_used=settings.model,
                ))
                continue
            self.ledger.record_match_result(session_id, JobOutcome(
                job_id=job.id,
                job_title=job.title,
                company_name=job.company_name,
                success=True,
                score=result.score,
                reasons=result.reasons,
                matched_skills=result.matched_skills,
                missing_skills=result.missing_skills,
                recommendations=result.recommendations,
                attempts=outcome.attempts,
                duration_ms=duration_ms,
                model_used=settings.model,
            ))
            logger.debug(f"Job {job.id} scored {result.score:.0f} in session {session_id}")

    def _record_failure(
        self,
        session_id: str,
        unit: List[JobSnapshot],
        error: BaseException,
        attempts: int,
        duration_ms: int,
        model: str,
    ) -> None:
        error_type = categorize_error(error)
        message = format_error_message(error)
        if error_type != ErrorType.CIRCUIT_BREAKER:
            logger.warning(f"Scoring failed for jobs {[job.id for job in unit]} ({error_type.value}): {message}")
        for job in unit:
            self.ledger.record_match_result(session_id, JobOutcome(
                job_id=job.id,
                job_title=job.title,
                company_name=job.company_name,
                success=False,
                attempts=attempts,
                error_type=error_type.value,
                error_message=message,
                duration_ms=duration_ms,
                model_used=model,
            ))

    def _elapsed_ms(self, started: float) -> int:
        return int((self.clock() - started) * 1000)

    def _load_jobs(self, job_ids: List[int]) -> Tuple[List[JobSnapshot], List[int]]:
        db = self.session_factory()
        try:
            rows = db.query(JobPosting).filter(JobPosting.id.in_(job_ids)).all() if job_ids else []
            by_id = {
                row.id: JobSnapshot(
                    id=row.id,
                    title=row.title,
                    company_name=row.company.name if row.company else None,
                    location=row.location,
                    location_type=row.location_type,
                    department=row.department,
                    salary=row.salary,
                    employment_type=row.employment_type,
                    description=row.description,
                )
                for row in rows
            }
        finally:
            db.close()
        jobs = [by_id[job_id] for job_id in job_ids if job_id in by_id]
        missing = [job_id for job_id in job_ids if job_id not in by_id]
        return jobs, missing

    def _load_profile(self) -> Optional[ProfileSnapshot]:
        db = self.session_factory()
        try:
            profile = db.query(CandidateProfile).order_by(CandidateProfile.id).first()
            if profile is None:
                return None
            return ProfileSnapshot(
                full_name=profile.full_name,
                headline=profile.headline,
                summary=profile.summary,
                skills=list(profile.skills or []),
                experience=profile.experience,
                preferences=profile.preferences,
            )
        finally:
            db.close()
