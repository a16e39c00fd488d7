"""
Scrape orchestrator: runs one scrape session across its companies.

Companies are processed one at a time in id order. Each company's result
is committed and logged before the next one starts, so pollers see
progress and a later failure never loses earlier work. Cancellation is
checked between companies, never mid-company.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.db.models.company import Company
from app.db.models.job_posting import JobPosting
from app.db.models.scrape_session import ScrapeSession
from app.resilience.errors import OrchestrationError, format_error_message
from app.scraper.registry import AdapterRegistry
from app.services.job_differ import JobDiffer
from app.services.job_filters import JobFilters
from app.services.session_ledger import COMPLETED, FAILED, CompanyOutcome, SessionLedger
from app.services.settings_service import ScraperSettings

logger = logging.getLogger(__name__)


@dataclass
class CompanyTarget:
    """Detached copy of a company for the adapter; no DB session is held during network calls."""
    id: int
    name: str
    careers_url: str
    platform: Optional[str]
    board_token: Optional[str]


@dataclass
class ScrapeRunResult:
    status: str
    added_job_ids: List[int] = field(default_factory=list)


class ScrapeOrchestrator:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ledger: SessionLedger,
        registry: AdapterRegistry,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.registry = registry
        self.clock = clock

    def run(self, session_id: str, settings: ScraperSettings) -> ScrapeRunResult:
        """Run a queued scrape session to a terminal state."""
        if not self.ledger.begin(ScrapeSession, session_id):
            return ScrapeRunResult(status=FAILED)

        session = self.ledger.get_session(ScrapeSession, session_id)
        company_ids = list(session.company_ids or [])
        token = self.ledger.token_for(session_id)
        differ = JobDiffer(JobFilters.from_settings(settings))
        added_job_ids: List[int] = []
        logger.info(f"Scrape session {session_id} started: {len(company_ids)} companies")

        try:
            for company_id in company_ids:
                if token.cancelled:
                    break
                outcome = self._scrape_company(company_id, differ)
                self.ledger.record_company_result(session_id, outcome)
                added_job_ids.extend(outcome.added_job_ids)
        except Exception as e:
            logger.error(f"Scrape session {session_id} aborted: {e}", exc_info=True)
            self.ledger.finish(ScrapeSession, session_id, FAILED, error_message=f"Scraper fault: {format_error_message(e)}")
            return ScrapeRunResult(status=FAILED, added_job_ids=added_job_ids)

        row = None if token.cancelled else self.ledger.finish(ScrapeSession, session_id, COMPLETED)
        if row is None or row.status == FAILED:
            row = self.ledger.append_stopped_log(ScrapeSession, session_id, token.reason)
            logger.info(f"Scrape session {session_id} stopped after {row.companies_completed}/{row.companies_total} companies")
        else:
            logger.info(
                f"Scrape session {session_id} completed: found={row.jobs_found} added={row.jobs_added} "
                f"updated={row.jobs_updated} filtered={row.jobs_filtered} archived={row.jobs_archived}"
            )
        return ScrapeRunResult(status=row.status, added_job_ids=added_job_ids)

    def _load_target(self, company_id: int) -> Optional[CompanyTarget]:
        db = self.session_factory()
        try:
            company = db.get(Company, company_id)
            if company is None:
                return None
            return CompanyTarget(
                id=company.id,
                name=company.name,
                careers_url=company.careers_url,
                platform=company.platform,
                board_token=company.board_token,
            )
        finally:
            db.close()

    def _scrape_company(self, company_id: int, differ: JobDiffer) -> CompanyOutcome:
        started_at = utcnow()
        started = self.clock()
        target = self._load_target(company_id)
        if target is None:
            return CompanyOutcome(
                company_id=None,
                company_name=f"#{company_id}",
                platform=None,
                status="failed",
                error_type="not_found",
                error_message="Company no longer exists",
                started_at=started_at,
                duration_ms=0,
            )

        platform = self.registry.resolve_platform(target)
        try:
            discovery = self.registry.adapter_for(target).discover(target)
        except OrchestrationError as e:
            logger.warning(f"Company {target.name} ({platform}) failed: {e}")
            return self._failed(target, platform, e.error_type.value, format_error_message(e), started_at, started)
        except Exception as e:
            logger.error(f"Unexpected adapter error for {target.name}: {e}", exc_info=True)
            return self._failed(target, platform, "unknown", format_error_message(e), started_at, started)

        db = self.session_factory()
        try:
            company = db.get(Company, company_id)
            if company is None:
                # Deleted while its board was being fetched
                logger.warning(f"Company {target.name} was deleted during its scrape; results discarded")
                outcome = self._failed(target, platform, "not_found", "Company no longer exists", started_at, started)
                outcome.company_id = None
                return outcome
            existing = db.query(JobPosting).filter(JobPosting.company_id == company_id).all()
            diff = differ.apply(db, company_id, discovery.postings, existing, discovery.listing_complete)
            company.last_scraped_at = utcnow()
            if company.platform is None:
                company.platform = platform
            if discovery.detected_board_token and not company.board_token:
                company.board_token = discovery.detected_board_token
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        return CompanyOutcome(
            company_id=target.id,
            company_name=target.name,
            platform=platform,
            status="success",
            counts=diff.as_counts(),
            added_job_ids=diff.added_job_ids,
            started_at=started_at,
            duration_ms=int((self.clock() - started) * 1000),
        )

    def _failed(self, target: CompanyTarget, platform: str, error_type: str, message: str, started_at, started) -> CompanyOutcome:
        return CompanyOutcome(
            company_id=target.id,
            company_name=target.name,
            platform=platform,
            status="failed",
            error_type=error_type,
            error_message=message,
            started_at=started_at,
            duration_ms=int((self.clock() - started) * 1000),
        )
