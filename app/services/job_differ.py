"""
Job differ: classifies a company's freshly discovered postings against the
ones already stored.

Each raw posting ends up filtered, added, updated or unchanged; stored
postings the board no longer lists are archived (soft, status only). The
differ writes through the given SQLAlchemy session and leaves the commit to
the caller so a company's results land in one transaction.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.db.models.job_posting import JobPosting
from app.scraper.platforms.base import RawPosting
from app.services.job_filters import JobFilters

logger = logging.getLogger(__name__)

ARCHIVED = "archived"

# Overwritten on update; status and match fields belong to the user and matcher
MUTABLE_FIELDS = (
    "title", "url", "description", "description_format", "location", "location_type",
    "department", "salary", "employment_type", "posted_date",
)


def content_hash(title: Optional[str], description: Optional[str], location: Optional[str], salary: Optional[str]) -> str:
    parts = [(value or "").strip() for value in (title, description, location, salary)]
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass
class DiffResult:
    found: int = 0
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    filtered: int = 0
    archived: int = 0
    added_job_ids: List[int] = field(default_factory=list)

    def as_counts(self) -> dict:
        return {
            "jobs_found": self.found,
            "jobs_added": self.added,
            "jobs_updated": self.updated,
            "jobs_filtered": self.filtered,
            "jobs_archived": self.archived,
        }


class JobDiffer:

    def __init__(self, filters: Optional[JobFilters] = None, clock: Callable = utcnow):
        self.filters = filters or JobFilters()
        self.clock = clock

    def apply(
        self,
        db: Session,
        company_id: int,
        postings: Iterable[RawPosting],
        existing: Iterable[JobPosting],
        listing_complete: bool = True,
    ) -> DiffResult:
        """
        Diff ``postings`` against ``existing`` and stage the writes on ``db``.

        Args:
            db: Session the inserts/updates are added to (not committed)
            company_id: Owner of every posting
            postings: Everything the adapter discovered for the company
            existing: Every stored posting of the company, archived ones included
            listing_complete: False skips archival (the adapter saw part of the board)
        """
        now = self.clock()
        result = DiffResult()
        by_external_id = {job.external_id: job for job in existing}
        seen = set()
        new_jobs: List[JobPosting] = []

        for posting in postings:
            result.found += 1
            if posting.external_id in seen:
                result.unchanged += 1
                continue
            # Filtered postings are still open on the board, so they count as seen
            seen.add(posting.external_id)

            if self.filters.is_active and not self.filters.accepts(posting.title, posting.location):
                result.filtered += 1
                continue

            digest = content_hash(posting.title, posting.description, posting.location, posting.salary)
            current = by_external_id.get(posting.external_id)

            if current is None:
                job = self._build_job(company_id, posting, digest, now)
                db.add(job)
                new_jobs.append(job)
                result.added += 1
                continue

            current.last_seen_at = now
            reopened = self._restore_if_archived_by_scrape(current)
            if current.content_hash != digest:
                for name in MUTABLE_FIELDS:
                    setattr(current, name, getattr(posting, name))
                current.content_hash = digest
                result.updated += 1
            elif reopened:
                result.updated += 1
            else:
                result.unchanged += 1

        if listing_complete:
            for job in by_external_id.values():
                if job.external_id in seen or job.status == ARCHIVED:
                    continue
                job.status_before_archive = job.status
                job.status = ARCHIVED
                job.archived_at = now
                result.archived += 1
        elif by_external_id:
            logger.info(f"Company {company_id}: partial listing, skipping archival")

        if new_jobs:
            db.flush()
            result.added_job_ids = [job.id for job in new_jobs]

        logger.info(
            f"Company {company_id} diff: found={result.found} added={result.added} "
            f"updated={result.updated} filtered={result.filtered} archived={result.archived}"
        )
        return result

    def _build_job(self, company_id: int, posting: RawPosting, digest: str, now) -> JobPosting:
        job = JobPosting(
            company_id=company_id,
            external_id=posting.external_id,
            content_hash=digest,
            status="new",
            discovered_at=now,
            last_seen_at=now,
        )
        for name in MUTABLE_FIELDS:
            setattr(job, name, getattr(posting, name))
        if not job.description_format:
            job.description_format = "plain"
        return job

    def _restore_if_archived_by_scrape(self, job: JobPosting) -> bool:
        # A user-archived posting has no status_before_archive and stays archived
        if job.status != ARCHIVED or not job.status_before_archive:
            return False
        job.status = job.status_before_archive
        job.status_before_archive = None
        job.archived_at = None
        return True
