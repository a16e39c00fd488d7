"""
Run one scheduled scrape session to completion (for cron or a systemd timer).
Run: python -m scripts.scheduled_scrape [--company-id 3 --company-id 7]

New jobs are scored afterwards when matcher_auto_match_after_scrape is on.
Exit code is 1 when the session could not start or ended failed.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import LOG_LEVEL
from app.core.logging_config import setup_logging
from app.db.init_db import init_db
from app.db.models.match_session import MatchSession
from app.db.models.scrape_session import ScrapeSession
from app.services.session_ledger import COMPLETED, SessionError
from app.services.session_runner import TRIGGER_SCHEDULED, get_session_runner
import logging

logger = logging.getLogger(__name__)


def run_scheduled_scrape(company_ids=None) -> bool:
    runner = get_session_runner()
    try:
        session = runner.start_scrape(company_ids=company_ids, trigger=TRIGGER_SCHEDULED)
    except SessionError as e:
        logger.error(f"Scheduled scrape not started: {e}")
        return False

    runner.wait(session.id)
    result = runner.ledger.get_session(ScrapeSession, session.id)
    logger.info(
        f"Scheduled scrape {result.id} {result.status}: "
        f"{result.companies_completed}/{result.companies_total} companies, {result.jobs_added} new jobs"
    )

    # Let the auto-match run finish before the process exits
    matches, _ = runner.ledger.list_sessions(MatchSession, page=1, page_size=5)
    for match in matches:
        if match.scrape_session_id == session.id:
            runner.wait(match.id)

    runner.shutdown(wait=True)
    return result.status == COMPLETED


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a scheduled scrape session")
    parser.add_argument("--company-id", type=int, action="append", dest="company_ids",
                        help="Limit the scrape to this company (repeatable)")
    args = parser.parse_args()

    setup_logging(LOG_LEVEL)
    init_db()
    get_session_runner().recover()

    if not run_scheduled_scrape(args.company_ids):
        sys.exit(1)
