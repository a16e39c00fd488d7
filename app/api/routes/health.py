"""
Health check endpoint for deployment monitoring.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_runner
from app.core.clock import utcnow
from app.db.models.match_session import MatchSession
from app.db.models.scrape_session import ScrapeSession
from app.services.session_runner import SessionRunner

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check(db: Session = Depends(get_db), runner: SessionRunner = Depends(get_runner)):
    """
    Health check endpoint for deployment monitoring.

    Reports database connectivity, whether a scrape or match session is
    active, and the state of each AI provider circuit breaker.
    """
    status = "healthy"

    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"
        status = "degraded"

    sessions = {}
    if db_status == "connected":
        sessions = {
            "scrape_active": runner.ledger.has_active(ScrapeSession, db),
            "match_active": runner.ledger.has_active(MatchSession, db),
        }

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "sessions": sessions,
        "circuit_breakers": runner.breakers.snapshot(),
        "version": "1.0.0",
    }
