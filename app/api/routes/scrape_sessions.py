"""
Scrape session endpoints.

Start, stop, poll, inspect and delete scrape sessions. Sessions run in the
background; clients poll ``GET /scrape-sessions/{id}`` for progress.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import get_runner
from app.db.models.scrape_session import ScrapeSession
from app.schemas.session import (
    StartScrapeRequest,
    ScrapeSessionResponse,
    ScrapeSessionListResponse,
    ScrapeLogResponse,
)
from app.services.session_ledger import (
    InvalidTransitionError,
    SessionActiveError,
    SessionConflictError,
    SessionNotFoundError,
)
from app.services.session_runner import SCRAPE_TRIGGERS, NothingToRunError, SessionRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scrape-sessions", tags=["Scrape Sessions"])


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Scrape session {session_id} not found"
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=ScrapeSessionResponse)
def start_scrape_session(
    request: StartScrapeRequest,
    runner: SessionRunner = Depends(get_runner)
):
    """
    Queue a scrape session.

    Scrapes the given companies, or every active company when none are
    given. Rejected with 409 while another scrape session is queued or
    running.
    """
    if request.trigger not in SCRAPE_TRIGGERS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"trigger must be one of: {', '.join(SCRAPE_TRIGGERS)}"
        )
    try:
        return runner.start_scrape(company_ids=request.company_ids, trigger=request.trigger)
    except SessionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NothingToRunError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to start scrape session: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start scrape session"
        )


@router.get("", response_model=ScrapeSessionListResponse)
def list_scrape_sessions(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    runner: SessionRunner = Depends(get_runner)
):
    """Scrape session history, newest first."""
    rows, total = runner.ledger.list_sessions(ScrapeSession, page=page, page_size=page_size, status=status_filter)
    return ScrapeSessionListResponse(
        sessions=[ScrapeSessionResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{session_id}", response_model=ScrapeSessionResponse)
def get_scrape_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    """Poll a scrape session's status and counters."""
    try:
        return runner.ledger.get_session(ScrapeSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.get("/{session_id}/logs", response_model=list[ScrapeLogResponse])
def get_scrape_session_logs(session_id: str, runner: SessionRunner = Depends(get_runner)):
    """Per-company results of a scrape session, in the order they were recorded."""
    try:
        return runner.ledger.get_logs(ScrapeSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/{session_id}/stop", response_model=ScrapeSessionResponse)
def stop_scrape_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    """
    Stop a queued or running scrape session.

    The session is failed right away; the company being scraped finishes
    and is recorded before the worker exits.
    """
    try:
        return runner.stop_scrape(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_scrape_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    """Delete a finished scrape session and its logs."""
    try:
        runner.ledger.delete_session(ScrapeSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except SessionActiveError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
