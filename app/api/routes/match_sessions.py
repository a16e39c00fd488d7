"""
Match session endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import get_runner
from app.db.models.match_session import MatchSession
from app.schemas.session import (
    StartMatchRequest,
    MatchSessionResponse,
    MatchSessionListResponse,
    MatchLogResponse,
)
from app.services.session_ledger import (
    InvalidTransitionError,
    SessionActiveError,
    SessionConflictError,
    SessionNotFoundError,
)
from app.services.session_runner import NothingToRunError, SessionRunner, TRIGGER_AUTO_SCRAPE, MATCH_TRIGGERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/match-sessions", tags=["Match Sessions"])


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Match session {session_id} not found"
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=MatchSessionResponse)
def start_match_session(
    request: StartMatchRequest,
    runner: SessionRunner = Depends(get_runner)
):
    """
    Queue a match session.

    Targets the given job ids, or the jobs of one company, or by default
    every non-archived job without a score. ``rematch`` includes jobs that
    were already scored.
    """
    if request.trigger not in MATCH_TRIGGERS or request.trigger == TRIGGER_AUTO_SCRAPE:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="trigger must be manual or company_refresh"
        )
    try:
        return runner.start_match(
            job_ids=request.job_ids,
            company_id=request.company_id,
            rematch=request.rematch,
            trigger=request.trigger,
        )
    except SessionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NothingToRunError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to start match session: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start match session"
        )


@router.get("", response_model=MatchSessionListResponse)
def list_match_sessions(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    runner: SessionRunner = Depends(get_runner)
):
    rows, total = runner.ledger.list_sessions(MatchSession, page=page, page_size=page_size, status=status_filter)
    return MatchSessionListResponse(
        sessions=[MatchSessionResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{session_id}", response_model=MatchSessionResponse)
def get_match_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    try:
        return runner.ledger.get_session(MatchSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.get("/{session_id}/logs", response_model=list[MatchLogResponse])
def get_match_session_logs(session_id: str, runner: SessionRunner = Depends(get_runner)):
    try:
        return runner.ledger.get_logs(MatchSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/{session_id}/stop", response_model=MatchSessionResponse)
def stop_match_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    """Stop a match session; calls already sent to the provider finish and are recorded."""
    try:
        return runner.stop_match(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_match_session(session_id: str, runner: SessionRunner = Depends(get_runner)):
    try:
        runner.ledger.delete_session(MatchSession, session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except SessionActiveError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
