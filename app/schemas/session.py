"""
Pydantic schemas for scrape and match session endpoints.
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class StartScrapeRequest(BaseModel):
    """Request to start a scrape session."""
    company_ids: Optional[List[int]] = Field(None, description="Companies to scrape; omit for every active company")
    trigger: str = Field("manual", description="Trigger source (manual, scheduled, company_refresh)")

    class Config:
        json_schema_extra = {
            "example": {
                "company_ids": [1, 4],
                "trigger": "manual"
            }
        }


class StartMatchRequest(BaseModel):
    """Request to start a match session."""
    job_ids: Optional[List[int]] = Field(None, description="Explicit jobs to score")
    company_id: Optional[int] = Field(None, description="Only score jobs of this company")
    rematch: bool = Field(False, description="Include jobs that already have a score")
    trigger: str = Field("manual", description="Trigger source (manual, company_refresh)")


class ScrapeSessionResponse(BaseModel):
    """Schema for scrape session status and counters."""
    id: str = Field(..., description="Session ID")
    trigger: str = Field(..., description="Trigger source")
    status: str = Field(..., description="queued, in_progress, completed or failed")
    company_ids: Optional[List[int]] = Field(None, description="Companies in scope")
    companies_total: int = Field(0, description="Companies selected")
    companies_completed: int = Field(0, description="Companies processed so far")
    jobs_found: int = 0
    jobs_added: int = 0
    jobs_updated: int = 0
    jobs_filtered: int = 0
    jobs_archived: int = 0
    error_message: Optional[str] = Field(None, description="Stop reason or orchestrator fault")
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": "4f0c1d2e9a8b4c7d9e6f5a4b3c2d1e0f",
                "trigger": "manual",
                "status": "in_progress",
                "company_ids": [1, 2, 3],
                "companies_total": 3,
                "companies_completed": 1,
                "jobs_found": 42,
                "jobs_added": 5,
                "jobs_updated": 2,
                "jobs_filtered": 10,
                "jobs_archived": 1,
                "error_message": None,
                "created_at": "2026-01-15T10:30:00",
                "started_at": "2026-01-15T10:30:01",
                "completed_at": None
            }
        }


class ScrapeLogResponse(BaseModel):
    """Schema for one company's outcome within a scrape session."""
    id: int
    company_id: Optional[int] = None
    company_name: Optional[str] = None
    platform: Optional[str] = None
    status: str = Field(..., description="success, failed or stopped")
    jobs_found: int = 0
    jobs_added: int = 0
    jobs_updated: int = 0
    jobs_filtered: int = 0
    jobs_archived: int = 0
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    matcher_status: Optional[str] = Field(None, description="Status of the auto-match run for this company's new jobs")
    matcher_jobs_total: Optional[int] = None
    matcher_jobs_completed: Optional[int] = None
    matcher_error_count: Optional[int] = None
    matcher_duration_ms: Optional[int] = None

    class Config:
        from_attributes = True


class MatchSessionResponse(BaseModel):
    """Schema for match session status and counters."""
    id: str = Field(..., description="Session ID")
    trigger: str = Field(..., description="Trigger source")
    status: str = Field(..., description="queued, in_progress, completed or failed")
    company_id: Optional[int] = Field(None, description="Company scope, if any")
    scrape_session_id: Optional[str] = Field(None, description="Scrape session that queued this run")
    jobs_total: int = 0
    jobs_completed: int = 0
    jobs_succeeded: int = 0
    jobs_failed: int = 0
    error_count: int = 0
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchLogResponse(BaseModel):
    """Schema for one job's outcome within a match session."""
    id: int
    job_id: Optional[int] = None
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    status: str = Field(..., description="success, failed or stopped")
    score: Optional[float] = None
    attempts: int = 0
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    model_used: Optional[str] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScrapeSessionListResponse(BaseModel):
    sessions: List[ScrapeSessionResponse]
    total: int
    page: int = 1
    page_size: int = 20


class MatchSessionListResponse(BaseModel):
    sessions: List[MatchSessionResponse]
    total: int
    page: int = 1
    page_size: int = 20
