"""
Scrape session ledger: one row per run plus one log row per company.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class ScrapeSession(Base):
    __tablename__ = "scrape_sessions"

    id = Column(String, primary_key=True)
    trigger = Column(String, nullable=False, default="manual")  # "manual", "scheduled", "company_refresh"
    status = Column(String, nullable=False, default="queued", index=True)
    company_ids = Column(JSON, nullable=True)  # companies selected at start, in scrape order

    companies_total = Column(Integer, nullable=False, default=0)
    companies_completed = Column(Integer, nullable=False, default=0)
    jobs_found = Column(Integer, nullable=False, default=0)
    jobs_added = Column(Integer, nullable=False, default=0)
    jobs_updated = Column(Integer, nullable=False, default=0)
    jobs_filtered = Column(Integer, nullable=False, default=0)
    jobs_archived = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    logs = relationship(
        "ScrapeLog",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ScrapeLog.id",
    )

    def __repr__(self):
        return f"<ScrapeSession(id='{self.id}', status='{self.status}')>"


class ScrapeLog(Base):
    __tablename__ = "scrape_logs"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("scrape_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    company_name = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    status = Column(String, nullable=False)  # "success", "failed", "stopped"

    jobs_found = Column(Integer, nullable=False, default=0)
    jobs_added = Column(Integer, nullable=False, default=0)
    jobs_updated = Column(Integer, nullable=False, default=0)
    jobs_filtered = Column(Integer, nullable=False, default=0)
    jobs_archived = Column(Integer, nullable=False, default=0)
    added_job_ids = Column(JSON, nullable=True)

    error_type = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    # Mirrored from the auto-match run that scored this company's new jobs
    matcher_status = Column(String, nullable=True)
    matcher_jobs_total = Column(Integer, nullable=True)
    matcher_jobs_completed = Column(Integer, nullable=True)
    matcher_error_count = Column(Integer, nullable=True)
    matcher_duration_ms = Column(Integer, nullable=True)

    session = relationship("ScrapeSession", back_populates="logs")

    __table_args__ = (
        Index("idx_scrape_logs_session_company", "session_id", "company_id"),
    )
