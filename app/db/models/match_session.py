"""
Match session ledger: one row per AI scoring run plus one log row per job.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class MatchSession(Base):
    __tablename__ = "match_sessions"

    id = Column(String, primary_key=True)
    trigger = Column(String, nullable=False, default="manual")  # "manual", "auto_scrape", "company_refresh"
    status = Column(String, nullable=False, default="queued", index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    scrape_session_id = Column(String, ForeignKey("scrape_sessions.id", ondelete="SET NULL"), nullable=True, index=True)
    job_ids = Column(JSON, nullable=True)

    jobs_total = Column(Integer, nullable=False, default=0)
    jobs_completed = Column(Integer, nullable=False, default=0)
    jobs_succeeded = Column(Integer, nullable=False, default=0)
    jobs_failed = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    logs = relationship(
        "MatchLog",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="MatchLog.id",
    )

    def __repr__(self):
        return f"<MatchSession(id='{self.id}', status='{self.status}')>"


class MatchLog(Base):
    __tablename__ = "match_logs"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("match_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("job_postings.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot for display after the job changes or disappears
    job_title = Column(String, nullable=True)
    company_name = Column(String, nullable=True)

    status = Column(String, nullable=False)  # "success", "failed", "stopped"
    score = Column(Float, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    error_type = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    model_used = Column(String, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("MatchSession", back_populates="logs")

    __table_args__ = (
        Index("idx_match_logs_session_status", "session_id", "status"),
    )
