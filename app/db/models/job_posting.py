"""
JobPosting model for openings discovered on a company's job board.

``external_id`` is the platform-native id and the dedup key within a company.
Postings are soft-archived, never deleted by a scrape.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, Index, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base

JOB_STATUSES = ("new", "viewed", "interested", "applied", "rejected", "archived")


class JobPosting(Base):
    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String, nullable=False)

    # Posting details
    title = Column(String, nullable=False)
    url = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    description_format = Column(String, nullable=False, default="plain")  # "markdown", "plain", "html"
    location = Column(String, nullable=True)
    location_type = Column(String, nullable=True)  # "remote", "hybrid", "onsite"
    department = Column(String, nullable=True)
    salary = Column(String, nullable=True)
    employment_type = Column(String, nullable=True)
    posted_date = Column(DateTime, nullable=True)
    content_hash = Column(String, nullable=False)

    # Lifecycle
    status = Column(String, nullable=False, default="new", index=True)
    status_before_archive = Column(String, nullable=True)  # set only when a scrape archived the posting
    archived_at = Column(DateTime, nullable=True)

    # Match results
    match_score = Column(Float, nullable=True, index=True)
    match_reasons = Column(JSON, nullable=True)
    matched_skills = Column(JSON, nullable=True)
    missing_skills = Column(JSON, nullable=True)
    recommendations = Column(JSON, nullable=True)
    matched_at = Column(DateTime, nullable=True)

    # Timestamps
    discovered_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    last_seen_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    company = relationship("Company", back_populates="jobs")

    __table_args__ = (
        UniqueConstraint("company_id", "external_id", name="uq_job_company_external"),
        Index("idx_job_company_status", "company_id", "status"),
    )

    def __repr__(self):
        return f"<JobPosting(id={self.id}, external_id='{self.external_id}', title='{self.title}')>"
