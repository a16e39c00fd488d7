"""
Database models module.

All models are imported here so they are registered with Base.metadata
before table creation and migrations.
"""
from app.db.models.company import Company
from app.db.models.job_posting import JobPosting
from app.db.models.scrape_session import ScrapeSession, ScrapeLog
from app.db.models.match_session import MatchSession, MatchLog
from app.db.models.setting import Setting
from app.db.models.candidate_profile import CandidateProfile

__all__ = [
    "Company",
    "JobPosting",
    "ScrapeSession",
    "ScrapeLog",
    "MatchSession",
    "MatchLog",
    "Setting",
    "CandidateProfile",
]
