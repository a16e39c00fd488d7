"""
CandidateProfile model: the single profile every job is scored against.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON

from app.core.clock import utcnow
from app.db.base import Base


class CandidateProfile(Base):
    __tablename__ = "candidate_profiles"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=True)
    headline = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    skills = Column(JSON, nullable=True)  # list of skill names
    experience = Column(Text, nullable=True)
    preferences = Column(Text, nullable=True)  # free-text role/location preferences
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
