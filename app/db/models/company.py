"""
Company model: a tracked employer and where its openings are published.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base

PLATFORMS = ("greenhouse", "lever", "ashby", "workday", "eightfold", "uber", "custom")


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    careers_url = Column(String, nullable=False)
    platform = Column(String, nullable=True)  # None = detect from careers_url at scrape time
    board_token = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_scraped_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    jobs = relationship("JobPosting", back_populates="company", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_companies_active", "is_active"),
    )

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}', platform='{self.platform}')>"
