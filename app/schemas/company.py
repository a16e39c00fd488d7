"""
Pydantic schemas for company endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.db.models.company import PLATFORMS


def _check_platform(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if value not in PLATFORMS:
        raise ValueError(f"platform must be one of: {', '.join(PLATFORMS)}")
    return value


class CompanyCreate(BaseModel):
    """Schema for adding a company to track."""
    name: str = Field(..., min_length=1, description="Display name")
    careers_url: str = Field(..., min_length=1, description="Careers page or job board URL")
    platform: Optional[str] = Field(None, description="Job board platform; detected from the URL when omitted")
    board_token: Optional[str] = Field(None, description="Board token/slug on the platform")
    is_active: bool = Field(True, description="Include in scrape sessions")

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, value):
        return _check_platform(value)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme",
                "careers_url": "https://boards.greenhouse.io/acme",
                "platform": None,
                "board_token": None,
                "is_active": True
            }
        }


class CompanyUpdate(BaseModel):
    """Schema for partial company updates."""
    name: Optional[str] = Field(None, min_length=1)
    careers_url: Optional[str] = Field(None, min_length=1)
    platform: Optional[str] = None
    board_token: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, value):
        return _check_platform(value)


class CompanyResponse(BaseModel):
    id: int
    name: str
    careers_url: str
    platform: Optional[str] = None
    board_token: Optional[str] = None
    is_active: bool
    last_scraped_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
