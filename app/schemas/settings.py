"""
Pydantic schemas for settings and candidate profile endpoints.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class SettingsResponse(BaseModel):
    """Every known setting with its effective (typed, clamped) value."""
    settings: Dict[str, Any] = Field(..., description="Setting key to effective value")

    class Config:
        json_schema_extra = {
            "example": {
                "settings": {
                    "matcher_model": "gpt-4o-mini",
                    "matcher_concurrency_limit": 3,
                    "matcher_bulk_enabled": False,
                    "scraper_filter_title_keywords": ["engineer"]
                }
            }
        }


class SettingsUpdate(BaseModel):
    """Settings to change; unknown keys are rejected."""
    settings: Dict[str, Any] = Field(..., description="Setting key to new value; null resets to default")


class ProfileUpdate(BaseModel):
    """Schema for replacing the candidate profile."""
    full_name: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = Field(None, description="Professional summary")
    skills: List[str] = Field(default_factory=list, description="Skill names")
    experience: Optional[str] = Field(None, description="Work history as free text")
    preferences: Optional[str] = Field(None, description="Preferred roles, locations, salary")

    @field_validator("skills", mode="before")
    @classmethod
    def coerce_skills(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class ProfileResponse(ProfileUpdate):
    id: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
