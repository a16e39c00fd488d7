"""
Settings and candidate profile endpoints.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.clock import utcnow
from app.db.models.candidate_profile import CandidateProfile
from app.schemas.settings import ProfileResponse, ProfileUpdate, SettingsResponse, SettingsUpdate
from app.services.settings_service import UnknownSettingError, get_settings_snapshot, update_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Settings"])


@router.get("/settings", response_model=SettingsResponse)
def read_settings(db: Session = Depends(get_db)):
    """Effective value of every setting. Running sessions keep the values they started with."""
    return SettingsResponse(settings=get_settings_snapshot(db))


@router.put("/settings", response_model=SettingsResponse)
def write_settings(request: SettingsUpdate, db: Session = Depends(get_db)):
    try:
        return SettingsResponse(settings=update_settings(db, request.settings))
    except UnknownSettingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/profile", response_model=ProfileResponse)
def read_profile(db: Session = Depends(get_db)):
    profile = db.query(CandidateProfile).order_by(CandidateProfile.id).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No candidate profile configured"
        )
    return profile


@router.put("/profile", response_model=ProfileResponse)
def write_profile(request: ProfileUpdate, db: Session = Depends(get_db)):
    """Create or replace the candidate profile used for matching."""
    profile = db.query(CandidateProfile).order_by(CandidateProfile.id).first()
    if profile is None:
        profile = CandidateProfile()
        db.add(profile)
    for field, value in request.model_dump().items():
        setattr(profile, field, value)
    profile.updated_at = utcnow()
    db.commit()
    db.refresh(profile)
    logger.info(f"Candidate profile saved: {len(profile.skills or [])} skills")
    return profile
