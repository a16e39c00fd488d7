"""
Company endpoints: the employers whose job boards are scraped.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_runner
from app.core.clock import utcnow
from app.db.models.company import Company
from app.schemas.company import CompanyCreate, CompanyUpdate, CompanyResponse
from app.schemas.session import ScrapeSessionResponse
from app.scraper.platforms.detection import detect_platform
from app.services.session_ledger import SessionConflictError
from app.services.session_runner import TRIGGER_COMPANY_REFRESH, NothingToRunError, SessionRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["Companies"])


def get_company_or_404(company_id: int, db: Session) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found"
        )
    return company


@router.get("", response_model=list[CompanyResponse])
def list_companies(db: Session = Depends(get_db)):
    return db.query(Company).order_by(Company.id).all()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CompanyResponse)
def create_company(request: CompanyCreate, db: Session = Depends(get_db)):
    """
    Add a company.

    When no platform is given it is detected from the careers URL.
    """
    company = Company(
        name=request.name.strip(),
        careers_url=request.careers_url.strip(),
        platform=request.platform or detect_platform(request.careers_url),
        board_token=request.board_token,
        is_active=request.is_active,
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info(f"Company created: id={company.id}, name={company.name}, platform={company.platform}")
    return company


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(company_id: int, db: Session = Depends(get_db)):
    return get_company_or_404(company_id, db)


@router.patch("/{company_id}", response_model=CompanyResponse)
def update_company(company_id: int, request: CompanyUpdate, db: Session = Depends(get_db)):
    company = get_company_or_404(company_id, db)
    changes = request.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(company, field, value)

    # A new URL without an explicit platform means the old platform may be wrong
    if "careers_url" in changes and "platform" not in changes:
        company.platform = detect_platform(company.careers_url)
        if "board_token" not in changes:
            company.board_token = None

    company.updated_at = utcnow()
    db.commit()
    db.refresh(company)
    logger.info(f"Company updated: id={company.id}, fields={sorted(changes)}")
    return company


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(company_id: int, db: Session = Depends(get_db)):
    """Delete a company and its job postings. Session history keeps the company name."""
    company = get_company_or_404(company_id, db)
    db.delete(company)
    db.commit()
    logger.info(f"Company deleted: id={company_id}")


@router.post("/{company_id}/refresh", status_code=status.HTTP_202_ACCEPTED, response_model=ScrapeSessionResponse)
def refresh_company(
    company_id: int,
    db: Session = Depends(get_db),
    runner: SessionRunner = Depends(get_runner)
):
    """Scrape one company now; new jobs are matched afterwards when auto-match is on."""
    get_company_or_404(company_id, db)
    try:
        return runner.start_scrape(company_ids=[company_id], trigger=TRIGGER_COMPANY_REFRESH)
    except SessionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NothingToRunError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Company is not active"
        )
