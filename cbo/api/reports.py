from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cbo.core.dependencies import get_current_actor
from cbo.db.base import get_db
from cbo.schemas.report import InterestReportResponse, OrganizationSummaryResponse
from cbo.services.accounting import get_interest_report, get_organization_summary
from cbo.services.rbac import Actor

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/summary", response_model=OrganizationSummaryResponse)
def get_summary(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Member, savings and loan portfolio totals."""
    return get_organization_summary(db, actor)


@router.get("/interest", response_model=InterestReportResponse)
def get_interest(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Interest due, received and pending per approved loan."""
    return InterestReportResponse.from_report(get_interest_report(db, actor))
