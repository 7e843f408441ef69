from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user, verify_tenant_access
from app.services.reporting import CommissionReportService
from app.services.report_pdf import generate_commission_report_pdf

router = APIRouter(prefix="/api/v1/commission/reports", tags=["commission-reports"])


@router.get("")
def get_commission_report(
    tenant_id: str = Query(...),
    period: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Settled commission by LOB and rule type.
    Period: YYYY-Qn, YYYY-MM or YYYY (default: current quarter).
    """
    verify_tenant_access(current_user, tenant_id)
    return CommissionReportService(db).get_commission_report(tenant_id, period)


@router.get("/pdf")
def download_commission_report(
    tenant_id: str = Query(...),
    period: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    report = CommissionReportService(db).get_commission_report(tenant_id, period)
    pdf_bytes = generate_commission_report_pdf(report)
    filename = f"commission_report_{tenant_id}_{report['period']}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
