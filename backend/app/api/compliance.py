"""Compliance alerts, audit trail and dashboard."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user, verify_tenant_access
from app.services.audit import CommissionAuditService
from app.services.compliance import ComplianceService

router = APIRouter(prefix="/api/v1/commission", tags=["commission-compliance"])


@router.get("/compliance/alerts")
def get_compliance_alerts(
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active rules configured above the IRDAI cap."""
    verify_tenant_access(current_user, tenant_id)
    return {"alerts": ComplianceService(db).get_compliance_alerts(tenant_id)}


@router.get("/audit-log")
def get_audit_log(
    tenant_id: str = Query(...),
    rule_id: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    return {"audit_log": CommissionAuditService(db).get_audit_log(tenant_id, rule_id)}


@router.get("/dashboard")
def get_dashboard(
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    return ComplianceService(db).get_dashboard(tenant_id)
