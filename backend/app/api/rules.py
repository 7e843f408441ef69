"""Commission rules API: list, create, update, deactivate, delete, attach bonuses."""
import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user, verify_tenant_access
from app.models.commission import RuleType, RuleStatus
from app.schemas.commission import CommissionRuleCreate, CommissionRuleUpdate, RuleFilters
from app.services.rule_store import CommissionRuleService, serialize_rule

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/commission/rules", tags=["commission-rules"])


@router.get("")
def list_rules(
    tenant_id: str = Query(...),
    insurer_id: Optional[int] = None,
    product_id: Optional[int] = None,
    lob: Optional[int] = None,
    status_filter: Optional[RuleStatus] = Query(None, alias="status"),
    rule_type: Optional[RuleType] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List rules with sub-components and their IRDAI-capped rate. Status defaults to Active."""
    verify_tenant_access(current_user, tenant_id)
    filters = RuleFilters(
        insurer_id=insurer_id,
        product_id=product_id,
        lob_id=lob,
        status=status_filter,
        rule_type=rule_type,
    )
    return CommissionRuleService(db).list_rules_with_compliance(tenant_id, filters)


@router.get("/{rule_id}")
def get_rule(
    rule_id: int,
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    rule = CommissionRuleService(db).get_rule(tenant_id, rule_id)
    return serialize_rule(rule)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_rule(
    rule_data: CommissionRuleCreate,
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    rule = CommissionRuleService(db).create_rule(tenant_id, rule_data, current_user.id)
    logger.info(f"Rule {rule.rule_id} created by {current_user.id} for tenant {tenant_id}")
    return {
        "success": True,
        "rule_id": rule.rule_id,
        "message": "Commission rule created successfully",
    }


@router.put("/{rule_id}")
def update_rule(
    rule_id: int,
    update_data: CommissionRuleUpdate,
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    CommissionRuleService(db).update_rule(tenant_id, rule_id, update_data, current_user.id)
    logger.info(f"Rule {rule_id} updated by {current_user.id} for tenant {tenant_id}")
    return {"success": True, "message": "Commission rule updated successfully"}


@router.patch("/{rule_id}/deactivate")
def deactivate_rule(
    rule_id: int,
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    rule = CommissionRuleService(db).deactivate_rule(tenant_id, rule_id, current_user.id)
    return {
        "success": True,
        "status": rule.status,
        "message": "Commission rule deactivated successfully",
    }


@router.delete("/{rule_id}")
def delete_rule(
    rule_id: int,
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    verify_tenant_access(current_user, tenant_id)
    CommissionRuleService(db).delete_rule(tenant_id, rule_id, current_user.id)
    logger.info(f"Rule {rule_id} deleted by {current_user.id} for tenant {tenant_id}")
    return {"success": True, "message": "Commission rule deleted successfully"}


@router.post("/{rule_id}/{bonus_type}", status_code=status.HTTP_201_CREATED)
def add_bonus(
    rule_id: int,
    bonus_type: str,
    bonus_data: dict = Body(...),
    tenant_id: str = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Attach a renewal, business-bonus, tier or campaign row to a rule."""
    verify_tenant_access(current_user, tenant_id)
    row = CommissionRuleService(db).add_bonus(tenant_id, rule_id, bonus_type, bonus_data, current_user.id)
    return {
        "success": True,
        "id": row.id,
        "message": f"{bonus_type} bonus added successfully",
    }
