from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user, verify_tenant_access
from app.schemas.commission import CommissionCalculationRequest
from app.services.resolver import CommissionResolver

router = APIRouter(prefix="/api/v1/commission", tags=["commission-calculation"])


@router.post("/calculate")
def calculate_commission(
    calc_data: CommissionCalculationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Commission for one premium transaction.
    Pass ``settle: true`` with a ``policy_number`` to record the result in the ledger.
    """
    verify_tenant_access(current_user, calc_data.tenant_id)
    result = CommissionResolver(db).calculate(calc_data)
    return result.as_dict()
