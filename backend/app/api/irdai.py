import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user, require_system_admin
from app.schemas.irdai import IrdaiCapCreate
from app.services.caps import RegulatoryCapService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/commission/irdai", tags=["irdai"])


@router.get("/caps")
def list_caps(
    lob: Optional[str] = None,
    channel: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """IRDAI caps in force today, optionally by LOB name and channel."""
    service = RegulatoryCapService(db)
    return [service.serialize(cap) for cap in service.get_caps(lob, channel)]


@router.post("/caps", status_code=status.HTTP_201_CREATED)
def create_cap(
    cap_data: IrdaiCapCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a regulatory cap (system administrators only)."""
    require_system_admin(current_user)
    service = RegulatoryCapService(db)
    cap = service.add_cap(cap_data)
    logger.info(f"Cap {cap.cap_id} added by {current_user.id}")
    return service.serialize(cap)
