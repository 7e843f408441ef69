from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal


class IrdaiCapCreate(BaseModel):
    lob_id: int
    policy_year: int = Field(1, ge=1)
    channel: Optional[str] = None
    product_category: Optional[str] = None
    max_commission_percent: Decimal = Field(..., ge=0, le=100)
    effective_from: date
    effective_to: Optional[date] = None
