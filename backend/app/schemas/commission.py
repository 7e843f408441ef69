from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import date
from decimal import Decimal
from app.models.commission import RuleType, RuleStatus


# ── Sub-components ──────────────────────────────────────────────────

class SlabIn(BaseModel):
    min_value: Decimal = Field(..., ge=0)
    max_value: Optional[Decimal] = Field(None, ge=0)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    slab_type: str = "Premium"


class CampaignIn(BaseModel):
    campaign_name: Optional[str] = None
    bonus_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None


class RenewalBonusIn(BaseModel):
    policy_year: int = Field(..., ge=1)
    renewal_rate: Decimal = Field(..., ge=0, le=100)


class BusinessBonusIn(BaseModel):
    min_gwp: Decimal = Field(..., ge=0)
    max_gwp: Optional[Decimal] = Field(None, ge=0)
    bonus_rate: Decimal = Field(..., ge=0, le=100)


class TierBonusIn(BaseModel):
    tier_name: str = Field(..., min_length=1)
    min_business: Decimal = Field(..., ge=0)
    max_business: Optional[Decimal] = Field(None, ge=0)
    extra_bonus: Decimal = Field(..., ge=0, le=100)


class CampaignBonusIn(BaseModel):
    campaign_name: str = Field(..., min_length=1)
    bonus_rate: Decimal = Field(..., ge=0, le=100)
    valid_from: date
    valid_to: date


# ── Rules ───────────────────────────────────────────────────────────

class CommissionRuleCreate(BaseModel):
    insurer_id: int
    product_id: int
    lob_id: int
    rule_type: RuleType
    base_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    channel: Optional[str] = None
    policy_year: int = Field(1, ge=1)
    valid_from: Optional[date] = None  # defaults to today
    valid_to: Optional[date] = None
    status: RuleStatus = RuleStatus.ACTIVE

    # Type-specific payloads
    slabs: Optional[List[SlabIn]] = None
    flat_amount: Optional[Decimal] = Field(None, ge=0)
    unit_type: str = "PerPolicy"
    campaign: Optional[CampaignIn] = None


class CommissionRuleUpdate(BaseModel):
    """Top-level fields only; sub-components change through the bonus endpoints"""
    model_config = ConfigDict(extra="forbid")

    base_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    channel: Optional[str] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    status: Optional[RuleStatus] = None


class RuleFilters(BaseModel):
    insurer_id: Optional[int] = None
    product_id: Optional[int] = None
    lob_id: Optional[int] = None
    status: Optional[RuleStatus] = None
    rule_type: Optional[RuleType] = None


# ── Calculation ─────────────────────────────────────────────────────

class CommissionCalculationRequest(BaseModel):
    tenant_id: str
    insurer_id: int
    product_id: int
    lob_id: Optional[int] = None  # falls back to the matched rule's LOB
    channel: Optional[str] = None
    policy_year: int = Field(1, ge=1)
    premium: Decimal = Field(..., ge=0)
    gwp_to_date: Optional[Decimal] = Field(None, ge=0)
    evaluation_date: Optional[date] = None  # defaults to today

    # Persist the result to the commission ledger
    settle: bool = False
    policy_number: Optional[str] = None
