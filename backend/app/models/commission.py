from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class RuleType(str, enum.Enum):
    FIXED = "Fixed"
    SLAB = "Slab"
    FLAT = "Flat"
    CAMPAIGN = "Campaign"


class RuleStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class BonusType(str, enum.Enum):
    RENEWAL = "renewal"
    BUSINESS_BONUS = "business-bonus"
    TIER = "tier"
    CAMPAIGN = "campaign"


class CommissionRule(Base):
    """One configured commission policy for a (tenant, insurer, product, LOB) tuple"""
    __tablename__ = "commission_rules"

    rule_id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, nullable=False, index=True)

    insurer_id = Column(Integer, ForeignKey("insurance_providers.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("insurance_products.id"), nullable=False, index=True)
    lob_id = Column(Integer, ForeignKey("lines_of_business.id"), nullable=False, index=True)

    # Stored as plain strings; RuleType / RuleStatus are validated at the schema layer
    rule_type = Column(String, nullable=False)
    base_rate = Column(Numeric(7, 4), nullable=True)  # percentage, e.g. 12.5000
    channel = Column(String, nullable=True)  # null = any channel
    policy_year = Column(Integer, nullable=False, default=1)

    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)  # null = open-ended
    status = Column(String, nullable=False, default=RuleStatus.ACTIVE.value, index=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Master data
    insurer = relationship("InsuranceProvider")
    product = relationship("InsuranceProduct")
    lob = relationship("LineOfBusiness")

    # Sub-components
    slabs = relationship(
        "CommissionSlab", back_populates="rule", cascade="all, delete-orphan",
        order_by="CommissionSlab.min_value",
    )
    flat = relationship(
        "CommissionFlat", back_populates="rule", cascade="all, delete-orphan", uselist=False,
    )
    renewals = relationship("CommissionRenewal", back_populates="rule", cascade="all, delete-orphan")
    business_bonuses = relationship(
        "CommissionBusinessBonus", back_populates="rule", cascade="all, delete-orphan",
    )
    tiers = relationship("CommissionTier", back_populates="rule", cascade="all, delete-orphan")
    time_bonuses = relationship(
        "CommissionTimeBonus", back_populates="rule", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_commission_rules_lookup", "tenant_id", "insurer_id", "product_id", "policy_year"),
    )


class CommissionSlab(Base):
    """Premium bracket [min_value, max_value) with its own rate"""
    __tablename__ = "commission_slabs"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, index=True)
    min_value = Column(Numeric(14, 2), nullable=False)
    max_value = Column(Numeric(14, 2), nullable=True)  # null = no upper bound
    rate = Column(Numeric(7, 4), nullable=False)
    slab_type = Column(String, nullable=False, default="Premium")

    rule = relationship("CommissionRule", back_populates="slabs")


class CommissionFlat(Base):
    __tablename__ = "commission_flat"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, unique=True)
    flat_amount = Column(Numeric(12, 2), nullable=False)
    unit_type = Column(String, nullable=False, default="PerPolicy")

    rule = relationship("CommissionRule", back_populates="flat")


class CommissionRenewal(Base):
    __tablename__ = "commission_renewal"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, index=True)
    policy_year = Column(Integer, nullable=False)
    renewal_rate = Column(Numeric(7, 4), nullable=False)

    rule = relationship("CommissionRule", back_populates="renewals")


class CommissionBusinessBonus(Base):
    """Additive bonus when gross written premium to date falls in range"""
    __tablename__ = "commission_business_bonus"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, index=True)
    min_gwp = Column(Numeric(14, 2), nullable=False)
    max_gwp = Column(Numeric(14, 2), nullable=True)
    bonus_rate = Column(Numeric(7, 4), nullable=False)

    rule = relationship("CommissionRule", back_populates="business_bonuses")


class CommissionTier(Base):
    """Volume tier bonus, keyed on business written to date"""
    __tablename__ = "commission_tiers"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, index=True)
    tier_name = Column(String, nullable=False)
    min_business = Column(Numeric(14, 2), nullable=False)
    max_business = Column(Numeric(14, 2), nullable=True)
    extra_bonus = Column(Numeric(7, 4), nullable=False)  # percentage of premium

    rule = relationship("CommissionRule", back_populates="tiers")


class CommissionTimeBonus(Base):
    """Campaign bonus, active only inside [valid_from, valid_to]"""
    __tablename__ = "commission_time_bonus"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("commission_rules.rule_id"), nullable=False, index=True)
    campaign_name = Column(String, nullable=False)
    bonus_rate = Column(Numeric(7, 4), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=False)

    rule = relationship("CommissionRule", back_populates="time_bonuses")
