"""Regulatory (IRDAI) commission ceilings."""
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class IrdaiCommissionCap(Base):
    __tablename__ = "irdai_commission_caps"

    cap_id = Column(Integer, primary_key=True, index=True)
    lob_id = Column(Integer, ForeignKey("lines_of_business.id"), nullable=False, index=True)
    policy_year = Column(Integer, nullable=False, default=1)
    channel = Column(String, nullable=True)  # null = applies to every channel
    product_category = Column(String, nullable=True)
    max_commission_percent = Column(Numeric(7, 4), nullable=False)

    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)  # null = still in force

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lob = relationship("LineOfBusiness")
