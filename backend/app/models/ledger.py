from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class CommissionTransaction(Base):
    """Settled per-policy commission, the ledger the reports roll up"""
    __tablename__ = "commission_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, nullable=False, index=True)

    # Rule that produced the amount; kept nullable so deleting a rule keeps its history
    rule_id = Column(Integer, nullable=True, index=True)
    lob_id = Column(Integer, ForeignKey("lines_of_business.id"), nullable=True, index=True)
    rule_type = Column(String, nullable=True)

    policy_number = Column(String, nullable=True, index=True)
    # One id per settled calculation; its rules share the premium
    settlement_id = Column(String(32), nullable=True, index=True)
    premium = Column(Numeric(14, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)

    transaction_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lob = relationship("LineOfBusiness")
