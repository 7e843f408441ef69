from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DEACTIVATE = "DEACTIVATE"
    ADD_BONUS = "ADD_BONUS"


class CommissionAuditLog(Base):
    """Append-only trail of commission rule mutations"""
    __tablename__ = "commission_audit_log"

    id = Column(Integer, primary_key=True, index=True)

    # Not a foreign key: entries must outlive a deleted rule
    rule_id = Column(Integer, nullable=False, index=True)
    tenant_id = Column(String, nullable=False, index=True)

    action = Column(String, nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    changed_by = Column(String, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    notes = Column(Text, nullable=True)
