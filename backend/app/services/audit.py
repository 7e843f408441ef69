"""Commission rule audit trail.

Entries are written after the mutation they describe has committed. A failed
audit write is logged for reconciliation and never undoes the mutation.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.audit import CommissionAuditLog, AuditAction

logger = logging.getLogger(__name__)


def jsonable(value):
    """Make a snapshot safe for a JSON column."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value  # str enums
    return value


RULE_FIELDS = (
    "rule_id", "tenant_id", "insurer_id", "product_id", "lob_id", "rule_type",
    "base_rate", "channel", "policy_year", "valid_from", "valid_to", "status",
    "created_by", "created_at", "updated_at",
)


def rule_snapshot(rule) -> dict:
    return jsonable({name: getattr(rule, name) for name in RULE_FIELDS})


class CommissionAuditService:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        tenant_id: str,
        rule_id: int,
        action: AuditAction,
        changed_by: Optional[str],
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Append one entry. Returns False (after logging) if the write failed."""
        try:
            entry = CommissionAuditLog(
                rule_id=rule_id,
                tenant_id=tenant_id,
                action=action.value if isinstance(action, AuditAction) else str(action),
                old_values=jsonable(old_values) if old_values is not None else None,
                new_values=jsonable(new_values) if new_values is not None else None,
                changed_by=changed_by,
                notes=notes,
            )
            self.db.add(entry)
            self.db.commit()
            return True
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                f"Audit write failed (tenant={tenant_id} rule={rule_id} action={action}); "
                f"mutation kept, needs reconciliation"
            )
            return False

    def get_audit_log(self, tenant_id: str, rule_id: Optional[int] = None, limit: Optional[int] = None) -> List[dict]:
        """Most recent entries first, capped at AUDIT_LOG_LIMIT."""
        limit = min(limit or settings.AUDIT_LOG_LIMIT, settings.AUDIT_LOG_LIMIT)
        query = self.db.query(CommissionAuditLog).filter(CommissionAuditLog.tenant_id == tenant_id)
        if rule_id is not None:
            query = query.filter(CommissionAuditLog.rule_id == rule_id)

        entries = (
            query.order_by(CommissionAuditLog.changed_at.desc(), CommissionAuditLog.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": e.id,
                "rule_id": e.rule_id,
                "action": e.action,
                "old_values": e.old_values,
                "new_values": e.new_values,
                "changed_by": e.changed_by,
                "changed_at": e.changed_at.isoformat() if e.changed_at else None,
                "notes": e.notes,
            }
            for e in entries
        ]
