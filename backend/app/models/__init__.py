from app.models.master import LineOfBusiness, InsuranceProvider, InsuranceProduct
from app.models.commission import (
    CommissionRule, CommissionSlab, CommissionFlat, CommissionRenewal,
    CommissionBusinessBonus, CommissionTier, CommissionTimeBonus,
    RuleType, RuleStatus, BonusType,
)
from app.models.irdai import IrdaiCommissionCap
from app.models.audit import CommissionAuditLog, AuditAction
from app.models.ledger import CommissionTransaction

__all__ = [
    "LineOfBusiness",
    "InsuranceProvider",
    "InsuranceProduct",
    "CommissionRule",
    "CommissionSlab",
    "CommissionFlat",
    "CommissionRenewal",
    "CommissionBusinessBonus",
    "CommissionTier",
    "CommissionTimeBonus",
    "RuleType",
    "RuleStatus",
    "BonusType",
    "IrdaiCommissionCap",
    "CommissionAuditLog",
    "AuditAction",
    "CommissionTransaction",
]
