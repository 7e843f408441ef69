"""Configuration-time IRDAI compliance checks and the commission dashboard."""
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.commission import CommissionRule, CommissionTimeBonus, RuleStatus
from app.services.caps import RegulatoryCapService
from app.services.evaluation import configured_rate, cap_percent

logger = logging.getLogger(__name__)


class ComplianceService:
    def __init__(self, db: Session):
        self.db = db
        self.caps = RegulatoryCapService(db)

    def _active_rules(self, tenant_id: str) -> List[CommissionRule]:
        return (
            self.db.query(CommissionRule)
            .options(
                selectinload(CommissionRule.slabs),
                selectinload(CommissionRule.insurer),
                selectinload(CommissionRule.product),
                selectinload(CommissionRule.lob),
            )
            .filter(
                CommissionRule.tenant_id == tenant_id,
                CommissionRule.status == RuleStatus.ACTIVE.value,
            )
            .order_by(CommissionRule.rule_id)
            .all()
        )

    def get_compliance_alerts(self, tenant_id: str, as_of: Optional[date] = None) -> List[dict]:
        """
        Active rules whose configured rate is above the cap in force today.
        Rules with no resolvable cap are not violations.
        """
        as_of = as_of or date.today()
        high_threshold = Decimal(settings.COMPLIANCE_HIGH_SEVERITY_EXCESS)
        alerts = []

        for rule in self._active_rules(tenant_id):
            current = configured_rate(rule)
            if current is None:
                continue
            cap = self.caps.resolve_cap(rule.lob_id, rule.policy_year, as_of, rule.channel)
            max_allowed = cap_percent(cap)
            if max_allowed is None or current <= max_allowed:
                continue

            excess = current - max_allowed
            alerts.append({
                "rule_id": rule.rule_id,
                "provider_name": rule.insurer.provider_name if rule.insurer else None,
                "product_name": rule.product.product_name if rule.product else None,
                "lob_name": rule.lob.lob_name if rule.lob else None,
                "rule_type": rule.rule_type,
                "policy_year": rule.policy_year,
                "current_rate": float(current),
                "max_allowed": float(max_allowed),
                "excess_amount": float(excess),
                "severity": "high" if excess > high_threshold else "medium",
            })

        if alerts:
            logger.info(f"{len(alerts)} compliance alert(s) for tenant {tenant_id}")
        return alerts

    def get_dashboard(self, tenant_id: str) -> dict:
        """LOB rate averages, rule counts by type, alerts and upcoming campaigns."""
        today = date.today()
        rules = self._active_rules(tenant_id)

        lob_rates = defaultdict(list)
        lob_counts = defaultdict(int)
        rules_count = defaultdict(int)
        for rule in rules:
            rules_count[rule.rule_type] += 1
            lob_name = rule.lob.lob_name if rule.lob else "Unassigned"
            lob_counts[lob_name] += 1
            current = configured_rate(rule)
            if current is not None:
                lob_rates[lob_name].append(current)

        lob_performance = []
        for name, count in sorted(lob_counts.items()):
            rates = lob_rates[name]
            lob_performance.append({
                "name": name,
                "avg_rate": round(float(sum(rates) / len(rates)), 4) if rates else None,
                "count": count,
            })

        campaigns = (
            self.db.query(CommissionTimeBonus)
            .join(CommissionRule, CommissionRule.rule_id == CommissionTimeBonus.rule_id)
            .filter(
                CommissionRule.tenant_id == tenant_id,
                CommissionRule.status == RuleStatus.ACTIVE.value,
                CommissionTimeBonus.valid_to >= today,
            )
            .order_by(CommissionTimeBonus.valid_from)
            .all()
        )

        return {
            "lob_performance": lob_performance,
            "rules_count": dict(rules_count),
            "compliance_alerts": self.get_compliance_alerts(tenant_id, today),
            "upcoming_campaigns": [
                {
                    "rule_id": c.rule_id,
                    "campaign_name": c.campaign_name,
                    "bonus_rate": float(c.bonus_rate),
                    "valid_from": c.valid_from.isoformat(),
                    "valid_to": c.valid_to.isoformat(),
                }
                for c in campaigns
            ],
        }
