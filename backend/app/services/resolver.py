from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging
import uuid

from sqlalchemy import or_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.commission import CommissionRule, RuleStatus
from app.models.ledger import CommissionTransaction
from app.schemas.commission import CommissionCalculationRequest
from app.services.caps import RegulatoryCapService
from app.services.evaluation import (
    RuleOutcome, evaluate_rule, clamp_rate, cap_percent, money, rate, ZERO, WITHIN_LIMIT,
)

logger = logging.getLogger(__name__)


@dataclass
class CommissionResult:
    premium: Decimal
    applied_rate: Decimal
    effective_rate: Decimal
    base_commission: Decimal
    bonus_commission: Decimal
    irdai_cap: Decimal
    compliance_status: str
    lob_id: Optional[int] = None
    evaluation_date: Optional[date] = None
    breakdown: List[RuleOutcome] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        return self.base_commission + self.bonus_commission

    def as_dict(self) -> dict:
        return {
            "premium": float(money(self.premium)),
            "applied_rate": float(rate(self.applied_rate)),
            "effective_rate": float(rate(self.effective_rate)),
            "base_commission": float(money(self.base_commission)),
            "bonus_commission": float(money(self.bonus_commission)),
            "total_commission": float(money(self.total_commission)),
            "irdai_cap": float(self.irdai_cap),
            "compliance_status": self.compliance_status,
            "lob_id": self.lob_id,
            "evaluation_date": self.evaluation_date.isoformat() if self.evaluation_date else None,
            "rules_applied": len(self.breakdown),
            "breakdown": [outcome.as_dict() for outcome in self.breakdown],
        }


class CommissionResolver:
    """
    Commission owed for one premium transaction:
    1. Active rules for (tenant, insurer, product, policy year) valid on the evaluation date
    2. Each rule's base commission plus its matching bonuses (shared evaluator)
    3. Sum across rules; every matching rule contributes
    4. Clamp the summed rate to the IRDAI cap for (LOB, policy year, date)
    """

    def __init__(self, db: Session):
        self.db = db
        self.caps = RegulatoryCapService(db)

    def find_applicable_rules(
        self,
        tenant_id: str,
        insurer_id: int,
        product_id: int,
        policy_year: int,
        as_of: date,
        channel: Optional[str] = None,
    ) -> List[CommissionRule]:
        query = (
            self.db.query(CommissionRule)
            .options(
                selectinload(CommissionRule.slabs),
                selectinload(CommissionRule.flat),
                selectinload(CommissionRule.renewals),
                selectinload(CommissionRule.business_bonuses),
                selectinload(CommissionRule.tiers),
                selectinload(CommissionRule.time_bonuses),
            )
            .filter(
                CommissionRule.tenant_id == tenant_id,
                CommissionRule.insurer_id == insurer_id,
                CommissionRule.product_id == product_id,
                CommissionRule.policy_year == policy_year,
                CommissionRule.status == RuleStatus.ACTIVE.value,
                CommissionRule.valid_from <= as_of,
                or_(CommissionRule.valid_to == None, CommissionRule.valid_to >= as_of),
            )
        )
        if channel:
            query = query.filter(
                or_(
                    CommissionRule.channel == None,
                    func.lower(CommissionRule.channel) == channel.strip().lower(),
                )
            )
        return query.order_by(CommissionRule.created_at, CommissionRule.rule_id).all()

    def calculate(self, request: CommissionCalculationRequest) -> CommissionResult:
        as_of = request.evaluation_date or date.today()
        premium = request.premium

        rules = self.find_applicable_rules(
            request.tenant_id, request.insurer_id, request.product_id,
            request.policy_year, as_of, request.channel,
        )

        outcomes = [
            evaluate_rule(rule, premium, request.policy_year, request.gwp_to_date, as_of)
            for rule in rules
        ]

        base_commission = sum((o.base_commission for o in outcomes), ZERO)
        bonus_commission = sum((o.bonus_commission for o in outcomes), ZERO)
        total_rate = sum((o.applied_rate for o in outcomes), ZERO)

        lob_id = request.lob_id
        if lob_id is None and rules:
            lob_id = rules[0].lob_id

        cap = self.caps.resolve_cap(lob_id, request.policy_year, as_of, request.channel)
        effective_rate, ceiling, status = clamp_rate(total_rate, cap_percent(cap), settings.UNCAPPED_RATE)

        if status != WITHIN_LIMIT:
            logger.warning(
                f"Commission rate {total_rate} exceeds IRDAI cap {ceiling} "
                f"(tenant={request.tenant_id} lob={lob_id} year={request.policy_year})"
            )

        result = CommissionResult(
            premium=premium,
            applied_rate=total_rate,
            effective_rate=effective_rate,
            base_commission=base_commission,
            bonus_commission=bonus_commission,
            irdai_cap=ceiling,
            compliance_status=status,
            lob_id=lob_id,
            evaluation_date=as_of,
            breakdown=outcomes,
        )

        if request.settle:
            self.settle(request, result, rules)
        return result

    def settle(self, request: CommissionCalculationRequest, result: CommissionResult, rules: List[CommissionRule]):
        """Write one ledger row per rule that paid, all sharing one settlement id."""
        by_id = {rule.rule_id: rule for rule in rules}
        settlement_id = uuid.uuid4().hex
        rows = []
        for outcome in result.breakdown:
            amount = money(outcome.total_commission)
            if amount == ZERO:
                continue
            rule = by_id[outcome.rule_id]
            rows.append(CommissionTransaction(
                tenant_id=request.tenant_id,
                rule_id=rule.rule_id,
                lob_id=rule.lob_id,
                rule_type=rule.rule_type,
                policy_number=request.policy_number,
                settlement_id=settlement_id,
                premium=money(result.premium),
                commission_amount=amount,
                transaction_date=result.evaluation_date,
            ))
        if not rows:
            logger.info(f"Nothing to settle for policy {request.policy_number} (tenant={request.tenant_id})")
            return

        self.db.add_all(rows)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Settling commission for policy {request.policy_number} failed")
            raise
        logger.info(
            f"Settled {len(rows)} commission line(s) for policy {request.policy_number} "
            f"(tenant={request.tenant_id}, total={money(result.total_commission)})"
        )
