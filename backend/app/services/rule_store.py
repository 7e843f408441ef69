import logging
from datetime import date
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.audit import AuditAction
from app.models.commission import (
    CommissionRule, CommissionSlab, CommissionFlat, CommissionRenewal,
    CommissionBusinessBonus, CommissionTier, CommissionTimeBonus,
    RuleType, RuleStatus, BonusType,
)
from app.models.master import LineOfBusiness, InsuranceProvider, InsuranceProduct
from app.schemas.commission import (
    CommissionRuleCreate, CommissionRuleUpdate, RuleFilters,
    RenewalBonusIn, BusinessBonusIn, TierBonusIn, CampaignBonusIn,
)
from app.services.audit import CommissionAuditService, rule_snapshot, jsonable
from app.services.caps import RegulatoryCapService
from app.services.evaluation import configured_rate, cap_percent, clamp_rate, WITHIN_LIMIT

logger = logging.getLogger(__name__)

BONUS_SCHEMAS = {
    BonusType.RENEWAL: RenewalBonusIn,
    BonusType.BUSINESS_BONUS: BusinessBonusIn,
    BonusType.TIER: TierBonusIn,
    BonusType.CAMPAIGN: CampaignBonusIn,
}

RULE_RELATIONS = (
    selectinload(CommissionRule.slabs),
    selectinload(CommissionRule.flat),
    selectinload(CommissionRule.renewals),
    selectinload(CommissionRule.business_bonuses),
    selectinload(CommissionRule.tiers),
    selectinload(CommissionRule.time_bonuses),
    selectinload(CommissionRule.insurer),
    selectinload(CommissionRule.product),
    selectinload(CommissionRule.lob),
)


def _num(value):
    return float(value) if value is not None else None


def _day(value):
    return value.isoformat() if value is not None else None


def _first_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid payload")


def validate_slabs(slabs) -> None:
    """Slabs need a rate each and may not overlap as [min, max) ranges."""
    if not slabs:
        raise ValidationError("Slab rules require at least one slab")
    for slab in slabs:
        if slab.rate is None:
            raise ValidationError("Every slab requires a rate")
        if slab.max_value is not None and slab.max_value <= slab.min_value:
            raise ValidationError(f"Slab max_value {slab.max_value} must exceed min_value {slab.min_value}")

    ordered = sorted(slabs, key=lambda s: s.min_value)
    for prev, nxt in zip(ordered, ordered[1:]):
        if prev.max_value is None or prev.max_value > nxt.min_value:
            raise ValidationError(
                f"Slab starting at {nxt.min_value} overlaps slab starting at {prev.min_value}"
            )


def serialize_rule(rule: CommissionRule, cap=None) -> dict:
    """Rule with nested sub-components, joined names and its capped rate."""
    rate = configured_rate(rule)
    ceiling = cap_percent(cap)
    if rate is not None:
        effective, limit, status = clamp_rate(rate, ceiling, settings.UNCAPPED_RATE)
        effective_rate, is_compliant = float(effective), status == WITHIN_LIMIT
    else:
        limit = ceiling if ceiling is not None else settings.UNCAPPED_RATE
        effective_rate, is_compliant = None, True

    data = {
        "rule_id": rule.rule_id,
        "tenant_id": rule.tenant_id,
        "insurer_id": rule.insurer_id,
        "provider_name": rule.insurer.provider_name if rule.insurer else None,
        "product_id": rule.product_id,
        "product_name": rule.product.product_name if rule.product else None,
        "lob_id": rule.lob_id,
        "lob_name": rule.lob.lob_name if rule.lob else None,
        "rule_type": rule.rule_type,
        "base_rate": _num(rule.base_rate),
        "effective_rate": effective_rate,
        "irdai_cap": float(limit),
        "is_compliant": is_compliant,
        "channel": rule.channel,
        "policy_year": rule.policy_year,
        "valid_from": _day(rule.valid_from),
        "valid_to": _day(rule.valid_to),
        "status": rule.status,
        "created_by": rule.created_by,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
        "slabs": [
            {"min_value": _num(s.min_value), "max_value": _num(s.max_value),
             "rate": _num(s.rate), "slab_type": s.slab_type}
            for s in rule.slabs
        ],
        "flat_amount": _num(rule.flat.flat_amount) if rule.flat else None,
        "unit_type": rule.flat.unit_type if rule.flat else None,
        "renewals": [
            {"policy_year": r.policy_year, "renewal_rate": _num(r.renewal_rate)}
            for r in rule.renewals
        ],
        "business_bonuses": [
            {"min_gwp": _num(b.min_gwp), "max_gwp": _num(b.max_gwp), "bonus_rate": _num(b.bonus_rate)}
            for b in rule.business_bonuses
        ],
        "tiers": [
            {"tier_name": t.tier_name, "min_business": _num(t.min_business),
             "max_business": _num(t.max_business), "extra_bonus": _num(t.extra_bonus)}
            for t in rule.tiers
        ],
        "time_bonuses": [
            {"campaign_name": c.campaign_name, "bonus_rate": _num(c.bonus_rate),
             "valid_from": _day(c.valid_from), "valid_to": _day(c.valid_to)}
            for c in rule.time_bonuses
        ],
    }
    return data


class CommissionRuleService:
    """
    Commission rule store.

    Every mutation commits first and then appends to the audit trail; rule
    creation writes the rule and its sub-components in one transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.audit = CommissionAuditService(db)
        self.caps = RegulatoryCapService(db)

    # ── Reads ───────────────────────────────────────────────────────

    def get_rule(self, tenant_id: str, rule_id: int) -> CommissionRule:
        rule = (
            self.db.query(CommissionRule)
            .options(*RULE_RELATIONS)
            .filter(CommissionRule.rule_id == rule_id, CommissionRule.tenant_id == tenant_id)
            .first()
        )
        if not rule:
            raise NotFoundError("Rule not found")
        return rule

    def list_rules(self, tenant_id: str, filters: Optional[RuleFilters] = None) -> List[CommissionRule]:
        """Rules for a tenant, newest first. Status defaults to Active."""
        filters = filters or RuleFilters()
        status = filters.status.value if filters.status else settings.DEFAULT_RULE_STATUS

        query = (
            self.db.query(CommissionRule)
            .options(*RULE_RELATIONS)
            .filter(CommissionRule.tenant_id == tenant_id, CommissionRule.status == status)
        )
        if filters.insurer_id is not None:
            query = query.filter(CommissionRule.insurer_id == filters.insurer_id)
        if filters.product_id is not None:
            query = query.filter(CommissionRule.product_id == filters.product_id)
        if filters.lob_id is not None:
            query = query.filter(CommissionRule.lob_id == filters.lob_id)
        if filters.rule_type is not None:
            query = query.filter(CommissionRule.rule_type == filters.rule_type.value)

        return query.order_by(CommissionRule.created_at.desc(), CommissionRule.rule_id.desc()).all()

    def list_rules_with_compliance(self, tenant_id: str, filters: Optional[RuleFilters] = None) -> List[dict]:
        today = date.today()
        result = []
        for rule in self.list_rules(tenant_id, filters):
            cap = self.caps.resolve_cap(rule.lob_id, rule.policy_year, today, rule.channel)
            result.append(serialize_rule(rule, cap))
        return result

    # ── Mutations ───────────────────────────────────────────────────

    def _check_master_data(self, data: CommissionRuleCreate):
        if not self.db.query(InsuranceProvider).filter(InsuranceProvider.id == data.insurer_id).first():
            raise ValidationError(f"Unknown insurer_id {data.insurer_id}")
        if not self.db.query(InsuranceProduct).filter(InsuranceProduct.id == data.product_id).first():
            raise ValidationError(f"Unknown product_id {data.product_id}")
        if not self.db.query(LineOfBusiness).filter(LineOfBusiness.id == data.lob_id).first():
            raise ValidationError(f"Unknown lob_id {data.lob_id}")

    def _validate_shape(self, data: CommissionRuleCreate):
        rule_type = data.rule_type

        if data.slabs and rule_type != RuleType.SLAB:
            raise ValidationError("slabs are only accepted for Slab rules")
        if data.flat_amount is not None and rule_type != RuleType.FLAT:
            raise ValidationError("flat_amount is only accepted for Flat rules")
        if data.campaign is not None and rule_type != RuleType.CAMPAIGN:
            raise ValidationError("campaign is only accepted for Campaign rules")

        if rule_type == RuleType.FIXED and data.base_rate is None:
            raise ValidationError("Fixed rules require base_rate")
        if rule_type == RuleType.SLAB:
            validate_slabs(data.slabs)
        if rule_type == RuleType.FLAT and data.flat_amount is None:
            raise ValidationError("Flat rules require flat_amount")
        if rule_type == RuleType.CAMPAIGN:
            campaign = data.campaign
            if campaign is None:
                raise ValidationError("Campaign rules require a campaign payload")
            missing = [
                name for name in ("campaign_name", "bonus_rate", "valid_from", "valid_to")
                if getattr(campaign, name) is None
            ]
            if missing:
                raise ValidationError(f"Campaign payload missing: {', '.join(missing)}")
            if campaign.valid_to < campaign.valid_from:
                raise ValidationError("Campaign valid_to must be on or after valid_from")

    def create_rule(self, tenant_id: str, data: CommissionRuleCreate, actor_id: Optional[str]) -> CommissionRule:
        self._validate_shape(data)
        self._check_master_data(data)

        valid_from = data.valid_from or date.today()
        if data.valid_to is not None and data.valid_to < valid_from:
            raise ValidationError("valid_to must be on or after valid_from")

        rule = CommissionRule(
            tenant_id=tenant_id,
            insurer_id=data.insurer_id,
            product_id=data.product_id,
            lob_id=data.lob_id,
            rule_type=data.rule_type.value,
            base_rate=data.base_rate,
            channel=data.channel,
            policy_year=data.policy_year,
            valid_from=valid_from,
            valid_to=data.valid_to,
            status=data.status.value,
            created_by=actor_id,
        )

        if data.rule_type == RuleType.SLAB:
            rule.slabs = [
                CommissionSlab(min_value=s.min_value, max_value=s.max_value, rate=s.rate, slab_type=s.slab_type)
                for s in data.slabs
            ]
        elif data.rule_type == RuleType.FLAT:
            rule.flat = CommissionFlat(flat_amount=data.flat_amount, unit_type=data.unit_type or "PerPolicy")
        elif data.rule_type == RuleType.CAMPAIGN:
            rule.time_bonuses = [
                CommissionTimeBonus(
                    campaign_name=data.campaign.campaign_name,
                    bonus_rate=data.campaign.bonus_rate,
                    valid_from=data.campaign.valid_from,
                    valid_to=data.campaign.valid_to,
                )
            ]

        # Rule row and sub-components commit together or not at all
        self.db.add(rule)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Creating {data.rule_type.value} rule for tenant {tenant_id} failed; rolled back")
            raise
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule.rule_id} ({rule.rule_type}) created for tenant {tenant_id}")
        self.audit.record(
            tenant_id, rule.rule_id, AuditAction.CREATE, actor_id,
            new_values=data.model_dump(), notes="Commission rule created",
        )
        return rule

    def update_rule(self, tenant_id: str, rule_id: int, patch: CommissionRuleUpdate, actor_id: Optional[str]) -> CommissionRule:
        rule = self.get_rule(tenant_id, rule_id)
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")

        if "base_rate" in changes and changes["base_rate"] is None and rule.rule_type == RuleType.FIXED.value:
            raise ValidationError("Fixed rules require base_rate")
        if "valid_from" in changes and changes["valid_from"] is None:
            raise ValidationError("valid_from cannot be cleared")
        if "status" in changes and changes["status"] is None:
            raise ValidationError("status cannot be cleared")

        valid_from = changes.get("valid_from", rule.valid_from)
        valid_to = changes.get("valid_to", rule.valid_to)
        if valid_to is not None and valid_to < valid_from:
            raise ValidationError("valid_to must be on or after valid_from")

        old_values = rule_snapshot(rule)
        for name, value in changes.items():
            if isinstance(value, RuleStatus):
                value = value.value
            setattr(rule, name, value)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule_id} updated for tenant {tenant_id}: {sorted(changes)}")
        self.audit.record(
            tenant_id, rule_id, AuditAction.UPDATE, actor_id,
            old_values=old_values, new_values=changes, notes="Commission rule updated",
        )
        return rule

    def deactivate_rule(self, tenant_id: str, rule_id: int, actor_id: Optional[str]) -> CommissionRule:
        """Soft-retire a rule. Already-inactive rules are left untouched."""
        rule = self.get_rule(tenant_id, rule_id)
        if rule.status == RuleStatus.INACTIVE.value:
            return rule

        old_values = rule_snapshot(rule)
        rule.status = RuleStatus.INACTIVE.value
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule_id} deactivated for tenant {tenant_id}")
        self.audit.record(
            tenant_id, rule_id, AuditAction.DEACTIVATE, actor_id,
            old_values=old_values, new_values={"status": RuleStatus.INACTIVE.value},
            notes="Commission rule deactivated",
        )
        return rule

    def add_bonus(self, tenant_id: str, rule_id: int, bonus_type: str, bonus_data: dict, actor_id: Optional[str]):
        rule = self.get_rule(tenant_id, rule_id)

        try:
            kind = BonusType(bonus_type)
        except ValueError:
            raise ValidationError(f"Invalid bonus type '{bonus_type}'")

        try:
            payload = BONUS_SCHEMAS[kind].model_validate(bonus_data or {})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {kind.value} payload: {_first_error(e)}")

        if kind == BonusType.RENEWAL:
            # Rules only match their own policy year, so any other renewal row would never be read
            if payload.policy_year < 2 or payload.policy_year != rule.policy_year:
                raise ValidationError(
                    f"Renewal policy_year must be a renewal year (2 or later) matching the rule's "
                    f"policy_year {rule.policy_year}"
                )
            row = CommissionRenewal(policy_year=payload.policy_year, renewal_rate=payload.renewal_rate)
            rule.renewals.append(row)
        elif kind == BonusType.BUSINESS_BONUS:
            if payload.max_gwp is not None and payload.max_gwp < payload.min_gwp:
                raise ValidationError("max_gwp must be at least min_gwp")
            row = CommissionBusinessBonus(
                min_gwp=payload.min_gwp, max_gwp=payload.max_gwp, bonus_rate=payload.bonus_rate,
            )
            rule.business_bonuses.append(row)
        elif kind == BonusType.TIER:
            if payload.max_business is not None and payload.max_business < payload.min_business:
                raise ValidationError("max_business must be at least min_business")
            row = CommissionTier(
                tier_name=payload.tier_name, min_business=payload.min_business,
                max_business=payload.max_business, extra_bonus=payload.extra_bonus,
            )
            rule.tiers.append(row)
        else:
            if payload.valid_to < payload.valid_from:
                raise ValidationError("Campaign valid_to must be on or after valid_from")
            row = CommissionTimeBonus(
                campaign_name=payload.campaign_name, bonus_rate=payload.bonus_rate,
                valid_from=payload.valid_from, valid_to=payload.valid_to,
            )
            rule.time_bonuses.append(row)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(row)

        logger.info(f"{kind.value} bonus added to rule {rule_id} for tenant {tenant_id}")
        self.audit.record(
            tenant_id, rule_id, AuditAction.ADD_BONUS, actor_id,
            new_values={"bonus_type": kind.value, **jsonable(payload.model_dump())},
            notes=f"Added {kind.value} bonus",
        )
        return row

    def delete_rule(self, tenant_id: str, rule_id: int, actor_id: Optional[str]) -> None:
        """Hard delete; sub-components go with the rule."""
        rule = self.get_rule(tenant_id, rule_id)
        snapshot = rule_snapshot(rule)
        snapshot["sub_components"] = {
            key: value for key, value in serialize_rule(rule).items()
            if key in ("slabs", "flat_amount", "unit_type", "renewals", "business_bonuses", "tiers", "time_bonuses")
        }

        self.db.delete(rule)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Commission rule {rule_id} deleted for tenant {tenant_id}")
        self.audit.record(
            tenant_id, rule_id, AuditAction.DELETE, actor_id,
            old_values=snapshot, notes="Commission rule deleted",
        )
