"""
Rule evaluation shared by every commission entry point.

The calculator, the rule listing, the compliance checker and the dashboard
all read rates through these helpers so a Fixed / Slab / Flat / Campaign
rule means the same thing everywhere:

    Fixed     base = premium * rate / 100, rate = base_rate
              (a renewal row for the policy year replaces base_rate)
    Slab      rate of the slab with min_value <= premium < max_value
              (max_value None = unbounded); no slab -> rule contributes 0
    Flat      base = flat_amount, rate derived as base / premium * 100
              (premium 0 -> rate 0)
    Campaign  base = premium * base_rate / 100 when base_rate is set

Business-bonus, tier and time-bound campaign rows then add
premium * bonus_rate / 100 each, for every row that matches.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from app.models.commission import RuleType

HUNDRED = Decimal("100")
ZERO = Decimal("0")
CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")

WITHIN_LIMIT = "Within Limit"
EXCEEDS_LIMIT = "Exceeds Limit"


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def rate(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def percent_of(premium: Decimal, pct) -> Decimal:
    return premium * to_decimal(pct) / HUNDRED


def within(value: Decimal, lower, upper) -> bool:
    """Closed range check; ``upper`` None means unbounded."""
    if value < to_decimal(lower):
        return False
    return upper is None or value <= to_decimal(upper)


def date_within(day: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and day < start:
        return False
    return end is None or day <= end


@dataclass
class RuleOutcome:
    rule_id: Optional[int]
    rule_type: str
    applied_rate: Decimal = ZERO
    base_commission: Decimal = ZERO
    bonus_commission: Decimal = ZERO
    matched: bool = True  # False when a Slab/Flat rule had nothing to apply
    bonuses: List[dict] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        return self.base_commission + self.bonus_commission

    def as_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_type": self.rule_type,
            "rate": float(rate(self.applied_rate)),
            "base_commission": float(money(self.base_commission)),
            "bonus_commission": float(money(self.bonus_commission)),
            "commission": float(money(self.total_commission)),
            "matched": self.matched,
            "bonuses": self.bonuses,
        }


def select_slab(slabs, premium: Decimal):
    """Pick the slab whose half-open range [min_value, max_value) holds the premium."""
    for slab in sorted(slabs or [], key=lambda s: to_decimal(s.min_value)):
        if premium < to_decimal(slab.min_value):
            continue
        if slab.max_value is None or premium < to_decimal(slab.max_value):
            return slab
    return None


def rate_for_policy_year(rule, policy_year: Optional[int]) -> Optional[Decimal]:
    """Base rate for rate-driven rules, honouring renewal-year overrides."""
    if policy_year and policy_year > 1:
        for renewal in rule.renewals or []:
            if renewal.policy_year == policy_year:
                return to_decimal(renewal.renewal_rate)
    if rule.base_rate is None:
        return None
    return to_decimal(rule.base_rate)


def evaluate_base(rule, premium: Decimal, policy_year: Optional[int] = None) -> Tuple[Decimal, Decimal, bool]:
    """Return (applied_rate, base_commission, matched) for one rule."""
    if rule.rule_type == RuleType.SLAB.value:
        slab = select_slab(rule.slabs, premium)
        if slab is None:
            return ZERO, ZERO, False
        applied = to_decimal(slab.rate)
        return applied, percent_of(premium, applied), True

    if rule.rule_type == RuleType.FLAT.value:
        if rule.flat is None:
            return ZERO, ZERO, False
        amount = to_decimal(rule.flat.flat_amount)
        if premium == ZERO:
            return ZERO, amount, True
        return amount / premium * HUNDRED, amount, True

    # Fixed, Campaign and anything rate-driven
    applied = rate_for_policy_year(rule, policy_year)
    if applied is None:
        return ZERO, ZERO, rule.rule_type != RuleType.FIXED.value
    return applied, percent_of(premium, applied), True


def evaluate_bonuses(
    rule,
    premium: Decimal,
    gwp_to_date: Optional[Decimal] = None,
    as_of: Optional[date] = None,
) -> Tuple[Decimal, List[dict]]:
    """Sum every matching business-bonus, tier and campaign row."""
    as_of = as_of or date.today()
    total = ZERO
    applied = []

    if gwp_to_date is not None:
        gwp = to_decimal(gwp_to_date)
        for bonus in rule.business_bonuses or []:
            if within(gwp, bonus.min_gwp, bonus.max_gwp):
                amount = percent_of(premium, bonus.bonus_rate)
                total += amount
                applied.append({
                    "type": "business-bonus",
                    "rate": float(to_decimal(bonus.bonus_rate)),
                    "amount": float(money(amount)),
                })
        for tier in rule.tiers or []:
            if within(gwp, tier.min_business, tier.max_business):
                amount = percent_of(premium, tier.extra_bonus)
                total += amount
                applied.append({
                    "type": "tier",
                    "name": tier.tier_name,
                    "rate": float(to_decimal(tier.extra_bonus)),
                    "amount": float(money(amount)),
                })

    for campaign in rule.time_bonuses or []:
        if date_within(as_of, campaign.valid_from, campaign.valid_to):
            amount = percent_of(premium, campaign.bonus_rate)
            total += amount
            applied.append({
                "type": "campaign",
                "name": campaign.campaign_name,
                "rate": float(to_decimal(campaign.bonus_rate)),
                "amount": float(money(amount)),
            })

    return total, applied


def evaluate_rule(
    rule,
    premium,
    policy_year: Optional[int] = None,
    gwp_to_date=None,
    as_of: Optional[date] = None,
) -> RuleOutcome:
    premium = to_decimal(premium)
    applied_rate, base, matched = evaluate_base(rule, premium, policy_year)
    bonus, bonuses = evaluate_bonuses(rule, premium, gwp_to_date, as_of)
    return RuleOutcome(
        rule_id=rule.rule_id,
        rule_type=rule.rule_type,
        applied_rate=applied_rate,
        base_commission=base,
        bonus_commission=bonus,
        matched=matched,
        bonuses=bonuses,
    )


def configured_rate(rule) -> Optional[Decimal]:
    """Rate a rule is configured to pay, independent of any transaction.

    Slab rules report their highest slab; Flat rules have no configured rate.
    """
    if rule.rule_type == RuleType.SLAB.value:
        rates = [to_decimal(s.rate) for s in rule.slabs or []]
        if rates:
            return max(rates)
        return to_decimal(rule.base_rate) if rule.base_rate is not None else None
    if rule.rule_type == RuleType.FLAT.value:
        return None
    return to_decimal(rule.base_rate) if rule.base_rate is not None else None


def cap_percent(cap) -> Optional[Decimal]:
    if cap is None:
        return None
    return to_decimal(cap.max_commission_percent)


def clamp_rate(total_rate: Decimal, ceiling: Optional[Decimal], uncapped: Decimal = HUNDRED) -> Tuple[Decimal, Decimal, str]:
    """Return (effective_rate, ceiling_used, compliance_status)."""
    limit = ceiling if ceiling is not None else to_decimal(uncapped)
    total_rate = to_decimal(total_rate)
    effective = min(total_rate, limit)
    status = WITHIN_LIMIT if total_rate <= limit else EXCEEDS_LIMIT
    return effective, limit, status
