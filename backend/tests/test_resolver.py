import logging
from datetime import date
from decimal import Decimal

import pytest

from app.models import CommissionTransaction
from app.schemas.commission import CommissionCalculationRequest, SlabIn
from app.services.resolver import CommissionResolver
from app.services.rule_store import CommissionRuleService

from conftest import TENANT, OTHER_TENANT

EVAL_DAY = date(2025, 6, 1)


@pytest.fixture
def calculate(db, health_context):
    resolver = CommissionResolver(db)

    def _calculate(premium, **fields):
        payload = {
            "tenant_id": TENANT,
            "insurer_id": health_context["insurer_id"],
            "product_id": health_context["product_id"],
            "premium": Decimal(str(premium)),
            "evaluation_date": EVAL_DAY,
        }
        payload.update(fields)
        return resolver.calculate(CommissionCalculationRequest(**payload))

    return _calculate


def test_fixed_rule(make_rule, calculate):
    make_rule(base_rate=Decimal("10"))
    result = calculate(100000)

    assert result.base_commission == Decimal("10000")
    assert result.total_commission == Decimal("10000")
    assert result.applied_rate == Decimal("10")
    assert result.compliance_status == "Within Limit"
    assert result.irdai_cap == Decimal("15")


def test_slab_rule(make_rule, calculate):
    make_rule(rule_type="Slab", base_rate=None, slabs=[
        SlabIn(min_value=0, max_value=50000, rate=5),
        SlabIn(min_value=50000, rate=8),
    ])
    result = calculate(75000)
    assert result.applied_rate == Decimal("8")
    assert result.total_commission == Decimal("6000")


def test_flat_rule_with_zero_premium(make_rule, calculate):
    make_rule(rule_type="Flat", base_rate=None, flat_amount=Decimal("2500"))
    result = calculate(0)
    assert result.base_commission == Decimal("2500")
    assert result.applied_rate == 0


def test_business_bonus(db, make_rule, calculate):
    rule = make_rule(base_rate=Decimal("10"))
    CommissionRuleService(db).add_bonus(
        TENANT, rule.rule_id, "business-bonus", {"min_gwp": 1000000, "bonus_rate": 2}, "user-1",
    )

    result = calculate(100000, gwp_to_date=Decimal("1500000"))
    assert result.bonus_commission == Decimal("2000")
    assert result.total_commission == Decimal("12000")


def test_rate_above_cap_is_clamped(make_rule, calculate, caplog):
    make_rule(base_rate=Decimal("20"))
    with caplog.at_level(logging.WARNING):
        result = calculate(100000)

    assert result.compliance_status == "Exceeds Limit"
    assert result.effective_rate == Decimal("15")
    assert result.applied_rate == Decimal("20")
    assert "exceeds IRDAI cap" in caplog.text


def test_no_cap_reports_100(make_rule, calculate):
    make_rule(base_rate=Decimal("22"), policy_year=4)
    result = calculate(100000, policy_year=4)

    assert result.irdai_cap == Decimal("100")
    assert result.effective_rate == Decimal("22")
    assert result.compliance_status == "Within Limit"


def test_every_matching_rule_contributes(make_rule, calculate):
    make_rule(base_rate=Decimal("6"))
    make_rule(rule_type="Flat", base_rate=None, flat_amount=Decimal("1000"))

    result = calculate(100000)
    assert result.total_commission == Decimal("7000")
    assert result.applied_rate == Decimal("7")
    assert len(result.breakdown) == 2
    assert result.as_dict()["rules_applied"] == 2


def test_no_matching_rules(reference, calculate):
    result = calculate(100000)
    assert result.total_commission == 0
    assert result.breakdown == []
    assert result.compliance_status == "Within Limit"


@pytest.mark.parametrize("fields", [
    {"status": "Inactive"},
    {"valid_from": date(2025, 7, 1)},
    {"valid_to": date(2025, 5, 31)},
    {"policy_year": 2},
    {"tenant_id": OTHER_TENANT},
    {"channel": "Branch"},
])
def test_non_matching_rules_ignored(make_rule, calculate, fields):
    make_rule(**fields)
    assert calculate(100000, channel="Online").breakdown == []


def test_channel_matching_is_case_insensitive(make_rule, calculate):
    make_rule(channel="Online")
    assert len(calculate(100000, channel="ONLINE").breakdown) == 1


def test_renewal_year_uses_renewal_rate(db, make_rule, calculate):
    rule = make_rule(base_rate=Decimal("15"), policy_year=2)
    CommissionRuleService(db).add_bonus(
        TENANT, rule.rule_id, "renewal", {"policy_year": 2, "renewal_rate": 7.5}, "user-1",
    )
    result = calculate(100000, policy_year=2)
    assert result.applied_rate == Decimal("7.5")
    assert result.total_commission == Decimal("7500")


def test_lob_falls_back_to_rule(make_rule, calculate, health_context):
    make_rule(base_rate=Decimal("10"))
    assert calculate(100000).lob_id == health_context["lob_id"]


def test_as_dict_rounds_amounts(make_rule, calculate):
    make_rule(base_rate=Decimal("12.5"))
    data = calculate("12345.67").as_dict()
    assert data["total_commission"] == 1543.21
    assert data["evaluation_date"] == "2025-06-01"
    assert data["breakdown"][0]["rule_type"] == "Fixed"


def test_settle_writes_ledger_rows(db, make_rule, calculate):
    fixed = make_rule(base_rate=Decimal("6"))
    make_rule(rule_type="Slab", base_rate=None, slabs=[SlabIn(min_value=200000, rate=5)])
    flat = make_rule(rule_type="Flat", base_rate=None, flat_amount=Decimal("1000"))

    calculate(100000, settle=True, policy_number="POL-1001")

    rows = db.query(CommissionTransaction).order_by(CommissionTransaction.rule_id).all()
    assert [(r.rule_id, r.rule_type, r.commission_amount) for r in rows] == [
        (fixed.rule_id, "Fixed", Decimal("6000.00")),
        (flat.rule_id, "Flat", Decimal("1000.00")),
    ]
    assert all(r.transaction_date == EVAL_DAY and r.policy_number == "POL-1001" for r in rows)
    assert len({r.settlement_id for r in rows}) == 1


def test_calculation_without_settle_writes_nothing(db, make_rule, calculate):
    make_rule()
    calculate(100000)
    assert db.query(CommissionTransaction).count() == 0
