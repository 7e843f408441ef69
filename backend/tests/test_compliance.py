from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.schemas.commission import SlabIn
from app.services.compliance import ComplianceService

from conftest import TENANT, OTHER_TENANT


@pytest.fixture
def compliance(db):
    return ComplianceService(db)


def test_rule_above_cap_raises_medium_alert(make_rule, compliance):
    rule = make_rule(base_rate=Decimal("18"))
    alerts = compliance.get_compliance_alerts(TENANT)

    assert alerts == [{
        "rule_id": rule.rule_id,
        "provider_name": "Star Health",
        "product_name": "Family Health Optima",
        "lob_name": "Health",
        "rule_type": "Fixed",
        "policy_year": 1,
        "current_rate": 18.0,
        "max_allowed": 15.0,
        "excess_amount": 3.0,
        "severity": "medium",
    }]


@pytest.mark.parametrize("base_rate, severity", [
    ("20", "medium"),
    ("20.01", "high"),
    ("30", "high"),
])
def test_severity_threshold(make_rule, compliance, base_rate, severity):
    make_rule(base_rate=Decimal(base_rate))
    assert compliance.get_compliance_alerts(TENANT)[0]["severity"] == severity


def test_rate_at_cap_is_not_flagged(make_rule, compliance):
    make_rule(base_rate=Decimal("15"))
    assert compliance.get_compliance_alerts(TENANT) == []


def test_rule_without_cap_is_not_flagged(make_rule, compliance):
    make_rule(base_rate=Decimal("60"), policy_year=4)
    assert compliance.get_compliance_alerts(TENANT) == []


def test_inactive_rules_are_not_flagged(make_rule, compliance):
    make_rule(base_rate=Decimal("40"), status="Inactive")
    assert compliance.get_compliance_alerts(TENANT) == []


def test_slab_rule_checked_on_highest_slab(make_rule, compliance):
    make_rule(rule_type="Slab", base_rate=None, slabs=[
        SlabIn(min_value=0, max_value=50000, rate=10),
        SlabIn(min_value=50000, rate=16),
    ])
    alerts = compliance.get_compliance_alerts(TENANT)
    assert [a["current_rate"] for a in alerts] == [16.0]


def test_alerts_are_per_tenant(make_rule, compliance):
    make_rule(base_rate=Decimal("40"), tenant_id=OTHER_TENANT)
    assert compliance.get_compliance_alerts(TENANT) == []
    assert len(compliance.get_compliance_alerts(OTHER_TENANT)) == 1


def test_dashboard(db, make_rule, compliance):
    today = date.today()
    make_rule(base_rate=Decimal("10"))
    make_rule(base_rate=Decimal("20"))
    make_rule(rule_type="Campaign", base_rate=Decimal("4"), campaign={
        "campaign_name": "Monsoon Push", "bonus_rate": "1",
        "valid_from": today, "valid_to": today + timedelta(days=30),
    })
    make_rule(rule_type="Campaign", base_rate=None, campaign={
        "campaign_name": "Last Year", "bonus_rate": "1",
        "valid_from": today - timedelta(days=60), "valid_to": today - timedelta(days=30),
    })

    dashboard = compliance.get_dashboard(TENANT)

    assert dashboard["rules_count"] == {"Fixed": 2, "Campaign": 2}
    health = dashboard["lob_performance"][0]
    assert health["name"] == "Health"
    assert health["count"] == 4
    assert health["avg_rate"] == 11.3333  # the bonus-only campaign has no configured rate
    assert [a["current_rate"] for a in dashboard["compliance_alerts"]] == [20.0]
    assert [c["campaign_name"] for c in dashboard["upcoming_campaigns"]] == ["Monsoon Push"]
