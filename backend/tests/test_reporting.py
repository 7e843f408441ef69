from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models import CommissionTransaction
from app.schemas.commission import CommissionCalculationRequest, SlabIn
from app.services.reporting import CommissionReportService, parse_period, current_quarter
from app.services.report_pdf import generate_commission_report_pdf
from app.services.resolver import CommissionResolver

from conftest import TENANT, OTHER_TENANT


class TestParsePeriod:

    def test_quarter(self):
        assert parse_period("2025-Q3") == ("2025-Q3", date(2025, 7, 1), date(2025, 9, 30))

    def test_quarter_is_case_insensitive(self):
        assert parse_period("2025-q1")[0] == "2025-Q1"

    def test_month(self):
        assert parse_period("2024-02") == ("2024-02", date(2024, 2, 1), date(2024, 2, 29))

    def test_year(self):
        assert parse_period("2025") == ("2025", date(2025, 1, 1), date(2025, 12, 31))

    def test_defaults_to_current_quarter(self):
        assert parse_period(None, today=date(2025, 11, 5)) == ("2025-Q4", date(2025, 10, 1), date(2025, 12, 31))
        assert current_quarter(date(2025, 3, 31)) == "2025-Q1"

    @pytest.mark.parametrize("period", ["2025-Q5", "2025-13", "Q3-2025", "last quarter"])
    def test_invalid(self, period):
        with pytest.raises(ValidationError):
            parse_period(period)


@pytest.fixture
def ledger(db, reference):
    health, motor = reference["lob"]["Health"], reference["lob"]["Motor"]

    def txn(lob_id, rule_type, premium, amount, day, tenant_id=TENANT):
        return CommissionTransaction(
            tenant_id=tenant_id, rule_id=None, lob_id=lob_id, rule_type=rule_type,
            premium=Decimal(premium), commission_amount=Decimal(amount), transaction_date=day,
        )

    db.add_all([
        txn(health, "Fixed", "100000", "10000", date(2025, 7, 5)),
        txn(health, "Slab", "50000", "2500", date(2025, 8, 20)),
        txn(motor, "Flat", "40000", "2500", date(2025, 9, 30)),
        txn(None, "Fixed", "10000", "1000", date(2025, 9, 1)),
        # Outside the quarter / other tenant
        txn(health, "Fixed", "100000", "9999", date(2025, 10, 1)),
        txn(health, "Fixed", "100000", "9999", date(2025, 7, 5), tenant_id=OTHER_TENANT),
    ])
    db.commit()


def test_report_totals(db, ledger):
    report = CommissionReportService(db).get_commission_report(TENANT, "2025-Q3")

    assert report["period"] == "2025-Q3"
    assert report["period_start"] == "2025-07-01"
    assert report["period_end"] == "2025-09-30"
    assert report["transaction_count"] == 4
    assert report["total_premium"] == 200000.0
    assert report["total_commission"] == 16000.0
    assert report["by_lob"] == {"Health": 12500.0, "Motor": 2500.0, "Unassigned": 1000.0}
    assert report["by_rule_type"] == {"Fixed": 68.75, "Flat": 15.63, "Slab": 15.63}


def test_empty_period(db, ledger):
    report = CommissionReportService(db).get_commission_report(TENANT, "2024")
    assert report["transaction_count"] == 0
    assert report["total_commission"] == 0.0
    assert report["by_lob"] == {}
    assert report["by_rule_type"] == {}


def test_report_reads_settled_calculations(db, make_rule, health_context):
    make_rule(base_rate=Decimal("10"))
    CommissionResolver(db).calculate(CommissionCalculationRequest(
        tenant_id=TENANT, premium=Decimal("50000"), evaluation_date=date(2025, 5, 10),
        settle=True, policy_number="POL-7", **{k: health_context[k] for k in ("insurer_id", "product_id")},
    ))

    report = CommissionReportService(db).get_commission_report(TENANT, "2025-05")
    assert report["total_commission"] == 5000.0
    assert report["by_lob"] == {"Health": 5000.0}
    assert report["by_rule_type"] == {"Fixed": 100.0}


def test_pdf(db, ledger):
    report = CommissionReportService(db).get_commission_report(TENANT, "2025-Q3")
    pdf = generate_commission_report_pdf(report)
    assert pdf.startswith(b"%PDF")


def test_settlement_counts_once_across_rules(db, make_rule, health_context):
    make_rule(base_rate=Decimal("6"))
    make_rule(rule_type="Slab", base_rate=None, slabs=[SlabIn(min_value=200000, rate=5)])
    make_rule(rule_type="Flat", base_rate=None, flat_amount=Decimal("1000"))
    resolver = CommissionResolver(db)
    for premium, day in (("100000", date(2025, 4, 15)), ("50000", date(2025, 6, 2))):
        resolver.calculate(CommissionCalculationRequest(
            tenant_id=TENANT, premium=Decimal(premium), evaluation_date=day, settle=True,
            policy_number="POL-9", **{k: health_context[k] for k in ("insurer_id", "product_id")},
        ))

    report = CommissionReportService(db).get_commission_report(TENANT, "2025-Q2")
    assert report["transaction_count"] == 2
    assert report["total_premium"] == 150000.0
    assert report["total_commission"] == 11000.0
    # the slab rule paid nothing, so it is not in the ledger
    assert report["by_rule_type"] == {"Fixed": 81.82, "Flat": 18.18}
