import logging
import re
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ValidationError
from app.models.ledger import CommissionTransaction
from app.services.evaluation import money, ZERO

logger = logging.getLogger(__name__)

QUARTER_RE = re.compile(r"^(\d{4})-Q([1-4])$", re.IGNORECASE)
MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
YEAR_RE = re.compile(r"^(\d{4})$")


def current_quarter(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{today.year}-Q{(today.month - 1) // 3 + 1}"


def parse_period(period: Optional[str], today: Optional[date] = None) -> Tuple[str, date, date]:
    """
    Resolve a reporting period to (label, first day, last day).
    Accepts "YYYY-Qn", "YYYY-MM" or "YYYY"; defaults to the current quarter.
    """
    label = (period or current_quarter(today)).strip().upper()

    match = QUARTER_RE.match(label)
    if match:
        start = date(int(match.group(1)), 3 * (int(match.group(2)) - 1) + 1, 1)
        return label, start, start + relativedelta(months=3) - timedelta(days=1)

    match = MONTH_RE.match(label)
    if match:
        month = int(match.group(2))
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid period '{period}'")
        start = date(int(match.group(1)), month, 1)
        return label, start, start + relativedelta(months=1) - timedelta(days=1)

    match = YEAR_RE.match(label)
    if match:
        start = date(int(match.group(1)), 1, 1)
        return label, start, start + relativedelta(years=1) - timedelta(days=1)

    raise ValidationError(f"Invalid period '{period}' (expected YYYY-Qn, YYYY-MM or YYYY)")


class CommissionReportService:
    """Rolls up settled commission transactions; never calls the resolver."""

    def __init__(self, db: Session):
        self.db = db

    def get_commission_report(self, tenant_id: str, period: Optional[str] = None) -> dict:
        label, start, end = parse_period(period)

        transactions = (
            self.db.query(CommissionTransaction)
            .options(selectinload(CommissionTransaction.lob))
            .filter(
                CommissionTransaction.tenant_id == tenant_id,
                CommissionTransaction.transaction_date >= start,
                CommissionTransaction.transaction_date <= end,
            )
            .all()
        )

        total = ZERO
        # A settlement spans one ledger row per paying rule but carries a single premium
        premiums = {}
        by_lob = defaultdict(lambda: ZERO)
        by_type = defaultdict(lambda: ZERO)
        for txn in transactions:
            amount = Decimal(txn.commission_amount)
            total += amount
            premiums.setdefault(txn.settlement_id or f"row-{txn.id}", Decimal(txn.premium))
            by_lob[txn.lob.lob_name if txn.lob else "Unassigned"] += amount
            by_type[txn.rule_type or "Unknown"] += amount

        # Rule types are reported as their share of the total, in percent
        by_rule_type = {}
        if total != ZERO:
            by_rule_type = {
                rule_type: float((amount / total * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
                for rule_type, amount in sorted(by_type.items())
                if amount != ZERO
            }

        logger.info(f"Commission report for tenant {tenant_id} {label}: {len(premiums)} transaction(s)")
        return {
            "tenant_id": tenant_id,
            "period": label,
            "period_start": start.isoformat(),
            "period_end": end.isoformat(),
            "transaction_count": len(premiums),
            "total_premium": float(money(sum(premiums.values(), ZERO))),
            "total_commission": float(money(total)),
            "by_lob": {name: float(money(amount)) for name, amount in sorted(by_lob.items())},
            "by_rule_type": by_rule_type,
        }
