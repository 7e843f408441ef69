"""IRDAI commission cap lookups."""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import or_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.irdai import IrdaiCommissionCap
from app.models.master import LineOfBusiness
from app.schemas.irdai import IrdaiCapCreate

logger = logging.getLogger(__name__)


def _same_channel(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.strip().lower() == b.strip().lower()


def _windows_overlap(start_a: date, end_a: Optional[date], start_b: date, end_b: Optional[date]) -> bool:
    return (end_b is None or start_a <= end_b) and (end_a is None or start_b <= end_a)


class RegulatoryCapService:
    """
    Caps are keyed by (LOB, policy year, channel) and carry a validity window.
    A cap with no channel applies to every channel.
    """

    def __init__(self, db: Session):
        self.db = db

    def _current(self, query, as_of: date):
        return query.filter(
            IrdaiCommissionCap.effective_from <= as_of,
            or_(IrdaiCommissionCap.effective_to == None, IrdaiCommissionCap.effective_to >= as_of),
        )

    def get_caps(
        self,
        lob: Optional[str] = None,
        channel: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> List[IrdaiCommissionCap]:
        """Caps in force on ``as_of`` (today by default), lowest policy year first."""
        as_of = as_of or date.today()
        query = self._current(self.db.query(IrdaiCommissionCap), as_of)

        if lob:
            query = query.join(LineOfBusiness, LineOfBusiness.id == IrdaiCommissionCap.lob_id).filter(
                func.lower(LineOfBusiness.lob_name) == lob.strip().lower()
            )
        if channel:
            query = query.filter(
                or_(
                    IrdaiCommissionCap.channel == None,
                    func.lower(IrdaiCommissionCap.channel) == channel.strip().lower(),
                )
            )

        return query.order_by(IrdaiCommissionCap.policy_year, IrdaiCommissionCap.cap_id).all()

    def resolve_cap(
        self,
        lob_id: Optional[int],
        policy_year: int,
        as_of: Optional[date] = None,
        channel: Optional[str] = None,
    ) -> Optional[IrdaiCommissionCap]:
        """
        The single cap governing (lob, policy_year) on ``as_of``.

        Ties are broken deterministically: a cap for the exact channel beats a
        channel-agnostic one, then the most recently effective cap wins, then
        the lowest cap_id.
        """
        if lob_id is None:
            return None
        as_of = as_of or date.today()

        candidates = self._current(
            self.db.query(IrdaiCommissionCap).filter(
                IrdaiCommissionCap.lob_id == lob_id,
                IrdaiCommissionCap.policy_year == policy_year,
            ),
            as_of,
        ).all()

        if channel:
            candidates = [c for c in candidates if c.channel is None or _same_channel(c.channel, channel)]
        if not candidates:
            return None

        def specificity(cap):
            if channel:
                return 0 if cap.channel is not None else 1
            return 0 if cap.channel is None else 1

        candidates.sort(key=lambda c: (specificity(c), -c.effective_from.toordinal(), c.cap_id))
        return candidates[0]

    def add_cap(self, data: IrdaiCapCreate) -> IrdaiCommissionCap:
        """Insert a cap, refusing windows that overlap an existing cap for the same key."""
        if data.effective_to is not None and data.effective_to < data.effective_from:
            raise ValidationError("effective_to must be on or after effective_from")

        if not self.db.query(LineOfBusiness).filter(LineOfBusiness.id == data.lob_id).first():
            raise ValidationError(f"Unknown lob_id {data.lob_id}")

        existing = self.db.query(IrdaiCommissionCap).filter(
            IrdaiCommissionCap.lob_id == data.lob_id,
            IrdaiCommissionCap.policy_year == data.policy_year,
        ).all()
        for cap in existing:
            if not _same_channel(cap.channel, data.channel):
                continue
            if _windows_overlap(cap.effective_from, cap.effective_to, data.effective_from, data.effective_to):
                raise ValidationError(
                    f"Cap overlaps existing cap {cap.cap_id} for the same line of business, "
                    f"policy year and channel"
                )

        cap = IrdaiCommissionCap(**data.model_dump())
        self.db.add(cap)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(cap)
        logger.info(f"IRDAI cap {cap.cap_id} added: lob={cap.lob_id} year={cap.policy_year} "
                    f"channel={cap.channel} max={cap.max_commission_percent}")
        return cap

    @staticmethod
    def serialize(cap: IrdaiCommissionCap) -> dict:
        return {
            "cap_id": cap.cap_id,
            "lob_id": cap.lob_id,
            "lob": cap.lob.lob_name if cap.lob else None,
            "channel": cap.channel,
            "policy_year": cap.policy_year,
            "max_rate": float(cap.max_commission_percent),
            "product_category": cap.product_category,
            "effective_from": cap.effective_from.isoformat(),
            "effective_to": cap.effective_to.isoformat() if cap.effective_to else None,
        }
