"""Reference data: lines of business, insurers, products and IRDAI caps."""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.irdai import IrdaiCommissionCap
from app.models.master import LineOfBusiness, InsuranceProvider, InsuranceProduct
from app.schemas.irdai import IrdaiCapCreate
from app.services.caps import RegulatoryCapService

logger = logging.getLogger(__name__)

LINES_OF_BUSINESS = ["Health", "Motor", "Life", "Travel", "Commercial"]

PROVIDERS = {
    "Star Health": [("Family Health Optima", "Health"), ("Senior Citizens Red Carpet", "Health")],
    "ICICI Lombard": [("Complete Health Insurance", "Health"), ("Private Car Package", "Motor")],
    "HDFC Life": [("Click 2 Protect", "Life")],
    "Tata AIG": [("Travel Guard", "Travel"), ("Business Guard", "Commercial")],
}

# (lob, policy_year, max %) in force from the 2023 expenses-of-management regime
IRDAI_CAPS = [
    ("Health", 1, "15"),
    ("Health", 2, "15"),
    ("Motor", 1, "20"),
    ("Life", 1, "35"),
    ("Life", 2, "7.5"),
    ("Life", 3, "5"),
    ("Travel", 1, "20"),
    ("Commercial", 1, "15"),
]
CAPS_EFFECTIVE_FROM = date(2023, 4, 1)


def seed_reference_data(db: Session) -> None:
    lobs = {}
    for name in LINES_OF_BUSINESS:
        lob = db.query(LineOfBusiness).filter(LineOfBusiness.lob_name == name).first()
        if not lob:
            lob = LineOfBusiness(lob_name=name)
            db.add(lob)
            db.flush()
            logger.info(f"Line of business '{name}' created")
        lobs[name] = lob

    for provider_name, products in PROVIDERS.items():
        provider = db.query(InsuranceProvider).filter(InsuranceProvider.provider_name == provider_name).first()
        if not provider:
            provider = InsuranceProvider(provider_name=provider_name)
            db.add(provider)
            db.flush()
        for product_name, lob_name in products:
            exists = db.query(InsuranceProduct).filter(
                InsuranceProduct.provider_id == provider.id,
                InsuranceProduct.product_name == product_name,
            ).first()
            if not exists:
                db.add(InsuranceProduct(
                    product_name=product_name, provider_id=provider.id, lob_id=lobs[lob_name].id,
                ))
    db.commit()

    caps = RegulatoryCapService(db)
    for lob_name, policy_year, max_pct in IRDAI_CAPS:
        lob_id = lobs[lob_name].id
        exists = db.query(IrdaiCommissionCap).filter(
            IrdaiCommissionCap.lob_id == lob_id,
            IrdaiCommissionCap.policy_year == policy_year,
            IrdaiCommissionCap.channel == None,
        ).first()
        if exists:
            continue
        caps.add_cap(IrdaiCapCreate(
            lob_id=lob_id,
            policy_year=policy_year,
            max_commission_percent=Decimal(max_pct),
            effective_from=CAPS_EFFECTIVE_FROM,
        ))
    logger.info("Reference data seeded")
