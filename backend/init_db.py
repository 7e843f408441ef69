"""
Create the commission tables, load reference data and print dev tokens.

    python init_db.py            # tables + IRDAI caps + dev tokens
    python init_db.py --no-seed  # tables only
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from app.core.config import settings
from app.core.database import engine, Base, SessionLocal
from app.core.security import create_access_token
from app.models import LineOfBusiness, InsuranceProduct, IrdaiCommissionCap
from app.seed import seed_reference_data

DEV_TENANT = "demo-tenant"


def create_tables():
    print(f"Creating commission tables on {engine.url.render_as_string(hide_password=True)} ...")
    Base.metadata.create_all(bind=engine)
    print(f"✓ {len(Base.metadata.tables)} tables ready")


def load_reference_data():
    db = SessionLocal()
    try:
        seed_reference_data(db)
        print(f"✓ Lines of business: {db.query(LineOfBusiness).count()}")
        print(f"✓ Insurance products: {db.query(InsuranceProduct).count()}")
        print(f"✓ IRDAI caps: {db.query(IrdaiCommissionCap).count()}")
    except Exception as e:
        db.rollback()
        print(f"✗ Reference data not loaded: {e}")
        raise
    finally:
        db.close()


def print_dev_tokens():
    print(f"\nBearer tokens for tenant '{DEV_TENANT}':")
    print(f"  agent         {create_access_token('dev-agent', tenant_id=DEV_TENANT)}")
    print(f"  system admin  {create_access_token('dev-admin', role=settings.SYSTEM_ADMIN_ROLE)}")


if __name__ == "__main__":
    print(f"{settings.APP_NAME} ({settings.ENVIRONMENT})")
    create_tables()
    if "--no-seed" not in sys.argv[1:]:
        load_reference_data()
        print_dev_tokens()
    print("\nStart the API with: uvicorn app.main:app --reload")
