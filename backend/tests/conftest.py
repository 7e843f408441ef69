import os

# Must be set before the app package is imported: settings and the engine are module-level
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_REFERENCE_DATA"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, engine, SessionLocal, get_db
from app.core.security import create_access_token
from app.main import app
from app.models import LineOfBusiness, InsuranceProvider, InsuranceProduct
from app.schemas.commission import CommissionRuleCreate
from app.seed import seed_reference_data
from app.services.rule_store import CommissionRuleService

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def reference(db):
    """Seeded master data + IRDAI caps, as ids by name."""
    seed_reference_data(db)
    return {
        "lob": {l.lob_name: l.id for l in db.query(LineOfBusiness).all()},
        "provider": {p.provider_name: p.id for p in db.query(InsuranceProvider).all()},
        "product": {p.product_name: p.id for p in db.query(InsuranceProduct).all()},
    }


@pytest.fixture
def health_context(reference):
    """Star Health / Family Health Optima / Health."""
    return {
        "insurer_id": reference["provider"]["Star Health"],
        "product_id": reference["product"]["Family Health Optima"],
        "lob_id": reference["lob"]["Health"],
    }


@pytest.fixture
def make_rule(db, health_context):
    service = CommissionRuleService(db)

    def _make(tenant_id=TENANT, actor_id="user-1", **fields):
        payload = {
            **health_context,
            "rule_type": "Fixed",
            "base_rate": Decimal("10"),
            "valid_from": date(2024, 1, 1),
        }
        payload.update(fields)
        return service.create_rule(tenant_id, CommissionRuleCreate(**payload), actor_id)

    return _make


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(tenant_id=TENANT, role="agent", user_id="user-1"):
    token = create_access_token(user_id, tenant_id=tenant_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers()
