"""
Test Configuration and Fixtures
Shared testing infrastructure for EVDMS
"""
import os

# Must be set before evdms reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SECRET_KEY", "evdms-test-secret")

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from evdms import models  # noqa: F401
from evdms.core.database import Base, get_db
from evdms.core.security import Identity, Roles, create_access_token
from evdms.main import app
from evdms.models import (
    CentralInventoryPart, PurchaseOrder, PurchaseOrderItem, ServiceCenter
)
from evdms.services.parts_issue import PartsIssueService

# Test database - in-memory SQLite shared across connections
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test"""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def other_session(db_session: Session) -> Generator[Session, None, None]:
    """A second session on the same database, standing in for a concurrent request"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# Identities

@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=Roles.ADMIN)


@pytest.fixture
def cim() -> Identity:
    return Identity(user_id="cim-1", role=Roles.CENTRAL_INVENTORY_MANAGER)


@pytest.fixture
def sc_manager(service_center) -> Identity:
    return Identity(user_id="scm-1", role=Roles.SC_MANAGER, service_center_id=service_center.id)


@pytest.fixture
def auth_headers():
    """Build bearer headers for an identity"""
    def _headers(identity: Identity) -> dict:
        token = create_access_token(identity.user_id, identity.role, identity.service_center_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# Seed data

@pytest.fixture
def service_center(db_session: Session) -> ServiceCenter:
    center = ServiceCenter(code="BLR01", name="Bengaluru Central Service")
    db_session.add(center)
    db_session.commit()
    return center


@pytest.fixture
def other_service_center(db_session: Session) -> ServiceCenter:
    center = ServiceCenter(code="MUM02", name="Mumbai West Service")
    db_session.add(center)
    db_session.commit()
    return center


@pytest.fixture
def make_part(db_session: Session):
    """Factory for central parts"""
    def _make(part_name="Brake Pad Set", part_number="BP-100", stock_quantity=100, allocated=0, **extra):
        part = CentralInventoryPart(
            part_name=part_name,
            part_number=part_number,
            stock_quantity=stock_quantity,
            allocated=allocated,
            category=extra.pop("category", "Brakes"),
            unit_price=extra.pop("unit_price", 1450),
            cost_price=extra.pop("cost_price", 1100),
            gst_rate=extra.pop("gst_rate", 18),
            min_stock_level=extra.pop("min_stock_level", 10),
            **extra
        )
        db_session.add(part)
        db_session.commit()
        return part
    return _make


@pytest.fixture
def part(make_part) -> CentralInventoryPart:
    return make_part()


@pytest.fixture
def purchase_order(db_session: Session, part: CentralInventoryPart) -> PurchaseOrder:
    """Approved PO ordering 50 units of the default part"""
    order = PurchaseOrder(po_number="PO-2026-0001", status="APPROVED", supplier_name="Volt Components")
    order.items.append(PurchaseOrderItem(
        central_inventory_part_id=part.id,
        part_name=part.part_name,
        part_number=part.part_number,
        quantity=50,
    ))
    db_session.add(order)
    db_session.commit()
    return order


@pytest.fixture
def issue_service(db_session: Session, admin: Identity) -> PartsIssueService:
    return PartsIssueService(db_session, admin)


@pytest.fixture
def create_issue(issue_service: PartsIssueService, service_center: ServiceCenter):
    """Create a single-line request for ``part``"""
    def _create(part, qty, **extra):
        return issue_service.create_request({
            "to_service_center_id": service_center.id,
            "items": [{"central_inventory_part_id": part.id, "requested_qty": qty}],
            **extra
        })
    return _create
