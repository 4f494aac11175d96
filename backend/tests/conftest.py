"""Shared test fixtures for all test modules."""

import contextlib
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.database import Base, get_db
from app.models.add_on import PricingScope
from app.models.shared import utc_now
from app.models.tenant import Tenant
from app.repositories.plan_repository import PlanRepository
from app.schemas.plan import PlanAddOnInput, PlanCreate, PlanFeatureInput, VolumeDiscountTierInput
from app.services.payment_provider import DemoProvider
from app.services.verification_service import otp_rate_limiter

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    import app.models  # noqa: F401

    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture(autouse=True)
def _reset_in_process_state():
    """OTP rate limits and demo gateway intents live in process memory."""
    otp_rate_limiter.reset()
    DemoProvider.reset()
    yield
    otp_rate_limiter.reset()
    DemoProvider.reset()


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def plan_create() -> PlanCreate:
    """$100/month plan, 10% off yearly, with a branch add-on, an org add-on and a bundled add-on."""
    return PlanCreate(
        code="growth",
        name="Growth",
        monthly_price_cents=10000,
        annual_discount_percentage=Decimal("10"),
        included_branches_count=1,
        features=[
            PlanFeatureInput(code="pos", name="Point of sale"),
            PlanFeatureInput(code="reports", name="Reports"),
        ],
        add_ons=[
            PlanAddOnInput(
                code="inventory",
                name="Inventory",
                price_cents=500,
                pricing_scope=PricingScope.BRANCH,
            ),
            PlanAddOnInput(
                code="analytics",
                name="Analytics",
                price_cents=2000,
                pricing_scope=PricingScope.ORGANIZATION,
            ),
            PlanAddOnInput(
                code="support",
                name="Standard support",
                price_cents=1500,
                pricing_scope=PricingScope.ORGANIZATION,
                is_included=True,
            ),
        ],
        volume_discount_tiers=[
            VolumeDiscountTierInput(name="Small", min_branches=1, max_branches=4, discount_percentage=Decimal("0")),
            VolumeDiscountTierInput(name="Medium", min_branches=5, max_branches=9, discount_percentage=Decimal("10")),
            VolumeDiscountTierInput(name="Large", min_branches=10, discount_percentage=Decimal("20")),
        ],
    )


@pytest.fixture
def plan(db_session, plan_create):
    return PlanRepository(db_session).create(plan_create)


@pytest.fixture
def plan_response(db_session, plan):
    return PlanRepository(db_session).build_response(plan)


def _create_tenant(db_session, email: str = "owner@acme.test", verified: bool = False) -> Tenant:
    tenant = Tenant(
        organization_name="Acme Retail",
        contact_name="Ada Owner",
        email=email,
        phone="+15550001111",
    )
    if verified:
        tenant.email_verified_at = utc_now()
        tenant.phone_verified_at = utc_now()
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def make_tenant(db_session):
    """Factory for pending tenants, optionally with both channels verified."""

    def _make(email: str = "owner@acme.test", verified: bool = False) -> Tenant:
        return _create_tenant(db_session, email=email, verified=verified)

    return _make


@pytest.fixture
def tenant(db_session):
    return _create_tenant(db_session)


@pytest.fixture
def verified_tenant(db_session):
    return _create_tenant(db_session, email="verified@acme.test", verified=True)
