"""
Shared test fixtures and factories.

Every test gets a fresh in-memory SQLite database (StaticPool so that the
app and the test body share one connection) and a fake clock driving the
rate limiter. Import the fixtures into a directory's conftest.py to use them.
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import src.models  # noqa: F401  (registers every table on Base.metadata)
from src.auth.passwords import hash_password
from src.database.session import get_db_session
from src.db_base import Base
from src.entitlements.plans import PlanTier
from src.middleware.rate_limit import FixedWindowRateLimiter, InMemoryRateLimitStore
from src.models.competitor import Competitor
from src.models.membership import Membership, MembershipRole
from src.models.sku import SKU
from src.models.subscription import SubscriptionStatus, WorkspaceSubscription
from src.models.user import User
from src.models.workspace import Workspace
from src.security.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME

TEST_PASSWORD = "correct-horse-battery"

# A multiple of 60, so a 60-second window starts exactly at the fake epoch
FAKE_EPOCH = 1_700_000_040.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = FAKE_EPOCH):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# FACTORIES
# ============================================================================

def create_user(db, email, password=TEST_PASSWORD, name=None):
    user = User(email=email.lower(), name=name, password_hash=hash_password(password) if password else None)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_workspace(
    db,
    name="Acme Pharmacy",
    plan=None,
    status=None,
    plan_override=None,
    billing_managed_by_reseller=False,
):
    workspace = Workspace(
        name=name,
        plan_override=plan_override,
        billing_managed_by_reseller=billing_managed_by_reseller,
    )
    db.add(workspace)
    db.commit()
    if plan is not None or status is not None:
        db.add(
            WorkspaceSubscription(
                workspace_id=workspace.id,
                plan=plan or PlanTier.STARTER,
                status=status or SubscriptionStatus.ACTIVE,
                cancel_at_period_end=False,
            )
        )
        db.commit()
    db.refresh(workspace)
    return workspace


def add_member(db, user, workspace, role=MembershipRole.ANALYST):
    membership = Membership(user_id=user.id, workspace_id=workspace.id, role=role)
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership


def create_skus(db, workspace, count, prefix="SKU"):
    for i in range(count):
        db.add(
            SKU(
                workspace_id=workspace.id,
                title=f"Product {i}",
                sku=f"{prefix}-{i:04d}",
                cost=10,
                current_price=15,
            )
        )
    db.commit()


def create_competitors(db, workspace, count):
    for i in range(count):
        db.add(Competitor(workspace_id=workspace.id, name=f"Competitor {i}", currency="INR"))
    db.commit()


def login(client, email, password=TEST_PASSWORD, ip=None):
    headers = {"X-Forwarded-For": ip} if ip else {}
    return client.post("/api/auth/login", json={"email": email, "password": password}, headers=headers)


def csrf_headers(client):
    return {CSRF_HEADER_NAME: client.cookies.get(CSRF_COOKIE_NAME)}


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return FixedWindowRateLimiter(InMemoryRateLimitStore(clock=clock), clock=clock)


@pytest.fixture
def app(session_factory, rate_limiter, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    monkeypatch.delenv("ENVIRONMENT", raising=False)

    from src.main import create_app

    application = create_app(rate_limiter=rate_limiter)

    def override_db_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = override_db_session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def tenant(db_session):
    """Workspace A with an OWNER and an ANALYST; workspace B with its own OWNER."""
    workspace_a = create_workspace(db_session, name="Workspace A")
    workspace_b = create_workspace(db_session, name="Workspace B")
    owner = create_user(db_session, "owner@a.example", name="Olivia Owner")
    analyst = create_user(db_session, "analyst@a.example", name="Arjun Analyst")
    outsider = create_user(db_session, "owner@b.example", name="Bea Other")
    add_member(db_session, owner, workspace_a, MembershipRole.OWNER)
    add_member(db_session, analyst, workspace_a, MembershipRole.ANALYST)
    add_member(db_session, outsider, workspace_b, MembershipRole.OWNER)

    return SimpleNamespace(
        workspace_a=workspace_a,
        workspace_b=workspace_b,
        owner=owner,
        analyst=analyst,
        outsider=outsider,
    )
