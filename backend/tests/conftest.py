import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import Base, get_db
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.models import (
    Agent, Customer, Invoice, Payment, CommissionTier, User,
)

TIERS = [
    (Decimal("0"), Decimal("0")),
    (Decimal("10000"), Decimal("0.01")),
    (Decimal("20000"), Decimal("0.02")),
    (Decimal("50000"), Decimal("0.03")),
]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tiers(db):
    """Default bonus schedule: 0% / 1% from 10K / 2% from 20K / 3% from 50K."""
    rows = [
        CommissionTier(
            schedule_version=settings.COMMISSION_TIER_SCHEDULE,
            min_anp=min_anp,
            bonus_rate=rate,
            description=f"{min_anp}+",
        )
        for min_anp, rate in TIERS
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def make_agent(db):
    def _make(agent_id, name=None, agent_type="internal"):
        agent = Agent(id=agent_id, name=name or f"Agent {agent_id}", agent_type=agent_type)
        db.add(agent)
        db.commit()
        return agent
    return _make


@pytest.fixture
def make_invoice(db):
    """Create an invoice with optional payments given as ``[(datetime, amount), ...]``.

    When payments are given and ``first_payment_date`` is not, the earliest payment sets it.
    """
    def _make(
        invoice_id,
        agent_id=None,
        amount="10000",
        eligible=None,
        payments=(),
        first_payment_date=None,
        full_payment_date=None,
        anp=None,
        customer_id=None,
        invoice_number=None,
    ):
        invoice = Invoice(
            id=invoice_id,
            invoice_number=invoice_number,
            agent_id=agent_id,
            customer_id=customer_id,
            amount=Decimal(amount) if amount is not None else None,
            amount_eligible_for_comm=Decimal(eligible) if eligible is not None else None,
            full_payment_date=full_payment_date,
            achieved_monthly_anp=Decimal(anp) if anp is not None else None,
            invoice_date=datetime(2024, 1, 1),
        )
        for paid_on, paid in payments:
            invoice.payments.append(Payment(amount=Decimal(paid), payment_date=paid_on, payment_method="transfer"))
        if first_payment_date is None and payments:
            first_payment_date = min(p[0] for p in payments)
        invoice.first_payment_date = first_payment_date
        db.add(invoice)
        db.commit()
        return invoice
    return _make


@pytest.fixture
def make_customer(db):
    def _make(customer_id, name, **kwargs):
        customer = Customer(id=customer_id, name=name, **kwargs)
        db.add(customer)
        db.commit()
        return customer
    return _make


@pytest.fixture
def admin_user(db):
    user = User(
        username="finance.admin",
        full_name="Finance Admin",
        hashed_password=get_password_hash("s3cret-pass"),
        role="admin",
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    with_client = TestClient(app)
    yield with_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.username)}"}


@pytest.fixture
def fail_invoice_writes(db):
    """Make any flush touching a matching dirty invoice raise, as a failing write would."""
    listeners = []

    def _install(predicate):
        def before_flush(session, flush_context, instances):
            if any(isinstance(obj, Invoice) and predicate(obj) for obj in session.dirty):
                raise RuntimeError("could not write invoice")

        event.listen(db, "before_flush", before_flush)
        listeners.append(before_flush)

    yield _install
    for listener in listeners:
        event.remove(db, "before_flush", listener)
