"""
Pytest fixtures for supplyline backend tests.

Provides test database setup, directory/catalog factories, actor helpers,
and a test client.
"""

import pytest
from supplyline import create_app
from supplyline.config import TestConfig
from supplyline.extensions import db
from supplyline.models import Account, Product
from supplyline.permissions import Actor
from supplyline.services.order_service import DeliveryDetails, OrderLineRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


class RecordingSink:
    """Notification sink that keeps what it was sent."""

    def __init__(self):
        self.sent = []

    def send(self, notification: dict) -> None:
        self.sent.append(notification)

    def types_for(self, recipient_id: int) -> list[str]:
        return [n["type"] for n in self.sent if n["recipient_id"] == recipient_id]


@pytest.fixture(scope='function')
def sink(app, monkeypatch):
    recorder = RecordingSink()
    monkeypatch.setitem(app.config, "NOTIFICATION_SINK", recorder)
    return recorder


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_account(db_session):
    counter = {"n": 0}

    def _make(role: str, **fields) -> Account:
        counter["n"] += 1
        fields.setdefault("name", f"{role} {counter['n']}")
        fields.setdefault("email", f"{role}{counter['n']}@test.local")
        fields.setdefault("status", "active")
        account = Account(role=role, **fields)
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture(scope='function')
def company(make_account):
    return make_account(
        "company_rep",
        company_name="Deshi Wholesale",
        address="12 Tejgaon I/A",
        area="Tejgaon",
        city="Dhaka",
        phone="01700000001",
    )


@pytest.fixture(scope='function')
def shopkeeper(make_account):
    return make_account(
        "shopkeeper",
        shop_name="Karim General Store",
        address="House 7, Road 3",
        area="Dhanmondi",
        city="Dhaka",
        phone="01700000002",
    )


@pytest.fixture(scope='function')
def worker(make_account):
    return make_account(
        "delivery_worker",
        area="Dhanmondi",
        city="Dhaka",
        assigned_areas=["Dhanmondi", "Mohammadpur"],
        availability="available",
        vehicle_type="motorcycle",
        vehicle_number="DHA-11-2233",
    )


@pytest.fixture(scope='function')
def admin(make_account):
    return make_account("admin")


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(company: Account, *, name: str = "Rice 5kg", price_cents: int = 10000,
              stock: int = 10, unit: str = "bag", **fields) -> Product:
        product = Product(
            company_id=company.id,
            name=name,
            price_cents=price_cents,
            unit=unit,
            stock_quantity=stock,
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


def actor_of(account: Account) -> Actor:
    return Actor(id=account.id, role=account.role)


def actor_headers(account: Account) -> dict:
    """Headers the auth gateway forwards for `account`."""
    return {"X-Actor-Id": str(account.id), "X-Actor-Role": account.role}


@pytest.fixture(scope='function')
def place(db_session):
    """Place an order through the orchestrator: place(shopkeeper, company, [(product, qty), ...])."""
    from supplyline.services import lifecycle_service

    def _place(shopkeeper: Account, company: Account, lines, **details):
        return lifecycle_service.place_order(
            actor_of(shopkeeper),
            company_id=company.id,
            lines=[OrderLineRequest(product_id=p.id, quantity=q) for p, q in lines],
            details=DeliveryDetails(**details),
        )

    return _place


@pytest.fixture(scope='function')
def approved_order(db_session, company, shopkeeper, make_product, place):
    """An approved order for two bags of rice."""
    from supplyline.services import lifecycle_service

    product = make_product(company, stock=10)
    order = place(shopkeeper, company, [(product, 2)], delivery_area="Dhanmondi")
    return lifecycle_service.change_order_status(actor_of(company), order.id, "approved")
