import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CATALOG_BACKEND"] = "sql"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TRUST_GATEWAY_HEADERS"] = "true"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from pedidos import database_sql  # noqa: E402
from pedidos.identity import Caller  # noqa: E402
from pedidos.main import app  # noqa: E402
from pedidos.models import (  # noqa: E402
    AddressORM,
    Base,
    CustomizationOptionORM,
    MenuCustomizationORM,
    MenuItemORM,
    RestaurantORM,
)

OWNER = "owner-1"
OTHER_OWNER = "owner-2"
CUSTOMER = "customer-1"
OTHER_CUSTOMER = "customer-2"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=database_sql.engine)
    session = database_sql.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=database_sql.engine)


@pytest.fixture
def seed(db):
    db.add_all(
        [
            RestaurantORM(
                id="rest1",
                owner_id=OWNER,
                name="La Pizzeria",
                is_active=True,
                delivery_fee=Decimal("2.99"),
                max_delivery_time=45,
            ),
            RestaurantORM(
                id="rest2",
                owner_id=OTHER_OWNER,
                name="Sushi Express",
                is_active=True,
                delivery_fee=Decimal("1.50"),
            ),
            RestaurantORM(
                id="rest3",
                owner_id="owner-3",
                name="Taco House",
                is_active=False,
                delivery_fee=Decimal("2.00"),
            ),
        ]
    )
    db.flush()
    db.add_all(
        [
            MenuItemORM(id="A", restaurant_id="rest1", name="Margarita", price=Decimal("10.00")),
            MenuItemORM(id="B", restaurant_id="rest1", name="Cuatro Quesos", price=Decimal("15.00")),
            MenuItemORM(id="C", restaurant_id="rest1", name="Calzone", price=Decimal("20.00")),
            MenuItemORM(
                id="D",
                restaurant_id="rest1",
                name="Pizza del Mes",
                price=Decimal("12.00"),
                is_available=False,
            ),
            MenuItemORM(id="S1", restaurant_id="rest2", name="Sushi Mix 8", price=Decimal("12.00")),
            MenuItemORM(id="T1", restaurant_id="rest3", name="Taco al Pastor", price=Decimal("2.50")),
        ]
    )
    db.flush()
    db.add(MenuCustomizationORM(id="size", menu_item_id="A", name="Size"))
    db.flush()
    db.add_all(
        [
            CustomizationOptionORM(
                id="large", customization_id="size", name="Large", price_modifier=Decimal("2.50")
            ),
            CustomizationOptionORM(
                id="family",
                customization_id="size",
                name="Family",
                price_modifier=Decimal("6.00"),
                is_available=False,
            ),
        ]
    )
    db.add_all(
        [
            AddressORM(id="addr1", user_id=CUSTOMER, street="Calle Luna 12", city="Madrid"),
            AddressORM(id="addr2", user_id=OTHER_CUSTOMER, street="Avenida Sol 45", city="Madrid"),
        ]
    )
    db.commit()


@pytest.fixture
def client(seed):
    return TestClient(app)


@pytest.fixture
def customer():
    return Caller(id=CUSTOMER, role="cliente")


@pytest.fixture
def owner():
    return Caller(id=OWNER, role="restaurante")


def bearer(user_id, role="cliente", email=None):
    token = jwt.encode(
        {"sub": user_id, "role": role, "email": email or f"{user_id}@example.com"},
        "test-secret",
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def order_payload(items=None, **overrides):
    payload = {
        "restaurant_id": "rest1",
        "items": items
        if items is not None
        else [
            {"menu_item_id": "A", "quantity": 2},
            {"menu_item_id": "B", "quantity": 1},
        ],
        "delivery_address_id": "addr1",
        "payment_method_type": "credit_card",
        "payment_details": {"last4": "4242"},
        "special_instructions": "Ring twice",
        "tip": 0,
    }
    payload.update(overrides)
    return payload


class DummyResponse:
    def __init__(self, status_code, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        return self._json
