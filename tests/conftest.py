"""Pytest configuration and fixtures for the stock ledger tests."""

from datetime import datetime
from decimal import Decimal

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.database import Base, get_db
from stockledger.dependencies import get_current_user
from stockledger.main import app
from stockledger.models import Ingredient, Product, ProductKind
from stockledger.services import recipe_costing
from stockledger.services.context import TenantContext

TENANT_ID = 1
USER_ID = 7


@pytest.fixture(scope="function")
def session_factory():
    """Fresh in-memory SQLite database per test, shared by every session."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ctx():
    return TenantContext(tenant_id=TENANT_ID, user_id=USER_ID, user_alias="cajero1", role="ADMIN")


@pytest.fixture
def other_tenant_ctx():
    return TenantContext(tenant_id=2, user_id=USER_ID, user_alias="otro", role="ADMIN")


@pytest.fixture
def fixed_clock():
    moment = pytz.timezone("America/Mexico_City").localize(datetime(2026, 10, 19, 14, 5, 9))
    return lambda: moment


@pytest.fixture
def make_ingredient(db):
    def _make(name, quantity="0", cost="0", tenant_id=TENANT_ID, unit="kg", min_stock="0", **extra):
        ingredient = Ingredient(
            tenant_id=tenant_id,
            name=name,
            unit=unit,
            quantity_on_hand=Decimal(quantity),
            average_cost=Decimal(cost),
            min_stock=Decimal(min_stock),
            **extra,
        )
        db.add(ingredient)
        db.commit()
        return ingredient
    return _make


@pytest.fixture
def make_product(db):
    def _make(name, kind, reference_id=None, price="10", tenant_id=TENANT_ID):
        product = Product(
            tenant_id=tenant_id,
            name=name,
            kind=kind,
            reference_id=reference_id,
            price=Decimal(price),
        )
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def flour(make_ingredient):
    return make_ingredient("Flour", quantity="10", cost="2.5", min_stock="1")


@pytest.fixture
def bread_recipe(db, ctx, flour):
    """Bread = 0.5 kg of flour per unit."""
    recipe = recipe_costing.save_recipe(
        db, ctx, "Bread", [{"ingredient_id": flour.id, "quantity": "0.5", "unit_cost": "2.5"}]
    )
    db.commit()
    return recipe


@pytest.fixture
def bread(make_product, bread_recipe):
    return make_product("Bread", ProductKind.RECETA, reference_id=bread_recipe.id, price="20")


@pytest.fixture
def client(session_factory, ctx):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_get_current_user():
        return {
            "user_id": ctx.user_id,
            "tenant_id": ctx.tenant_id,
            "alias": ctx.user_alias,
            "role": ctx.role,
        }

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
