from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from storefront.cache import ProductCache, get_cache
from storefront.db import get_session, make_sessionmaker
from storefront.main import app
from storefront.models import Base, Order, OrderItem, Product

from .fakes import FakeRedis


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sessions(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def products(engine):
    """Mouse (id 1) is the newest; Cable is out of stock."""
    now = datetime(2024, 1, 10, 12, 0, 0)
    rows = [
        Product(id=1, name="Mouse", description="Wireless ergonomic mouse", price=Decimal("29.99"),
                stock=50, image_url="/mouse.jpg", created_at=now),
        Product(id=2, name="Keyboard", description="Mechanical keyboard", price=Decimal("89.99"),
                stock=30, image_url="/keyboard.jpg", created_at=now - timedelta(days=1)),
        Product(id=3, name="Cable", description="USB-C cable", price=Decimal("9.50"),
                stock=0, image_url="/cable.jpg", created_at=now + timedelta(days=1)),
    ]
    with Session(engine) as s, s.begin():
        s.add_all(rows)
    return rows


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return ProductCache(fake_redis)


@pytest.fixture
def client(sessions, cache):
    def override_session():
        s = sessions()
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def count(engine, model) -> int:
    with Session(engine) as s:
        return s.scalar(select(func.count()).select_from(model))


@pytest.fixture
def counts(engine):
    return lambda: (count(engine, Order), count(engine, OrderItem))
