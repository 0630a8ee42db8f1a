"""Pytest configuration and fixtures for the realtime relay tests."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mercadito_backend.business_logic.notifications import seed_notification_types
from mercadito_backend.model import Base, Conversation, Product, ProductPhoto
from mercadito_backend.server import create_app
from mercadito_backend.tests.factories import (
    BUYER_ID,
    CONVERSATION_ID,
    OUTSIDER_ID,
    PRODUCT_ID,
    SELLER_ID,
    add_user,
)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
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
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def marketplace(db):
    """
    Buyer 1 (Ana Perez) and seller 2 (Beto Gomez) share conversation 100
    about product 10. User 3 takes part in nothing.
    """
    seed_notification_types(db)
    add_user(db, BUYER_ID, "Ana", "Perez")
    add_user(db, SELLER_ID, "Beto", "Gomez")
    add_user(db, OUTSIDER_ID, "Ciro", "Diaz")
    db.flush()

    db.add(Product(id=PRODUCT_ID, seller_id=SELLER_ID, title="Bicicleta rodado 29"))
    db.flush()
    db.add_all([
        ProductPhoto(product_id=PRODUCT_ID, url="https://cdn.test/bici-2.jpg", position=1),
        ProductPhoto(product_id=PRODUCT_ID, url="https://cdn.test/bici-1.jpg", position=0),
    ])

    db.add(Conversation(id=CONVERSATION_ID, product_id=PRODUCT_ID, buyer_id=BUYER_ID, seller_id=SELLER_ID))
    db.commit()
    return db


@pytest.fixture
def earlier():
    """``earlier(m)`` is a timestamp ``m`` minutes in the past."""
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return lambda minutes: now - timedelta(minutes=minutes)


# ============================================================================
# Application
# ============================================================================


@pytest.fixture
def app(session_factory, marketplace):
    return create_app(session_factory=session_factory, enable_presence=False, create_schema=False)


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which binds ws_broadcast
    with TestClient(app) as client:
        yield client
