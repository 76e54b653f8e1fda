import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["MAX_CARDS_PER_BUYER"] = "10"
os.environ["RESERVATION_TTL_MINUTES"] = "5"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.db_init import card_layout
from app.main import app
from app.models.card import CardInventory
from app.models.database import Base, get_db

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
CARD_PRICE = Decimal("2.50")


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_card(db: Session, card_number: int, price: Decimal = CARD_PRICE) -> CardInventory:
    card = CardInventory(
        card_number=card_number,
        numbers=card_layout(card_number),
        price=price,
        image_url=f"https://images.example.com/cards/{card_number}.png",
        is_available=True,
    )
    db.add(card)
    db.commit()
    return card


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clock(monkeypatch) -> FrozenClock:
    """Freeze the service clock at NOW; tests move it with clock.advance()."""
    frozen = FrozenClock(NOW)
    monkeypatch.setattr("app.services.clock.utcnow", lambda: frozen.now)
    return frozen


@pytest.fixture
def cards(db: Session) -> list[CardInventory]:
    """Cards 1..10 plus 42 and 99, all available."""
    return [make_card(db, number) for number in [*range(1, 11), 42, 99]]


def _token(sub: str, role: str) -> str:
    return jwt.encode(
        {"sub": sub, "role": role, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {_token('admin-1', 'admin')}"}


@pytest.fixture
def operator_headers() -> dict[str, str]:
    """Valid token without the admin role."""
    return {"Authorization": f"Bearer {_token('operator-1', 'operator')}"}
