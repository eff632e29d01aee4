"""
Shared Test Fixtures
SQLite test database, dependency override and a small seeded organisation
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.main import app
from src.config.database import Base, get_db
from src.models.approval import ApprovalLevel
from src.models.claim import ClaimType, LimitTimespan
from src.models.user import UserGroup, UserRole
from tests.factories import make_user

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def test_db():
    """Create test database"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    """Session for arranging data and asserting on it"""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def org(db):
    """
    Engineering group with a two-level chain:
    level 1 manager (approve/reject), level 2 finance (approve/reject/pay)
    """
    engineering = UserGroup(name="Engineering")
    management = UserGroup(name="Management")
    db.add_all([engineering, management])
    db.flush()

    admin = make_user(db, "admin@example.com", "Ada", role=UserRole.ADMIN)
    alice = make_user(db, "alice@example.com", "Alice", engineering)
    bob = make_user(db, "bob@example.com", "Bob", engineering)
    manager = make_user(db, "manager@example.com", "Maya", management)
    finance = make_user(db, "finance@example.com", "Felix", management)

    travel = ClaimType(name="Travel", limit_amount=1000.0, limit_timespan=LimitTimespan.ANNUAL)
    meals = ClaimType(name="Meals", limit_amount=50.0, limit_timespan=LimitTimespan.DAILY)
    db.add_all([travel, meals])
    db.flush()

    level_one = ApprovalLevel(
        user_group_id=engineering.id,
        approver_id=manager.id,
        level=1,
        can_approve=True,
        can_reject=True
    )
    level_two = ApprovalLevel(
        user_group_id=engineering.id,
        approver_id=finance.id,
        level=2,
        can_approve=True,
        can_reject=True,
        can_set_payment_in_progress=True,
        can_set_paid=True
    )
    db.add_all([level_one, level_two])
    db.commit()

    return SimpleNamespace(
        engineering=engineering,
        management=management,
        admin=admin,
        alice=alice,
        bob=bob,
        manager=manager,
        finance=finance,
        travel=travel,
        meals=meals,
        level_one=level_one,
        level_two=level_two
    )
