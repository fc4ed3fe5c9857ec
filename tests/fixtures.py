"""Shared database setup for the service-level tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime, timezone
from decimal import Decimal

import models  # noqa: F401  registers every table
from database import Base, SessionLocal, engine
from models.category import Category
from models.user import User
from services.pocket_service import create_default_pocket
from services.reference_data import seed_reference_data


def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_reference_data(db)
    finally:
        db.close()


def make_user(db, username="alice", base_currency="SGD") -> User:
    # password hashing is exercised by the auth tests; a placeholder is enough here
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password="x",
        base_currency=base_currency,
    )
    db.add(user)
    db.flush()
    create_default_pocket(db, user.id)
    db.commit()
    return user


def category(db, name: str) -> Category:
    return db.query(Category).filter(Category.name == name).one()


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 1, day, hour, 0, tzinfo=timezone.utc)


def D(value: str) -> Decimal:
    return Decimal(value)


class DatabaseTestMixin:
    """setUp/tearDown giving each test a freshly seeded database and a session."""

    def setUp(self):
        reset_database()
        self.db = SessionLocal()

    def tearDown(self):
        self.db.close()
