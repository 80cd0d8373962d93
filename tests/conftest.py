"""Pytest configuration and shared fixtures for FamilyBudget tests.

Every test gets its own application bound to a temporary SQLite file, with
synchronous background jobs and the in-memory outbox mailer.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from familybudget import create_app
from familybudget.extensions import session_scope
from familybudget.models import Category, Expense, Family, Subscription, Threshold, User
from familybudget.models.user import ROLE_ADMIN, ROLE_MEMBER, ROLE_USER
from familybudget.services.auth import create_user
from familybudget.services.jobs import clear_jobs, set_async_execution
from familybudget.services.mailer import get_mailer

DEFAULT_PASSWORD = "secret123"


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture()
def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Application configured for tests against a throwaway database."""

    monkeypatch.setenv("FAMILYBUDGET_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("FAMILYBUDGET_DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("FAMILYBUDGET_RECEIPTS_DIR", str(tmp_path / "receipts"))

    app = create_app("testing")
    clear_jobs()

    yield app

    set_async_execution(True)
    clear_jobs()


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def outbox(app):
    """Messages captured by the in-memory mailer."""

    mailer = get_mailer(app)
    mailer.clear()
    return mailer.outbox


# =============================================================================
# Test Data Factories
# =============================================================================


class Factory:
    """Create committed rows, each in its own short transaction.

    Rows are returned detached, so tests can mix factory data with requests
    made through the test client.
    """

    def user(
        self,
        email: str = "parent@example.com",
        name: str = "Parent",
        *,
        password: str = DEFAULT_PASSWORD,
        family: Family | None = None,
        role: str | None = None,
    ) -> User:
        with session_scope() as session:
            user = create_user(
                session,
                email=email,
                name=name,
                password=password,
                role=role or (ROLE_MEMBER if family is not None else ROLE_USER),
                family_id=family.id if family is not None else None,
            )
        return user

    def family(
        self,
        name: str = "Smith",
        budget: float = 1000.0,
        *,
        admin: User | None = None,
    ) -> Family:
        with session_scope() as session:
            family = Family(name=name, monthly_target_budget=budget)
            session.add(family)
            session.flush()
            if admin is not None:
                member = session.get(User, admin.id)
                member.family_id = family.id
                member.role = ROLE_ADMIN
                session.add(member)
                admin.family_id = family.id
                admin.role = ROLE_ADMIN
        return family

    def category(self, name: str = "Groceries", *, is_deleted: bool = False) -> Category:
        with session_scope() as session:
            category = Category(name=name, is_deleted=is_deleted)
            session.add(category)
            session.flush()
        return category

    def expense(
        self,
        user: User,
        amount: float,
        occurred_at: datetime | date,
        *,
        category: Category | None = None,
        name: str = "Expense",
        subscription: Subscription | None = None,
        receipt_image: str | None = None,
    ) -> Expense:
        if not isinstance(occurred_at, datetime):
            occurred_at = datetime.combine(occurred_at, datetime.min.time())
        category = category or self._default_category()
        with session_scope() as session:
            expense = Expense(
                user_id=user.id,
                category_id=category.id,
                name=name,
                amount=amount,
                occurred_at=occurred_at,
                subscription_id=subscription.id if subscription else None,
                receipt_image=receipt_image,
            )
            session.add(expense)
            session.flush()
        return expense

    def subscription(
        self,
        user: User,
        *,
        amount: float = 9.99,
        next_due_date: date,
        frequency: str = "monthly",
        category: Category | None = None,
        name: str = "Streaming",
        is_active: bool = True,
    ) -> Subscription:
        category = category or self._default_category()
        with session_scope() as session:
            subscription = Subscription(
                user_id=user.id,
                category_id=category.id,
                name=name,
                amount=amount,
                frequency=frequency,
                next_due_date=next_due_date,
                is_active=is_active,
            )
            session.add(subscription)
            session.flush()
        return subscription

    def threshold(self, family: Family, category: Category, amount: float) -> Threshold:
        with session_scope() as session:
            threshold = Threshold(family_id=family.id, category_id=category.id, amount=amount)
            session.add(threshold)
            session.flush()
        return threshold

    def _default_category(self) -> Category:
        from sqlmodel import select

        with session_scope() as session:
            existing = session.exec(select(Category).where(Category.name == "General")).first()
            if existing is not None:
                return existing
            category = Category(name="General")
            session.add(category)
            session.flush()
        return category


@pytest.fixture()
def factory(app) -> Factory:
    return Factory()


# =============================================================================
# Helper Utilities
# =============================================================================


def login(client, email: str, password: str = DEFAULT_PASSWORD):
    """Log ``email`` in through the login form."""

    return client.post(
        "/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


def assert_float_equal(actual: float, expected: float, tolerance: float = 0.01):
    """Assert that two floats are equal within a tolerance."""

    assert (
        abs(actual - expected) < tolerance
    ), f"Expected {expected}, got {actual} (diff: {abs(actual - expected)})"
