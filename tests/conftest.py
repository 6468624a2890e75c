"""Shared fixtures: a throwaway SQLite database and one fresh account per test."""

import os
import tempfile
import uuid
from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="centinel-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'ledger.db'}"
os.environ["LOG_FILE"] = ""

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from centinel.core.db import init_db, tenant_session  # noqa: E402
from centinel.core.models import AccountOpen, Category, TransactionCreate  # noqa: E402
from centinel.services.accounts import AccountService  # noqa: E402
from centinel.services.transactions import TransactionStore  # noqa: E402

NOW = datetime(2024, 3, 15, 12, 0, 0)
THIS_MONTH = datetime(2024, 3, 10, 9, 0, 0)
LAST_MONTH = datetime(2024, 2, 10, 9, 0, 0)
NEXT_MONTH = datetime(2024, 4, 2, 9, 0, 0)


@pytest.fixture(scope="session", autouse=True)
def _schema() -> None:
    """Create the ledger tables once per test run."""
    init_db()


@pytest.fixture
def account_id() -> str:
    """A fresh caller identity, so tests never see each other's rows."""
    return f"user-{uuid.uuid4()}"


@pytest.fixture
def session(account_id: str) -> Iterator[Session]:
    """A tenant-scoped session for an opened account."""
    db = tenant_session(account_id)
    AccountService(db).open(AccountOpen(full_name="Test User"))
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def headers(account_id: str) -> dict[str, str]:
    """Identity header for API calls made as ``account_id``."""
    return {"x-user-id": account_id}


def record(
    session: Session,
    amount: str,
    date: datetime = THIS_MONTH,
    name: str = "Corner Shop",
    category: Category = Category.GENERAL,
    recurring: bool = False,
    now: datetime = NOW,
) -> str:
    """Record a transaction through the store and return its id."""
    payload = TransactionCreate(
        name=name, amount=Decimal(amount), category=category, date=date, recurring=recurring
    )
    return TransactionStore(session).create(payload, now=now).id
