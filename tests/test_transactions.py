"""Tests for the transaction ledger store: CRUD, listing, search, filters and sorting."""

from datetime import timedelta
from decimal import Decimal

import pytest
from conftest import NOW, THIS_MONTH, record
from sqlalchemy.orm import Session

from centinel.core.db import tenant_session
from centinel.core.errors import NotFound, ValidationFailed
from centinel.core.models import Category, SortOption, TransactionCreate, TransactionUpdate
from centinel.services.transactions import TransactionStore, parse_category_filter


def test_create_and_get(session: Session) -> None:
    """A created transaction can be read back with defaults filled in."""
    store = TransactionStore(session)
    txn_id = record(session, "-42.10", name="Bravo Bistro", category=Category.DINING_OUT)
    txn = store.get(txn_id)
    if txn.name != "Bravo Bistro" or txn.amount != Decimal("-42.10") or txn.category is not Category.DINING_OUT:
        msg = f"Unexpected transaction: {txn}"
        raise AssertionError(msg)
    if not txn.avatar or txn.recurring:
        msg = "Default avatar and non-recurring flag expected"
        raise AssertionError(msg)
    if txn.date.tzinfo is None:
        msg = "Dates must be reported as UTC-aware"
        raise AssertionError(msg)


def test_create_without_account_is_not_found() -> None:
    """Writing a transaction for an account that was never opened is rejected."""
    db = tenant_session("user-without-account")
    try:
        payload = TransactionCreate(name="Orphan", amount=Decimal("1"), category=Category.GENERAL, date=THIS_MONTH)
        with pytest.raises(NotFound):
            TransactionStore(db).create(payload, now=NOW)
    finally:
        db.close()


def test_update_changes_only_given_fields(session: Session) -> None:
    """Partial updates leave omitted fields untouched."""
    store = TransactionStore(session)
    txn_id = record(session, "-10.00", name="Old Name")
    txn = store.update(txn_id, TransactionUpdate(name="New Name"), now=NOW)
    if txn.name != "New Name" or txn.amount != Decimal("-10.00"):
        msg = f"Unexpected updated transaction: {txn}"
        raise AssertionError(msg)


def test_update_rejects_explicit_null() -> None:
    """Sending null for a field is a validation error, not a way to clear it."""
    with pytest.raises(ValueError, match="cannot be null"):
        TransactionUpdate(name=None)


def test_missing_transaction(session: Session) -> None:
    """Reading, updating or deleting an unknown id reports NotFound."""
    store = TransactionStore(session)
    with pytest.raises(NotFound):
        store.get("missing")
    with pytest.raises(NotFound):
        store.update("missing", TransactionUpdate(name="x"), now=NOW)
    with pytest.raises(NotFound):
        store.delete("missing", now=NOW)


def test_pagination(session: Session) -> None:
    """Fifteen rows with limit 10 give two pages, the second holding five."""
    for i in range(15):
        record(session, "-1.00", date=NOW - timedelta(days=i % 10), name=f"Shop {i:02d}")
    page = TransactionStore(session).list(page=2, limit=10)
    if (page.total, page.pages, page.page, page.limit, len(page.items)) != (15, 2, 2, 10, 5):
        msg = f"Unexpected page metadata: total={page.total} pages={page.pages} items={len(page.items)}"
        raise AssertionError(msg)


def test_empty_listing(session: Session) -> None:
    """An account without transactions lists zero pages."""
    page = TransactionStore(session).list()
    if page.items or page.total != 0 or page.pages != 0 or page.limit != 10:
        msg = f"Unexpected empty page: {page}"
        raise AssertionError(msg)


def test_invalid_paging(session: Session) -> None:
    """Page below 1 or limit above the maximum is a validation error."""
    store = TransactionStore(session)
    with pytest.raises(ValidationFailed):
        store.list(page=0)
    with pytest.raises(ValidationFailed):
        store.list(limit=10_000)


def test_sort_orders(session: Session) -> None:
    """Each sort option orders the listing as documented; amounts sort by magnitude."""
    record(session, "-300.00", date=NOW - timedelta(days=3), name="charlie")
    record(session, "50.00", date=NOW - timedelta(days=1), name="Alpha")
    record(session, "-5.00", date=NOW - timedelta(days=2), name="bravo")
    store = TransactionStore(session)
    expected = {
        SortOption.LATEST: ["Alpha", "bravo", "charlie"],
        SortOption.OLDEST: ["charlie", "bravo", "Alpha"],
        SortOption.A_TO_Z: ["Alpha", "bravo", "charlie"],
        SortOption.Z_TO_A: ["charlie", "bravo", "Alpha"],
        SortOption.HIGHEST: ["charlie", "Alpha", "bravo"],
        SortOption.LOWEST: ["bravo", "Alpha", "charlie"],
    }
    for sort, names in expected.items():
        got = [txn.name for txn in store.list(sort=sort).items]
        if got != names:
            msg = f"{sort.value}: expected {names}, got {got}"
            raise AssertionError(msg)


def test_search_is_case_insensitive_substring(session: Session) -> None:
    """Search matches anywhere in the name regardless of case."""
    record(session, "-9.99", name="Spotify Premium")
    record(session, "-12.00", name="Netflix")
    record(session, "-3.00", name="100% Juice")
    store = TransactionStore(session)
    names = [txn.name for txn in store.list(search="SPOT").items]
    if names != ["Spotify Premium"]:
        msg = f"Unexpected search result: {names}"
        raise AssertionError(msg)
    names = [txn.name for txn in store.list(search="%").items]
    if names != ["100% Juice"]:
        msg = f"Wildcards must be matched literally, got {names}"
        raise AssertionError(msg)


def test_category_filter(session: Session) -> None:
    """Category filters exactly; the "All Transactions" sentinel disables it."""
    record(session, "-20.00", category=Category.GROCERIES)
    record(session, "-30.00", category=Category.BILLS)
    store = TransactionStore(session)
    groceries = store.list(category="Groceries")
    if groceries.total != 1 or groceries.items[0].category is not Category.GROCERIES:
        msg = f"Unexpected filtered listing: {groceries}"
        raise AssertionError(msg)
    if store.list(category="All Transactions").total != 2:
        msg = "The sentinel category must return everything"
        raise AssertionError(msg)
    with pytest.raises(ValidationFailed):
        parse_category_filter("Rent")
