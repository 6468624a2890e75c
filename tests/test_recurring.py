"""Tests for the recurring bill classifier."""

from datetime import datetime
from decimal import Decimal
from functools import partial

from conftest import NOW, record
from sqlalchemy.orm import Session

from centinel.core.models import BillStatus, Category, SortOption
from centinel.services.recurring import RecurringBillService, classify


def test_classify_against_current_date() -> None:
    """Paid this month, due soon within five days after today, upcoming otherwise."""
    cases = [
        (datetime(2024, 3, 3), BillStatus.PAID),
        (datetime(2024, 3, 28), BillStatus.PAID),
        (datetime(2024, 2, 18), BillStatus.DUE_SOON),
        (datetime(2024, 2, 20), BillStatus.DUE_SOON),
        (datetime(2024, 2, 21), BillStatus.UPCOMING),
        (datetime(2024, 2, 15), BillStatus.UPCOMING),
        (datetime(2024, 2, 14), BillStatus.UPCOMING),
        (datetime(2024, 2, 2), BillStatus.UPCOMING),
        (datetime(2023, 12, 17), BillStatus.DUE_SOON),
    ]
    for bill_date, expected in cases:
        got = classify(bill_date, NOW)
        if got is not expected:
            msg = f"{bill_date:%Y-%m-%d}: expected {expected.value}, got {got.value}"
            raise AssertionError(msg)


def _seed_bills(session: Session) -> None:
    bill = partial(record, session, category=Category.BILLS, recurring=True)
    bill("-15.00", date=datetime(2024, 2, 3), name="Spark Electric")
    bill("-15.00", date=datetime(2024, 3, 3), name="Spark Electric")
    bill("-9.99", date=datetime(2024, 2, 18), name="Pixel Stream")
    bill("-50.00", date=datetime(2024, 2, 27), name="Aqua Flow")
    record(session, "-30.00", date=datetime(2024, 2, 8), name="Gym Club", category=Category.LIFESTYLE)
    record(session, "100.00", date=datetime(2024, 2, 1), name="Refund Co", recurring=True)


def test_one_bill_per_vendor_from_recurring_expenses(session: Session) -> None:
    """Only recurring expenses become bills, and each vendor appears once with its latest payment."""
    _seed_bills(session)
    result = RecurringBillService(session).bills(sort=SortOption.A_TO_Z, now=NOW)
    got = [(bill.name, bill.status, bill.due_day) for bill in result.bills]
    expected = [
        ("Aqua Flow", BillStatus.UPCOMING, 27),
        ("Pixel Stream", BillStatus.DUE_SOON, 18),
        ("Spark Electric", BillStatus.PAID, 3),
    ]
    if got != expected:
        msg = f"Unexpected bills: {got}"
        raise AssertionError(msg)


def test_summary_counts_outstanding_bills(session: Session) -> None:
    """Total covers unpaid bills; each status gets its own count and absolute amount."""
    _seed_bills(session)
    summary = RecurringBillService(session).bills(now=NOW).summary
    if summary.total != 2 or summary.total_amount != Decimal("59.99"):
        msg = f"Expected 2 outstanding bills worth 59.99, got {summary.total} worth {summary.total_amount}"
        raise AssertionError(msg)
    if (summary.paid.count, summary.paid.amount) != (1, Decimal("15.00")):
        msg = f"Unexpected paid rollup: {summary.paid}"
        raise AssertionError(msg)
    if (summary.due_soon.count, summary.due_soon.amount) != (1, Decimal("9.99")):
        msg = f"Unexpected due-soon rollup: {summary.due_soon}"
        raise AssertionError(msg)


def test_search_filters_bills_but_not_summary(session: Session) -> None:
    """Search narrows the bill list while the summary still covers every bill."""
    _seed_bills(session)
    result = RecurringBillService(session).bills(search="stream", now=NOW)
    if [bill.name for bill in result.bills] != ["Pixel Stream"]:
        msg = f"Unexpected search result: {[bill.name for bill in result.bills]}"
        raise AssertionError(msg)
    if result.summary.paid.count + result.summary.total != 3:
        msg = "The summary must not be narrowed by search"
        raise AssertionError(msg)


def test_sorting(session: Session) -> None:
    """Latest orders by due day, Highest by amount magnitude."""
    _seed_bills(session)
    service = RecurringBillService(session)
    expected = {
        SortOption.LATEST: ["Spark Electric", "Pixel Stream", "Aqua Flow"],
        SortOption.OLDEST: ["Aqua Flow", "Pixel Stream", "Spark Electric"],
        SortOption.Z_TO_A: ["Spark Electric", "Pixel Stream", "Aqua Flow"],
        SortOption.HIGHEST: ["Aqua Flow", "Spark Electric", "Pixel Stream"],
        SortOption.LOWEST: ["Pixel Stream", "Spark Electric", "Aqua Flow"],
    }
    for sort, names in expected.items():
        got = [bill.name for bill in service.bills(sort=sort, now=NOW).bills]
        if got != names:
            msg = f"{sort.value}: expected {names}, got {got}"
            raise AssertionError(msg)


def test_no_recurring_transactions(session: Session) -> None:
    """An account without recurring expenses has an empty, zeroed summary."""
    record(session, "-5.00")
    result = RecurringBillService(session).bills(now=NOW)
    if result.bills or result.summary.total != 0 or result.summary.total_amount != Decimal("0"):
        msg = f"Expected no bills, got {result}"
        raise AssertionError(msg)
