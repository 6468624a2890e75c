"""Recurring bill classifier.

There is no bill entity: a bill is inferred from recurring expense transactions sharing a name.
The latest transaction of each name stands for the bill, and its day of month is the due day.
Status is derived against the current date every time and never stored:

- paid: the latest transaction is dated in the current month.
- due-soon: not paid, and the due day falls within the next ``due_soon_days`` days of this month.
- upcoming: everything else, including bills whose due day has already passed unpaid.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from centinel.core.db import Transaction
from centinel.core.models import (
    BillRollup,
    BillStatus,
    RecurringBill,
    RecurringBills,
    RecurringSummary,
    SortOption,
    TransactionView,
)
from centinel.core.utils import in_period, to_storage, utcnow

from .base import TenantService

DEFAULT_DUE_SOON_DAYS = 5


def latest_per_vendor(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Keep the latest transaction of each name, ordered by name."""
    latest: dict[str, Transaction] = {}
    for txn in transactions:
        current = latest.get(txn.name)
        if current is None or (txn.date, txn.created_at) > (current.date, current.created_at):
            latest[txn.name] = txn
    return [latest[name] for name in sorted(latest)]


def classify(bill_date: datetime, now: datetime, due_soon_days: int = DEFAULT_DUE_SOON_DAYS) -> BillStatus:
    """Classify a bill from the date of its latest payment."""
    if in_period(bill_date, now):
        return BillStatus.PAID
    today = to_storage(now).day
    if today < bill_date.day <= today + due_soon_days:
        return BillStatus.DUE_SOON
    return BillStatus.UPCOMING


def classify_bills(
    transactions: Iterable[Transaction], now: datetime, due_soon_days: int = DEFAULT_DUE_SOON_DAYS
) -> list[RecurringBill]:
    """Turn recurring expense transactions into classified bills, one per vendor name."""
    bills = []
    for txn in latest_per_vendor(transactions):
        fields = TransactionView.model_validate(txn).model_dump()
        bills.append(
            RecurringBill(**fields, status=classify(txn.date, now, due_soon_days), due_day=txn.date.day)
        )
    return bills


def search_bills(bills: list[RecurringBill], search: str | None) -> list[RecurringBill]:
    """Case-insensitive substring match on the bill name."""
    if not search:
        return list(bills)
    needle = search.casefold()
    return [bill for bill in bills if needle in bill.name.casefold()]


def sort_bills(bills: list[RecurringBill], sort: SortOption = SortOption.LATEST) -> list[RecurringBill]:
    """Sort bills; "Latest"/"Oldest" order by due day, ties keep name order."""
    ordered = sorted(bills, key=lambda bill: bill.name.casefold())
    if sort is SortOption.LATEST:
        return sorted(ordered, key=lambda bill: bill.due_day)
    if sort is SortOption.OLDEST:
        return sorted(ordered, key=lambda bill: bill.due_day, reverse=True)
    if sort is SortOption.Z_TO_A:
        return list(reversed(ordered))
    if sort is SortOption.HIGHEST:
        return sorted(ordered, key=lambda bill: abs(bill.amount), reverse=True)
    if sort is SortOption.LOWEST:
        return sorted(ordered, key=lambda bill: abs(bill.amount))
    return ordered


def _rollup(bills: list[RecurringBill]) -> BillRollup:
    return BillRollup(count=len(bills), amount=sum((abs(bill.amount) for bill in bills), Decimal("0")))


def summarize(bills: list[RecurringBill]) -> RecurringSummary:
    """Roll bills up by status. ``total``/``totalAmount`` count outstanding bills only."""
    paid = [bill for bill in bills if bill.status is BillStatus.PAID]
    outstanding = [bill for bill in bills if bill.status is not BillStatus.PAID]
    due_soon = [bill for bill in bills if bill.status is BillStatus.DUE_SOON]
    upcoming = _rollup(outstanding)
    return RecurringSummary(
        total=upcoming.count,
        total_amount=upcoming.amount,
        paid=_rollup(paid),
        upcoming=upcoming,
        due_soon=_rollup(due_soon),
    )


def load_recurring_expenses(session: Session) -> list[Transaction]:
    """All recurring expense transactions of the session's account."""
    stmt = select(Transaction).where(Transaction.recurring.is_(True), Transaction.amount < 0)
    return list(session.scalars(stmt))


class RecurringBillService(TenantService):
    """Reads the caller's recurring bills."""

    def bills(
        self, search: str | None = None, sort: SortOption = SortOption.LATEST, now: datetime | None = None
    ) -> RecurringBills:
        """Classified bills filtered by ``search`` and ordered by ``sort``, plus a summary of all bills."""
        now = now or utcnow()
        with self.session.begin():
            classified = classify_bills(load_recurring_expenses(self.session), now, self.settings.due_soon_days)
        return RecurringBills(bills=sort_bills(search_bills(classified, search), sort), summary=summarize(classified))


def bill_summary(session: Session, now: datetime, due_soon_days: int = DEFAULT_DUE_SOON_DAYS) -> RecurringSummary:
    """Summary of all recurring bills, for use inside an open transaction."""
    return summarize(classify_bills(load_recurring_expenses(session), now, due_soon_days))

