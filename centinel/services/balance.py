"""Balance accrual engine.

An account's balance is its spendable cash for the current statement period: the sum of the
amounts of its transactions dated in the current UTC calendar month. The ledger store calls this
engine synchronously, inside the same database transaction, after every transaction insert,
update or delete. "Now" is evaluated at write time, so a transaction dated outside the current
month has no effect on the balance until it is edited into it.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from centinel.core.db import Account, Transaction
from centinel.core.utils import get_logger, in_period, money, period_bounds, utcnow

logger = get_logger("centinel.balance")


class BalanceAccrual:
    """Applies the balance effect of transaction writes for one account."""

    def __init__(self, session: Session, account_id: str) -> None:
        """Initialize the engine for the account owning the session."""
        self.session = session
        self.account_id = account_id

    def on_insert(self, txn: Transaction, now: datetime | None = None) -> None:
        """Add a new transaction's amount if it is dated in the current period."""
        if in_period(txn.date, now):
            self._adjust(txn.amount)

    def on_update(
        self, old_date: datetime, old_amount: Decimal, txn: Transaction, now: datetime | None = None
    ) -> None:
        """Reverse the old values and apply the new ones, each only if dated in the current period."""
        delta = Decimal("0")
        touched = False
        if in_period(old_date, now):
            delta -= old_amount
            touched = True
        if in_period(txn.date, now):
            delta += txn.amount
            touched = True
        if touched:
            self._adjust(delta)

    def on_delete(self, txn: Transaction, now: datetime | None = None) -> None:
        """Subtract a removed transaction's amount if it was dated in the current period."""
        if in_period(txn.date, now):
            self._adjust(-txn.amount)

    def _adjust(self, delta: Decimal) -> None:
        # single UPDATE so concurrent writers cannot lose an increment
        stmt = (
            update(Account)
            .where(Account.account_id == self.account_id)
            .values(balance=Account.balance + delta, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)
        logger.debug(f"Balance of {self.account_id} adjusted by {delta}")


def period_balance(session: Session, now: datetime | None = None) -> Decimal:
    """Recompute the expected balance of the session's account from its transactions."""
    start, end = period_bounds(now)
    stmt = (
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .select_from(Transaction)
        .where(Transaction.date >= start, Transaction.date < end)
    )
    return money(session.scalar(stmt))
