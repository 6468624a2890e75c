"""Ledger store operations for transactions.

Every write runs in one database transaction together with its balance accrual step, so a
transaction row and the balance it contributes to are always committed (or rolled back) together.
"""

import math
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from centinel.core.db import Transaction
from centinel.core.errors import NotFound, ValidationFailed
from centinel.core.models import (
    ALL_CATEGORIES_FILTER,
    DEFAULT_AVATAR,
    Category,
    SortOption,
    TransactionCreate,
    TransactionPage,
    TransactionUpdate,
    TransactionView,
)
from centinel.core.settings import Settings
from centinel.core.utils import get_logger, to_storage, utcnow

from .accounts import require_account
from .balance import BalanceAccrual
from .base import TenantService

logger = get_logger("centinel.transactions")

ORDERINGS = {
    SortOption.LATEST: (Transaction.date.desc(),),
    SortOption.OLDEST: (Transaction.date.asc(),),
    SortOption.A_TO_Z: (func.lower(Transaction.name).asc(),),
    SortOption.Z_TO_A: (func.lower(Transaction.name).desc(),),
    SortOption.HIGHEST: (func.abs(Transaction.amount).desc(),),
    SortOption.LOWEST: (func.abs(Transaction.amount).asc(),),
}


def parse_category_filter(category: str | None) -> Category | None:
    """Turn a category filter into a Category; empty and the "All Transactions" sentinel mean no filter."""
    if not category or category == ALL_CATEGORIES_FILTER:
        return None
    try:
        return Category(category)
    except ValueError as exc:
        msg = f"Unknown category: {category}"
        raise ValidationFailed(msg) from exc


class TransactionStore(TenantService):
    """CRUD over the caller's transactions."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        """Initialize the store and its balance accrual engine."""
        super().__init__(session, settings)
        self.accrual = BalanceAccrual(self.session, self.account_id)

    def list(
        self,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
        sort: SortOption = SortOption.LATEST,
        category: str | None = None,
    ) -> TransactionPage:
        """List transactions with search, category filter, sorting and offset pagination."""
        limit = limit or self.settings.default_page_limit
        if page < 1:
            msg = "page must be at least 1"
            raise ValidationFailed(msg)
        if limit < 1 or limit > self.settings.max_page_limit:
            msg = f"limit must be between 1 and {self.settings.max_page_limit}"
            raise ValidationFailed(msg)
        criteria = []
        if search:
            criteria.append(Transaction.name.icontains(search, autoescape=True))
        category_filter = parse_category_filter(category)
        if category_filter is not None:
            criteria.append(Transaction.category == category_filter.value)

        with self.session.begin():
            count = select(func.count(Transaction.id)).select_from(Transaction).where(*criteria)
            total = self.session.scalar(count) or 0
            stmt = (
                select(Transaction)
                .where(*criteria)
                .order_by(*ORDERINGS[sort], Transaction.created_at.asc(), Transaction.id.asc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = [TransactionView.model_validate(txn) for txn in self.session.scalars(stmt)]
        return TransactionPage(items=items, total=total, page=page, pages=math.ceil(total / limit), limit=limit)

    def get(self, txn_id: str) -> TransactionView:
        """Return one transaction."""
        with self.session.begin():
            return TransactionView.model_validate(self._load(txn_id))

    def create(self, payload: TransactionCreate, now: datetime | None = None) -> TransactionView:
        """Record a transaction and accrue it into the balance."""
        with self.session.begin():
            require_account(self.session, self.account_id)
            txn = Transaction(
                account_id=self.account_id,
                name=payload.name,
                avatar=payload.avatar or DEFAULT_AVATAR,
                category=payload.category.value,
                date=to_storage(payload.date),
                amount=payload.amount,
                recurring=payload.recurring,
            )
            self.session.add(txn)
            self.session.flush()
            self.accrual.on_insert(txn, now)
            view = TransactionView.model_validate(txn)
        logger.info(f"Created transaction {view.id} for {self.account_id}: amount={view.amount}")
        return view

    def update(self, txn_id: str, payload: TransactionUpdate, now: datetime | None = None) -> TransactionView:
        """Apply a partial update and re-accrue the balance for the old and new values."""
        changes = payload.changes()
        if "date" in changes:
            changes["date"] = to_storage(changes["date"])
        with self.session.begin():
            txn = self._load(txn_id, lock=True)
            old_date, old_amount = txn.date, txn.amount
            for field, value in changes.items():
                setattr(txn, field, value)
            if changes:
                txn.updated_at = utcnow()
                self.session.flush()
                self.accrual.on_update(old_date, old_amount, txn, now)
            view = TransactionView.model_validate(txn)
        logger.info(f"Updated transaction {txn_id} for {self.account_id}: fields={sorted(changes)}")
        return view

    def delete(self, txn_id: str, now: datetime | None = None) -> None:
        """Remove a transaction and take it back out of the balance."""
        with self.session.begin():
            txn = self._load(txn_id, lock=True)
            self.session.delete(txn)
            self.session.flush()
            self.accrual.on_delete(txn, now)
        logger.info(f"Deleted transaction {txn_id} for {self.account_id}")

    def _load(self, txn_id: str, *, lock: bool = False) -> Transaction:
        stmt = select(Transaction).where(Transaction.id == txn_id)
        if lock:
            stmt = stmt.with_for_update()
        txn = self.session.scalars(stmt).first()
        if txn is None:
            msg = "Transaction not found"
            raise NotFound(msg)
        return txn
