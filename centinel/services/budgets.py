"""Budget aggregation and budget CRUD.

Spend is never stored: it is summed from the expense transactions of the current statement
period each time a budget is read, so it always agrees with the transaction table.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from centinel.core.db import Budget, Transaction
from centinel.core.errors import DuplicateCategoryOrTheme, NotFound
from centinel.core.models import BudgetCreate, BudgetUpdate, BudgetView, TransactionView
from centinel.core.settings import Settings
from centinel.core.utils import get_logger, money, period_bounds, utcnow

from .accounts import require_account
from .base import TenantService

logger = get_logger("centinel.budgets")


class BudgetAggregator:
    """Computes budget spend for the session's account. Read-only; runs inside the caller's transaction."""

    def __init__(self, session: Session, settings: Settings) -> None:
        """Initialize the aggregator with a tenant-scoped session."""
        self.session = session
        self.settings = settings

    def spent_by_category(self, now: datetime | None = None) -> dict[str, Decimal]:
        """Sum the absolute expense amounts per category for the current period."""
        start, end = period_bounds(now)
        stmt = (
            select(Transaction.category, func.sum(Transaction.amount))
            .select_from(Transaction)
            .where(Transaction.amount < 0, Transaction.date >= start, Transaction.date < end)
            .group_by(Transaction.category)
        )
        return {category: abs(money(total)) for category, total in self.session.execute(stmt)}

    def latest_expenses(self, category: str) -> list[Transaction]:
        """Most recent expense transactions in a category, newest first."""
        stmt = (
            select(Transaction)
            .where(Transaction.category == category, Transaction.amount < 0)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(self.settings.budget_latest_limit)
        )
        return list(self.session.scalars(stmt))

    def view(
        self,
        budget: Budget,
        spent_by_category: dict[str, Decimal],
        *,
        include_latest: bool = True,
    ) -> BudgetView:
        """Build the read view of a budget; ``remaining`` is not clamped and goes negative when overspent."""
        spent = spent_by_category.get(budget.category, money(0))
        latest = []
        if include_latest:
            latest = [TransactionView.model_validate(txn) for txn in self.latest_expenses(budget.category)]
        return BudgetView(
            id=budget.id,
            account_id=budget.account_id,
            category=budget.category,
            maximum=budget.maximum,
            theme=budget.theme,
            spent=spent,
            remaining=budget.maximum - spent,
            latest_transactions=latest,
            created_at=budget.created_at,
            updated_at=budget.updated_at,
        )

    def views(self, now: datetime | None = None, *, include_latest: bool = True) -> list[BudgetView]:
        """All budgets of the account in creation order, with spend."""
        spent = self.spent_by_category(now)
        budgets = self.session.scalars(select(Budget).order_by(Budget.created_at, Budget.id))
        return [self.view(budget, spent, include_latest=include_latest) for budget in budgets]


class BudgetStore(TenantService):
    """CRUD over the caller's budgets."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        """Initialize the store and its aggregator."""
        super().__init__(session, settings)
        self.aggregator = BudgetAggregator(self.session, self.settings)

    def list(self, now: datetime | None = None) -> list[BudgetView]:
        """List budgets with spent, remaining and latest expenses."""
        with self.session.begin():
            return self.aggregator.views(now)

    def get(self, budget_id: str, now: datetime | None = None) -> BudgetView:
        """Return one budget with spend."""
        with self.session.begin():
            budget = self._load(budget_id)
            return self.aggregator.view(budget, self.aggregator.spent_by_category(now))

    def create(self, payload: BudgetCreate, now: datetime | None = None) -> BudgetView:
        """Create a budget; category and theme must be unused by the account's other budgets."""
        with self.session.begin():
            require_account(self.session, self.account_id)
            self._check_unique(payload.category.value, payload.theme)
            budget = Budget(
                account_id=self.account_id,
                category=payload.category.value,
                maximum=payload.maximum,
                theme=payload.theme,
            )
            self.session.add(budget)
            self._flush()
            view = self.aggregator.view(budget, self.aggregator.spent_by_category(now))
        logger.info(f"Created budget {view.id} for {self.account_id}: category={view.category.value}")
        return view

    def update(self, budget_id: str, payload: BudgetUpdate, now: datetime | None = None) -> BudgetView:
        """Apply a partial update to a budget."""
        changes = payload.changes()
        with self.session.begin():
            budget = self._load(budget_id)
            self._check_unique(changes.get("category"), changes.get("theme"), exclude_id=budget.id)
            for field, value in changes.items():
                setattr(budget, field, value)
            if changes:
                budget.updated_at = utcnow()
                self._flush()
            view = self.aggregator.view(budget, self.aggregator.spent_by_category(now))
        logger.info(f"Updated budget {budget_id} for {self.account_id}: fields={sorted(changes)}")
        return view

    def delete(self, budget_id: str) -> None:
        """Delete a budget."""
        with self.session.begin():
            self.session.delete(self._load(budget_id))
            self.session.flush()
        logger.info(f"Deleted budget {budget_id} for {self.account_id}")

    def _load(self, budget_id: str) -> Budget:
        budget = self.session.scalars(select(Budget).where(Budget.id == budget_id)).first()
        if budget is None:
            msg = "Budget not found"
            raise NotFound(msg)
        return budget

    def _check_unique(self, category: str | None, theme: str | None, exclude_id: str | None = None) -> None:
        for column, value, label in ((Budget.category, category, "Category"), (Budget.theme, theme, "Theme")):
            if value is None:
                continue
            stmt = select(Budget.id).where(column == value)
            if exclude_id is not None:
                stmt = stmt.where(Budget.id != exclude_id)
            if self.session.scalars(stmt).first() is not None:
                msg = f"{label} '{value}' is already used by another budget"
                logger.warning(f"Rejected budget write for {self.account_id}: {msg}")
                raise DuplicateCategoryOrTheme(msg)

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            msg = "Category or theme is already used by another budget"
            raise DuplicateCategoryOrTheme(msg) from exc
