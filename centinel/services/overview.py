"""Overview aggregator: the dashboard snapshot.

Income and expenses here are lifetime totals, while the current balance only covers the current
statement period. Both are kept exactly as the dashboard has always shown them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from centinel.core.db import Transaction
from centinel.core.models import (
    BalanceSummary,
    Overview,
    OverviewBalance,
    OverviewBudgets,
    OverviewPots,
    OverviewTransactions,
    TransactionView,
)
from centinel.core.utils import money, utcnow

from .accounts import load_account, require_account
from .base import TenantService
from .budgets import BudgetAggregator
from .pots import list_pots, pot_view, total_saved
from .recurring import bill_summary


class OverviewAggregator(TenantService):
    """Read-only composition of the caller's balance, pots, budgets, transactions and bills."""

    def overview(self, now: datetime | None = None) -> Overview:
        """Compose the dashboard in a single read transaction."""
        now = now or utcnow()
        with self.session.begin():
            account = require_account(self.session, self.account_id)
            income, expenses = self._lifetime_totals()
            pots = OverviewPots(
                total_saved=total_saved(self.session),
                items=[pot_view(pot) for pot in list_pots(self.session, self.settings.overview_pots_limit)],
            )
            budgets = BudgetAggregator(self.session, self.settings).views(now, include_latest=False)
            recent = self.session.scalars(
                select(Transaction)
                .order_by(Transaction.date.desc(), Transaction.created_at.desc())
                .limit(self.settings.recent_transactions_limit)
            )
            return Overview(
                balance=OverviewBalance(current=account.balance, income=income, expenses=expenses),
                pots=pots,
                budgets=OverviewBudgets(items=budgets),
                transactions=OverviewTransactions(recent=[TransactionView.model_validate(txn) for txn in recent]),
                recurring_bills=bill_summary(self.session, now, self.settings.due_soon_days),
            )

    def balance(self) -> BalanceSummary:
        """Current balance with lifetime income and expenses; a missing account reads as zero."""
        with self.session.begin():
            account = load_account(self.session, self.account_id)
            income, expenses = self._lifetime_totals()
            current = account.balance if account is not None else money(0)
            return BalanceSummary(current_balance=current, income=income, expenses=expenses)

    def _lifetime_totals(self) -> tuple[Decimal, Decimal]:
        def _sum(*criteria: object) -> Decimal:
            stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).select_from(Transaction).where(*criteria)
            return money(self.session.scalar(stmt))

        return _sum(Transaction.amount > 0), abs(_sum(Transaction.amount < 0))
