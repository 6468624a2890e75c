"""Savings pots: CRUD and the pot transfer engine.

Money moves between the account balance and a pot only through ``deposit``, ``withdraw`` and
``delete``. Each runs in a single database transaction that locks the account row first and the
pot row second, checks every business rule before writing, and applies both sides of the move
together. The sum of the balance and all pot totals is therefore conserved by every transfer.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from centinel.core.db import Pot
from centinel.core.errors import (
    DuplicateCategoryOrTheme,
    InsufficientBalance,
    InsufficientPotBalance,
    InvalidAmount,
    NotFound,
)
from centinel.core.models import PotCreate, PotUpdate, PotView, TransferResult
from centinel.core.utils import get_logger, money, utcnow

from .accounts import load_account, require_account
from .base import TenantService

logger = get_logger("centinel.pots")


def pot_percentage(total: Decimal, target: Decimal) -> Decimal:
    """Progress towards the target in percent; 0 when the target is 0."""
    if target <= 0:
        return Decimal("0")
    return total / target * 100


def pot_remaining(total: Decimal, target: Decimal) -> Decimal:
    """Amount still missing to reach the target; negative once the target is exceeded."""
    return target - total


def pot_view(pot: Pot) -> PotView:
    """Build the read view of a pot with its derived fields."""
    return PotView(
        id=pot.id,
        account_id=pot.account_id,
        name=pot.name,
        target=pot.target,
        total=pot.total,
        theme=pot.theme,
        percentage=pot_percentage(pot.total, pot.target),
        remaining=pot_remaining(pot.total, pot.target),
        created_at=pot.created_at,
        updated_at=pot.updated_at,
    )


def list_pots(session: Session, limit: int | None = None) -> list[Pot]:
    """Pots of the session's account in insertion order."""
    stmt = select(Pot).order_by(Pot.created_at, Pot.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def total_saved(session: Session) -> Decimal:
    """Sum of all pot totals of the session's account."""
    return money(session.scalar(select(func.coalesce(func.sum(Pot.total), 0)).select_from(Pot)))


class PotStore(TenantService):
    """CRUD and transfers for the caller's pots."""

    def all(self) -> list[PotView]:
        """List every pot with its progress."""
        with self.session.begin():
            return [pot_view(pot) for pot in list_pots(self.session)]

    def get(self, pot_id: str) -> PotView:
        """Return one pot."""
        with self.session.begin():
            return pot_view(self._load(pot_id))

    def create(self, payload: PotCreate) -> PotView:
        """Create an empty pot; its theme must be unused by the account's other pots."""
        with self.session.begin():
            require_account(self.session, self.account_id)
            self._check_theme(payload.theme)
            pot = Pot(
                account_id=self.account_id,
                name=payload.name,
                target=payload.target,
                total=Decimal("0"),
                theme=payload.theme,
            )
            self.session.add(pot)
            self._flush()
            view = pot_view(pot)
        logger.info(f"Created pot {view.id} for {self.account_id}: target={view.target}")
        return view

    def update(self, pot_id: str, payload: PotUpdate) -> PotView:
        """Rename, retarget or re-theme a pot. The total is left alone."""
        changes = payload.changes()
        with self.session.begin():
            pot = self._load(pot_id)
            if "theme" in changes:
                self._check_theme(changes["theme"], exclude_id=pot.id)
            for field, value in changes.items():
                setattr(pot, field, value)
            if changes:
                pot.updated_at = utcnow()
                self._flush()
            view = pot_view(pot)
        logger.info(f"Updated pot {pot_id} for {self.account_id}: fields={sorted(changes)}")
        return view

    def deposit(self, pot_id: str, amount: Decimal | None) -> TransferResult:
        """Move ``amount`` from the account balance into the pot."""
        amount = self._check_amount(amount)
        with self.session.begin():
            account = load_account(self.session, self.account_id, lock=True)
            pot = self._load(pot_id, lock=True)
            if account is None:
                msg = "Account not found"
                raise NotFound(msg)
            if account.balance < amount:
                logger.warning(f"Deposit of {amount} into pot {pot_id} rejected: balance {account.balance}")
                raise InsufficientBalance()
            stamp = utcnow()
            account.balance -= amount
            account.updated_at = stamp
            pot.total += amount
            pot.updated_at = stamp
            self.session.flush()
            result = TransferResult(pot=pot_view(pot), new_balance=account.balance)
        logger.info(f"Deposited {amount} into pot {pot_id} for {self.account_id}")
        return result

    def withdraw(self, pot_id: str, amount: Decimal | None) -> TransferResult:
        """Move ``amount`` from the pot back to the account balance."""
        amount = self._check_amount(amount)
        with self.session.begin():
            account = load_account(self.session, self.account_id, lock=True)
            pot = self._load(pot_id, lock=True)
            if pot.total < amount:
                logger.warning(f"Withdrawal of {amount} from pot {pot_id} rejected: pot total {pot.total}")
                raise InsufficientPotBalance()
            if account is None:
                msg = "Account not found"
                raise NotFound(msg)
            stamp = utcnow()
            pot.total -= amount
            pot.updated_at = stamp
            account.balance += amount
            account.updated_at = stamp
            self.session.flush()
            result = TransferResult(pot=pot_view(pot), new_balance=account.balance)
        logger.info(f"Withdrew {amount} from pot {pot_id} for {self.account_id}")
        return result

    def delete(self, pot_id: str) -> None:
        """Delete a pot, returning its whole total to the account balance first."""
        with self.session.begin():
            account = load_account(self.session, self.account_id, lock=True)
            pot = self._load(pot_id, lock=True)
            returned = pot.total
            if returned > 0:
                if account is None:
                    msg = "Account not found"
                    raise NotFound(msg)
                account.balance += returned
                account.updated_at = utcnow()
            self.session.delete(pot)
            self.session.flush()
        logger.info(f"Deleted pot {pot_id} for {self.account_id}: returned {returned} to balance")

    @staticmethod
    def _check_amount(amount: Decimal | None) -> Decimal:
        if amount is None or amount <= 0:
            raise InvalidAmount()
        if amount != money(amount):
            msg = "Amount must have at most two decimal places"
            raise InvalidAmount(msg)
        return amount

    def _load(self, pot_id: str, *, lock: bool = False) -> Pot:
        stmt = select(Pot).where(Pot.id == pot_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        pot = self.session.scalars(stmt).first()
        if pot is None:
            msg = "Pot not found"
            raise NotFound(msg)
        return pot

    def _check_theme(self, theme: str, exclude_id: str | None = None) -> None:
        stmt = select(Pot.id).where(Pot.theme == theme)
        if exclude_id is not None:
            stmt = stmt.where(Pot.id != exclude_id)
        if self.session.scalars(stmt).first() is not None:
            msg = f"Theme '{theme}' is already used by another pot"
            logger.warning(f"Rejected pot write for {self.account_id}: {msg}")
            raise DuplicateCategoryOrTheme(msg)

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            msg = "Theme is already used by another pot"
            raise DuplicateCategoryOrTheme(msg) from exc
