"""Account lookup and opening for the caller."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from centinel.core.db import Account
from centinel.core.errors import NotFound
from centinel.core.models import AccountOpen, AccountView
from centinel.core.utils import get_logger

from .base import TenantService

logger = get_logger("centinel.accounts")


def load_account(session: Session, account_id: str, *, lock: bool = False) -> Account | None:
    """Load the account row fresh from the database, optionally locking it for update."""
    stmt = select(Account).where(Account.account_id == account_id).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    return session.scalars(stmt).first()


def require_account(session: Session, account_id: str, *, lock: bool = False) -> Account:
    """Load the account row or fail with NotFound."""
    account = load_account(session, account_id, lock=lock)
    if account is None:
        msg = "Account not found"
        raise NotFound(msg)
    return account


class AccountService(TenantService):
    """Opens and reads the caller's account."""

    def open(self, payload: AccountOpen) -> AccountView:
        """Create the caller's account with a zero balance; an existing account is returned as is."""
        with self.session.begin():
            account = load_account(self.session, self.account_id)
            if account is None:
                account = Account(
                    account_id=self.account_id,
                    full_name=payload.full_name,
                    avatar_url=payload.avatar_url,
                )
                self.session.add(account)
                self.session.flush()
                logger.info(f"Opened account {self.account_id}")
            return AccountView.model_validate(account)

    def get(self) -> AccountView:
        """Return the caller's account."""
        with self.session.begin():
            return AccountView.model_validate(require_account(self.session, self.account_id))
