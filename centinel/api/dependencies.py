"""FastAPI dependencies for DI (settings, caller identity, tenant session, services).

The caller identity is set by the presentation collaborator after it has authenticated the user;
this service only trusts the configured header. Every route receives a session already bound to
that identity, so the tenant filter is in place before any service code runs.
"""

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from centinel.core.db import ACCOUNT_ID_LENGTH, tenant_session
from centinel.core.errors import Unauthorized
from centinel.core.settings import Settings, get_settings
from centinel.services.accounts import AccountService
from centinel.services.budgets import BudgetStore
from centinel.services.overview import OverviewAggregator
from centinel.services.pots import PotStore
from centinel.services.recurring import RecurringBillService
from centinel.services.transactions import TransactionStore


def get_caller(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Resolve the authenticated caller's account id from the identity header."""
    caller = request.headers.get(settings.identity_header, "").strip()
    if not caller:
        msg = "Missing caller identity"
        raise Unauthorized(msg)
    if len(caller) > ACCOUNT_ID_LENGTH:
        msg = "Invalid caller identity"
        raise Unauthorized(msg)
    return caller


def get_session(caller: str = Depends(get_caller)) -> Iterator[Session]:
    """Provide a session scoped to the caller's rows, closed after the request."""
    session = tenant_session(caller)
    try:
        yield session
    finally:
        session.close()


def get_accounts(session: Session = Depends(get_session), settings: Settings = Depends(get_settings)) -> AccountService:
    """Provide the account service."""
    return AccountService(session, settings)


def get_transactions(
    session: Session = Depends(get_session), settings: Settings = Depends(get_settings)
) -> TransactionStore:
    """Provide the transaction store."""
    return TransactionStore(session, settings)


def get_budgets(session: Session = Depends(get_session), settings: Settings = Depends(get_settings)) -> BudgetStore:
    """Provide the budget store."""
    return BudgetStore(session, settings)


def get_pots(session: Session = Depends(get_session), settings: Settings = Depends(get_settings)) -> PotStore:
    """Provide the pot store and transfer engine."""
    return PotStore(session, settings)


def get_overview(
    session: Session = Depends(get_session), settings: Settings = Depends(get_settings)
) -> OverviewAggregator:
    """Provide the overview aggregator."""
    return OverviewAggregator(session, settings)


def get_recurring(
    session: Session = Depends(get_session), settings: Settings = Depends(get_settings)
) -> RecurringBillService:
    """Provide the recurring bill service."""
    return RecurringBillService(session, settings)
