"""FastAPI endpoints for the Centinel ledger API.

This module defines the RPC-style surface used by the web client: account, transactions, budgets,
pots and pot transfers, the dashboard overview, and recurring bills. Every data-bearing response is
wrapped as ``{"success": true, "data": ...}`` and every failure as
``{"success": false, "error": {"kind": ..., "message": ...}}``.
"""

from fastapi import APIRouter, Depends, Query

from centinel.api.dependencies import (
    get_accounts,
    get_budgets,
    get_overview,
    get_pots,
    get_recurring,
    get_transactions,
)
from centinel.core.models import (
    AccountOpen,
    AccountView,
    Ack,
    BalanceSummary,
    BudgetCreate,
    BudgetUpdate,
    BudgetView,
    Envelope,
    ErrorEnvelope,
    Overview,
    PotCreate,
    PotUpdate,
    PotView,
    RecurringBills,
    SortOption,
    TransactionCreate,
    TransactionPage,
    TransactionUpdate,
    TransactionView,
    TransferRequest,
    TransferResult,
)
from centinel.services.accounts import AccountService
from centinel.services.budgets import BudgetStore
from centinel.services.overview import OverviewAggregator
from centinel.services.pots import PotStore
from centinel.services.recurring import RecurringBillService
from centinel.services.transactions import TransactionStore

router = APIRouter()


def _errors(*codes: int) -> dict:
    descriptions = {
        401: "Unauthorized: missing or invalid caller identity.",
        404: "NotFound: the entity does not exist or belongs to another account.",
        409: "Business rule rejection (insufficient funds or duplicate category/theme).",
        422: "ValidationError or InvalidAmount.",
    }
    return {code: {"model": ErrorEnvelope, "description": descriptions[code]} for code in codes}


# --- Account ---


@router.post(
    "/account",
    response_model=Envelope[AccountView],
    summary="Open the caller's account",
    description=(
        "Create the caller's account with a zero balance. Calling it again returns the existing "
        "account unchanged, so the client may call it on every sign-in."
    ),
    responses=_errors(401, 422),
)
def open_account(payload: AccountOpen, accounts: AccountService = Depends(get_accounts)) -> Envelope[AccountView]:
    """Open the caller's account."""
    return Envelope(data=accounts.open(payload))


@router.get(
    "/account", response_model=Envelope[AccountView], summary="Get the caller's account", responses=_errors(401, 404)
)
def get_account(accounts: AccountService = Depends(get_accounts)) -> Envelope[AccountView]:
    """Return the caller's account."""
    return Envelope(data=accounts.get())


# --- Transactions ---


@router.get(
    "/transactions",
    response_model=Envelope[TransactionPage],
    summary="List transactions",
    description=(
        "Page through the caller's transactions.\n\n"
        "**Query parameters:**\n"
        "- `page`, `limit`: offset pagination (defaults 1 and 10).\n"
        "- `search`: case-insensitive substring match on the name.\n"
        "- `sort`: one of `Latest`, `Oldest`, `A to Z`, `Z to A`, `Highest`, `Lowest`.\n"
        "- `category`: exact category; `All Transactions` disables the filter."
    ),
    responses=_errors(401, 422),
)
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str | None = None,
    sort: SortOption = SortOption.LATEST,
    category: str | None = None,
    store: TransactionStore = Depends(get_transactions),
) -> Envelope[TransactionPage]:
    """List the caller's transactions."""
    return Envelope(data=store.list(page=page, limit=limit, search=search, sort=sort, category=category))


@router.get(
    "/transactions/{txn_id}",
    response_model=Envelope[TransactionView],
    summary="Get a transaction",
    responses=_errors(401, 404),
)
def get_transaction(txn_id: str, store: TransactionStore = Depends(get_transactions)) -> Envelope[TransactionView]:
    """Return one transaction."""
    return Envelope(data=store.get(txn_id))


@router.post(
    "/transactions",
    status_code=201,
    response_model=Envelope[TransactionView],
    summary="Record a transaction",
    description="Record a transaction. If it is dated in the current month the balance changes with it.",
    responses=_errors(401, 404, 422),
)
def create_transaction(
    payload: TransactionCreate, store: TransactionStore = Depends(get_transactions)
) -> Envelope[TransactionView]:
    """Record a transaction."""
    return Envelope(data=store.create(payload))


@router.patch(
    "/transactions/{txn_id}",
    response_model=Envelope[TransactionView],
    summary="Update a transaction",
    responses=_errors(401, 404, 422),
)
def update_transaction(
    txn_id: str, payload: TransactionUpdate, store: TransactionStore = Depends(get_transactions)
) -> Envelope[TransactionView]:
    """Apply a partial update to a transaction."""
    return Envelope(data=store.update(txn_id, payload))


@router.delete(
    "/transactions/{txn_id}", response_model=Ack, summary="Delete a transaction", responses=_errors(401, 404)
)
def delete_transaction(txn_id: str, store: TransactionStore = Depends(get_transactions)) -> Ack:
    """Delete a transaction."""
    store.delete(txn_id)
    return Ack(message="Transaction deleted successfully")


# --- Budgets ---


@router.get(
    "/budgets",
    response_model=Envelope[list[BudgetView]],
    summary="List budgets",
    description="Budgets with this month's spend, remaining amount, and the three latest expenses.",
    responses=_errors(401),
)
def list_budgets(store: BudgetStore = Depends(get_budgets)) -> Envelope[list[BudgetView]]:
    """List the caller's budgets."""
    return Envelope(data=store.list())


@router.get(
    "/budgets/{budget_id}", response_model=Envelope[BudgetView], summary="Get a budget", responses=_errors(401, 404)
)
def get_budget(budget_id: str, store: BudgetStore = Depends(get_budgets)) -> Envelope[BudgetView]:
    """Return one budget."""
    return Envelope(data=store.get(budget_id))


@router.post(
    "/budgets",
    status_code=201,
    response_model=Envelope[BudgetView],
    summary="Create a budget",
    responses=_errors(401, 404, 409, 422),
)
def create_budget(payload: BudgetCreate, store: BudgetStore = Depends(get_budgets)) -> Envelope[BudgetView]:
    """Create a budget."""
    return Envelope(data=store.create(payload))


@router.patch(
    "/budgets/{budget_id}",
    response_model=Envelope[BudgetView],
    summary="Update a budget",
    responses=_errors(401, 404, 409, 422),
)
def update_budget(
    budget_id: str, payload: BudgetUpdate, store: BudgetStore = Depends(get_budgets)
) -> Envelope[BudgetView]:
    """Apply a partial update to a budget."""
    return Envelope(data=store.update(budget_id, payload))


@router.delete("/budgets/{budget_id}", response_model=Ack, summary="Delete a budget", responses=_errors(401, 404))
def delete_budget(budget_id: str, store: BudgetStore = Depends(get_budgets)) -> Ack:
    """Delete a budget."""
    store.delete(budget_id)
    return Ack(message="Budget deleted successfully")


# --- Pots ---


@router.get("/pots", response_model=Envelope[list[PotView]], summary="List pots", responses=_errors(401))
def list_pots(store: PotStore = Depends(get_pots)) -> Envelope[list[PotView]]:
    """List the caller's pots."""
    return Envelope(data=store.all())


@router.get("/pots/{pot_id}", response_model=Envelope[PotView], summary="Get a pot", responses=_errors(401, 404))
def get_pot(pot_id: str, store: PotStore = Depends(get_pots)) -> Envelope[PotView]:
    """Return one pot."""
    return Envelope(data=store.get(pot_id))


@router.post(
    "/pots",
    status_code=201,
    response_model=Envelope[PotView],
    summary="Create a pot",
    responses=_errors(401, 404, 409, 422),
)
def create_pot(payload: PotCreate, store: PotStore = Depends(get_pots)) -> Envelope[PotView]:
    """Create an empty pot."""
    return Envelope(data=store.create(payload))


@router.patch(
    "/pots/{pot_id}",
    response_model=Envelope[PotView],
    summary="Update a pot",
    responses=_errors(401, 404, 409, 422),
)
def update_pot(pot_id: str, payload: PotUpdate, store: PotStore = Depends(get_pots)) -> Envelope[PotView]:
    """Rename, retarget or re-theme a pot."""
    return Envelope(data=store.update(pot_id, payload))


@router.post(
    "/pots/{pot_id}/deposit",
    response_model=Envelope[TransferResult],
    summary="Deposit into a pot",
    description=(
        "Move money from the balance into the pot. Both sides change together or not at all.\n\n"
        "- 404 NotFound: pot or account missing.\n"
        "- 409 InsufficientBalance: the balance is lower than the amount.\n"
        "- 422 InvalidAmount: the amount is missing or not positive."
    ),
    responses=_errors(401, 404, 409, 422),
)
def deposit_to_pot(
    pot_id: str, payload: TransferRequest, store: PotStore = Depends(get_pots)
) -> Envelope[TransferResult]:
    """Deposit into a pot."""
    return Envelope(data=store.deposit(pot_id, payload.amount))


@router.post(
    "/pots/{pot_id}/withdraw",
    response_model=Envelope[TransferResult],
    summary="Withdraw from a pot",
    description=(
        "Move money from the pot back to the balance. Both sides change together or not at all.\n\n"
        "- 404 NotFound: pot or account missing.\n"
        "- 409 InsufficientPotBalance: the pot holds less than the amount.\n"
        "- 422 InvalidAmount: the amount is missing or not positive."
    ),
    responses=_errors(401, 404, 409, 422),
)
def withdraw_from_pot(
    pot_id: str, payload: TransferRequest, store: PotStore = Depends(get_pots)
) -> Envelope[TransferResult]:
    """Withdraw from a pot."""
    return Envelope(data=store.withdraw(pot_id, payload.amount))


@router.delete(
    "/pots/{pot_id}",
    response_model=Ack,
    summary="Delete a pot",
    description="Delete the pot after returning its whole total to the balance.",
    responses=_errors(401, 404),
)
def delete_pot(pot_id: str, store: PotStore = Depends(get_pots)) -> Ack:
    """Delete a pot and return its money to the balance."""
    store.delete(pot_id)
    return Ack(message="Pot deleted and money returned to balance")


# --- Read-side views ---


@router.get(
    "/overview",
    response_model=Envelope[Overview],
    summary="Dashboard overview",
    description=(
        "Balance with lifetime income and expenses, the first four pots, all budgets, the five most "
        "recent transactions, and the recurring bills summary."
    ),
    responses=_errors(401, 404),
)
def get_overview_snapshot(aggregator: OverviewAggregator = Depends(get_overview)) -> Envelope[Overview]:
    """Return the dashboard snapshot."""
    return Envelope(data=aggregator.overview())


@router.get("/balance", response_model=Envelope[BalanceSummary], summary="Balance summary", responses=_errors(401))
def get_balance(aggregator: OverviewAggregator = Depends(get_overview)) -> Envelope[BalanceSummary]:
    """Return the current balance with lifetime income and expenses."""
    return Envelope(data=aggregator.balance())


@router.get(
    "/recurring-bills",
    response_model=Envelope[RecurringBills],
    summary="Recurring bills",
    description=(
        "Recurring bills inferred from recurring expenses, one per vendor name, each classified as "
        "`paid`, `due-soon` or `upcoming`. `search` and `sort` apply to the bill list; the summary "
        "always covers every bill."
    ),
    responses=_errors(401, 422),
)
def get_recurring_bills(
    search: str | None = None,
    sort: SortOption = SortOption.LATEST,
    service: RecurringBillService = Depends(get_recurring),
) -> Envelope[RecurringBills]:
    """Return classified recurring bills and their summary."""
    return Envelope(data=service.bills(search=search, sort=sort))


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
