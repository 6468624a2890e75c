"""Pydantic models for the Centinel ledger service.

This module defines the request payloads accepted by the API and the read views it returns.
Derived values (budget spend, pot progress, bill status) only ever appear on views; they are
computed on read by the services and never stored.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, model_validator

from centinel.core.utils import as_utc

DataT = TypeVar("DataT")

DEFAULT_AVATAR = "/assets/images/avatars/default.jpg"
ALL_CATEGORIES_FILTER = "All Transactions"

# Decimals travel as JSON numbers, matching what the web client expects.
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
MoneyInput = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]
NonNegativeMoney = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class Category(str, Enum):
    """Fixed set of transaction and budget categories."""

    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills"
    GROCERIES = "Groceries"
    DINING_OUT = "Dining Out"
    TRANSPORTATION = "Transportation"
    PERSONAL_CARE = "Personal Care"
    EDUCATION = "Education"
    LIFESTYLE = "Lifestyle"
    SHOPPING = "Shopping"
    GENERAL = "General"


class SortOption(str, Enum):
    """Sort options shared by transaction listing and recurring bills."""

    LATEST = "Latest"
    OLDEST = "Oldest"
    A_TO_Z = "A to Z"
    Z_TO_A = "Z to A"
    HIGHEST = "Highest"
    LOWEST = "Lowest"


class BillStatus(str, Enum):
    """Status of a recurring bill relative to the current month."""

    PAID = "paid"
    UPCOMING = "upcoming"
    DUE_SOON = "due-soon"


class PartialUpdate(BaseModel):
    """Base for PATCH payloads: omitted fields stay untouched, explicit nulls are rejected."""

    @model_validator(mode="after")
    def _reject_nulls(self) -> "PartialUpdate":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                msg = f"{name} cannot be null"
                raise ValueError(msg)
        return self

    def changes(self) -> dict:
        """Return only the fields the caller supplied, with enums reduced to their values."""
        return {
            name: value.value if isinstance(value, Enum) else value
            for name, value in self.model_dump(exclude_unset=True).items()
        }


class View(BaseModel):
    """Base for read views built from ORM rows."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# --- Accounts ---


class AccountOpen(BaseModel):
    """Payload for opening the caller's account."""

    full_name: str = Field(min_length=1, max_length=200)
    avatar_url: str | None = Field(default=None, max_length=500)


class AccountView(View):
    """The caller's account with its current statement-period balance."""

    account_id: str = Field(alias="id")
    full_name: str
    avatar_url: str | None = None
    balance: Amount
    created_at: UtcDatetime
    updated_at: UtcDatetime


# --- Transactions ---


class TransactionCreate(BaseModel):
    """Payload for recording a transaction. Positive amounts are income, negative are expenses."""

    name: str = Field(min_length=1, max_length=200)
    amount: MoneyInput
    category: Category
    date: datetime
    recurring: bool = False
    avatar: str | None = Field(default=None, max_length=500)


class TransactionUpdate(PartialUpdate):
    """Partial transaction update."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    amount: MoneyInput | None = None
    category: Category | None = None
    date: datetime | None = None
    recurring: bool | None = None
    avatar: str | None = Field(default=None, max_length=500)


class TransactionView(View):
    """A persisted transaction."""

    id: str
    account_id: str
    name: str
    avatar: str
    category: Category
    date: UtcDatetime
    amount: Amount
    recurring: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TransactionPage(BaseModel):
    """One page of a transaction listing."""

    items: list[TransactionView]
    total: int
    page: int
    pages: int
    limit: int


# --- Budgets ---


class BudgetCreate(BaseModel):
    """Payload for creating a category budget."""

    category: Category
    maximum: NonNegativeMoney
    theme: str = Field(min_length=1, max_length=64)


class BudgetUpdate(PartialUpdate):
    """Partial budget update."""

    category: Category | None = None
    maximum: NonNegativeMoney | None = None
    theme: str | None = Field(default=None, min_length=1, max_length=64)


class BudgetView(View):
    """A budget with its spend for the current statement period."""

    id: str
    account_id: str
    category: Category
    maximum: Amount
    theme: str
    spent: Amount
    remaining: Amount
    latest_transactions: list[TransactionView] = Field(default_factory=list, alias="latestTransactions")
    created_at: UtcDatetime
    updated_at: UtcDatetime


# --- Pots ---


class PotCreate(BaseModel):
    """Payload for creating a savings pot. New pots always start empty."""

    name: str = Field(min_length=1, max_length=200)
    target: NonNegativeMoney
    theme: str = Field(min_length=1, max_length=64)


class PotUpdate(PartialUpdate):
    """Partial pot update. The pot total is only moved by deposits and withdrawals."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    target: NonNegativeMoney | None = None
    theme: str | None = Field(default=None, min_length=1, max_length=64)


class PotView(View):
    """A pot with its progress towards the target."""

    id: str
    account_id: str
    name: str
    target: Amount
    total: Amount
    theme: str
    percentage: Amount
    remaining: Amount
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TransferRequest(BaseModel):
    """Amount to move between the balance and a pot. Checked by the transfer engine, not here."""

    amount: Decimal | None = None


class TransferResult(View):
    """Outcome of a pot deposit or withdrawal."""

    pot: PotView
    new_balance: Amount = Field(alias="newBalance")


# --- Recurring bills ---


class RecurringBill(TransactionView):
    """The latest recurring transaction of a vendor, classified against the current date."""

    status: BillStatus
    due_day: int = Field(alias="dueDay")


class BillRollup(BaseModel):
    """Count and summed absolute amount of a group of bills."""

    count: int = 0
    amount: Amount = Decimal("0")


class RecurringSummary(View):
    """Rollup of recurring bills; ``total`` covers outstanding (unpaid) bills only."""

    total: int
    total_amount: Amount = Field(alias="totalAmount")
    paid: BillRollup
    upcoming: BillRollup
    due_soon: BillRollup = Field(alias="dueSoon")


class RecurringBills(BaseModel):
    """Classified recurring bills plus their summary."""

    bills: list[RecurringBill]
    summary: RecurringSummary


# --- Overview ---


class BalanceSummary(View):
    """Current balance plus lifetime income and expenses."""

    current_balance: Amount = Field(alias="currentBalance")
    income: Amount
    expenses: Amount


class OverviewBalance(BaseModel):
    """Balance block of the dashboard."""

    current: Amount
    income: Amount
    expenses: Amount


class OverviewPots(View):
    """Pots block of the dashboard."""

    total_saved: Amount = Field(alias="totalSaved")
    items: list[PotView]


class OverviewBudgets(BaseModel):
    """Budgets block of the dashboard."""

    items: list[BudgetView]


class OverviewTransactions(BaseModel):
    """Recent transactions block of the dashboard."""

    recent: list[TransactionView]


class Overview(View):
    """The composed dashboard snapshot."""

    balance: OverviewBalance
    pots: OverviewPots
    budgets: OverviewBudgets
    transactions: OverviewTransactions
    recurring_bills: RecurringSummary = Field(alias="recurringBills")


# --- Envelopes ---


class Envelope(BaseModel, Generic[DataT]):
    """Success envelope wrapping every data-bearing response."""

    success: bool = True
    data: DataT


class Ack(BaseModel):
    """Success envelope for operations that return no data."""

    success: bool = True
    message: str


class ErrorBody(BaseModel):
    """Structured failure reported to the caller."""

    kind: str
    message: str
    errors: list[dict] | None = None


class ErrorEnvelope(BaseModel):
    """Failure envelope."""

    success: bool = False
    error: ErrorBody
