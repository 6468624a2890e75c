"""Tests for pot CRUD and the pot transfer engine."""

from decimal import Decimal

import pytest
from conftest import record
from sqlalchemy.orm import Session

from centinel.core.errors import (
    DuplicateCategoryOrTheme,
    InsufficientBalance,
    InsufficientPotBalance,
    InvalidAmount,
    NotFound,
)
from centinel.core.models import PotCreate, PotUpdate
from centinel.services.accounts import load_account
from centinel.services.pots import PotStore, pot_percentage, pot_remaining


def _balance(session: Session) -> Decimal:
    with session.begin():
        return load_account(session, session.info["account_id"]).balance


def _funded_pot(session: Session, balance: str = "500.00", target: str = "1000.00") -> str:
    record(session, balance)
    return PotStore(session).create(PotCreate(name="Holiday", target=Decimal(target), theme="green")).id


def test_derived_fields() -> None:
    """Percentage and remaining are computed from total and target."""
    if pot_percentage(Decimal("120"), Decimal("1000")) != Decimal("12"):
        msg = "120 of 1000 should be 12 percent"
        raise AssertionError(msg)
    if pot_percentage(Decimal("50"), Decimal("0")) != Decimal("0"):
        msg = "A zero target should report 0 percent"
        raise AssertionError(msg)
    if pot_remaining(Decimal("1200"), Decimal("1000")) != Decimal("-200"):
        msg = "Remaining goes negative once the target is exceeded"
        raise AssertionError(msg)


def test_new_pot_starts_empty(session: Session) -> None:
    """Created pots hold nothing and report zero progress."""
    pot = PotStore(session).create(PotCreate(name="Car", target=Decimal("800"), theme="cyan"))
    if pot.total != Decimal("0") or pot.percentage != Decimal("0") or pot.remaining != Decimal("800"):
        msg = f"Unexpected new pot: {pot}"
        raise AssertionError(msg)


def test_deposit_and_withdraw_conserve_funds(session: Session) -> None:
    """Balance plus pot total is the same before and after each transfer."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    before = _balance(session) + store.get(pot_id).total

    result = store.deposit(pot_id, Decimal("200.00"))
    if result.new_balance != Decimal("300.00") or result.pot.total != Decimal("200.00"):
        msg = f"Unexpected deposit result: {result}"
        raise AssertionError(msg)
    if result.pot.percentage != Decimal("20"):
        msg = f"Expected 20 percent, got {result.pot.percentage}"
        raise AssertionError(msg)
    if _balance(session) + store.get(pot_id).total != before:
        msg = "Deposit changed the total amount of money"
        raise AssertionError(msg)

    result = store.withdraw(pot_id, Decimal("75.25"))
    if result.new_balance != Decimal("375.25") or result.pot.total != Decimal("124.75"):
        msg = f"Unexpected withdraw result: {result}"
        raise AssertionError(msg)
    if _balance(session) + store.get(pot_id).total != before:
        msg = "Withdrawal changed the total amount of money"
        raise AssertionError(msg)


@pytest.mark.parametrize("amount", [None, Decimal("0"), Decimal("-5"), Decimal("0.001")])
def test_transfers_reject_invalid_amounts(session: Session, amount: Decimal | None) -> None:
    """Missing, non-positive and sub-cent amounts are rejected before anything changes."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    with pytest.raises(InvalidAmount):
        store.deposit(pot_id, amount)
    with pytest.raises(InvalidAmount):
        store.withdraw(pot_id, amount)
    if _balance(session) != Decimal("500.00"):
        msg = "A rejected transfer must not touch the balance"
        raise AssertionError(msg)


def test_deposit_more_than_balance(session: Session) -> None:
    """Depositing more than the balance fails and changes nothing."""
    store = PotStore(session)
    pot_id = _funded_pot(session, balance="100.00")
    with pytest.raises(InsufficientBalance):
        store.deposit(pot_id, Decimal("100.01"))
    if _balance(session) != Decimal("100.00") or store.get(pot_id).total != Decimal("0"):
        msg = "A rejected deposit must not apply either side"
        raise AssertionError(msg)


def test_withdraw_more_than_pot(session: Session) -> None:
    """Withdrawing more than the pot holds fails and changes nothing."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    store.deposit(pot_id, Decimal("50.00"))
    with pytest.raises(InsufficientPotBalance):
        store.withdraw(pot_id, Decimal("50.01"))
    if _balance(session) != Decimal("450.00") or store.get(pot_id).total != Decimal("50.00"):
        msg = "A rejected withdrawal must not apply either side"
        raise AssertionError(msg)


def test_delete_returns_total_to_balance(session: Session) -> None:
    """Deleting a pot holding 120 raises the balance by exactly 120."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    store.deposit(pot_id, Decimal("120.00"))
    store.delete(pot_id)
    if _balance(session) != Decimal("500.00"):
        msg = f"Expected the 120 to come back, balance is {_balance(session)}"
        raise AssertionError(msg)
    with pytest.raises(NotFound):
        store.get(pot_id)


def test_delete_empty_pot_leaves_balance(session: Session) -> None:
    """Deleting an empty pot does not change the balance."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    store.delete(pot_id)
    if _balance(session) != Decimal("500.00"):
        msg = f"Balance changed to {_balance(session)}"
        raise AssertionError(msg)


def test_unknown_pot(session: Session) -> None:
    """Every pot operation on a missing id reports NotFound."""
    store = PotStore(session)
    record(session, "100.00")
    for call in (
        lambda: store.deposit("missing", Decimal("1")),
        lambda: store.withdraw("missing", Decimal("1")),
        lambda: store.delete("missing"),
        lambda: store.update("missing", PotUpdate(name="x")),
    ):
        with pytest.raises(NotFound):
            call()


def test_theme_is_unique_per_account(session: Session) -> None:
    """Two pots of one account cannot share a theme."""
    store = PotStore(session)
    store.create(PotCreate(name="A", target=Decimal("10"), theme="red"))
    other = store.create(PotCreate(name="B", target=Decimal("10"), theme="navy"))
    with pytest.raises(DuplicateCategoryOrTheme):
        store.create(PotCreate(name="C", target=Decimal("10"), theme="red"))
    with pytest.raises(DuplicateCategoryOrTheme):
        store.update(other.id, PotUpdate(theme="red"))


def test_update_keeps_total(session: Session) -> None:
    """Renaming and retargeting a pot leaves the saved total alone."""
    store = PotStore(session)
    pot_id = _funded_pot(session)
    store.deposit(pot_id, Decimal("100.00"))
    pot = store.update(pot_id, PotUpdate(name="Summer", target=Decimal("400.00")))
    if pot.name != "Summer" or pot.total != Decimal("100.00") or pot.percentage != Decimal("25"):
        msg = f"Unexpected updated pot: {pot}"
        raise AssertionError(msg)
