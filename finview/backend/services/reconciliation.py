"""
View state for the bank accounts page and the transitions that produce it.

State objects are frozen; every transition takes the current ViewState and
returns a new one. Balances are only ever copied from server responses, never
derived from transaction amounts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from finview.core.data_models import (
    AccountId,
    BankAccount,
    Transaction,
    TransactionResult,
    TransactionType,
    normalize_transaction_type,
)

ACCOUNTS_LOAD_FAILED_MESSAGE = "Failed to load bank accounts"
TRANSACTIONS_LOAD_FAILED_MESSAGE = "Failed to load transactions"


class PanelStatus(str, Enum):
    CLOSED = "closed"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load-failed"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TransactionForm(_Frozen):
    amount: Any = ""
    type: TransactionType = TransactionType.CREDIT
    description: str = ""


class AccountListState(_Frozen):
    accounts: Tuple[BankAccount, ...] = ()
    loading: bool = False
    loaded: bool = False
    error: Optional[str] = None


class PanelState(_Frozen):
    status: PanelStatus = PanelStatus.CLOSED
    account: Optional[BankAccount] = None
    transactions: Tuple[Transaction, ...] = ()
    form: TransactionForm = TransactionForm()
    error: Optional[str] = None

    @property
    def account_id(self) -> Optional[AccountId]:
        return self.account.id if self.account is not None else None


class ViewState(_Frozen):
    accounts: AccountListState = AccountListState()
    panel: PanelState = PanelState()

    def find_account(self, account_id: AccountId) -> Optional[BankAccount]:
        return next((acc for acc in self.accounts.accounts if same_id(acc.id, account_id)), None)


def same_id(left: Any, right: Any) -> bool:
    # Path parameters arrive as strings while the API returns integer ids.
    return str(left) == str(right)


def _replace_accounts(state: ViewState, accounts: Iterable[BankAccount]) -> ViewState:
    return state.model_copy(update={"accounts": state.accounts.model_copy(update={"accounts": tuple(accounts)})})


def _sync_panel_account(state: ViewState, account: BankAccount) -> ViewState:
    if state.panel.account is None or not same_id(state.panel.account_id, account.id):
        return state
    return state.model_copy(update={"panel": state.panel.model_copy(update={"account": account.model_copy()})})


# Account list


def accounts_loading(state: ViewState) -> ViewState:
    return state.model_copy(update={"accounts": state.accounts.model_copy(update={"loading": True})})


def accounts_loaded(state: ViewState, accounts: Iterable[BankAccount]) -> ViewState:
    return state.model_copy(
        update={"accounts": AccountListState(accounts=tuple(accounts), loading=False, loaded=True, error=None)}
    )


def accounts_failed(state: ViewState, message: str = ACCOUNTS_LOAD_FAILED_MESSAGE) -> ViewState:
    return state.model_copy(
        update={"accounts": AccountListState(accounts=(), loading=False, loaded=False, error=message)}
    )


def account_created(state: ViewState, account: BankAccount) -> ViewState:
    return _replace_accounts(state, state.accounts.accounts + (account,))


def account_updated(state: ViewState, account: BankAccount) -> ViewState:
    accounts = [account if same_id(acc.id, account.id) else acc for acc in state.accounts.accounts]
    return _sync_panel_account(_replace_accounts(state, accounts), account)


def account_deleted(state: ViewState, account_id: AccountId) -> ViewState:
    accounts = [acc for acc in state.accounts.accounts if not same_id(acc.id, account_id)]
    state = _replace_accounts(state, accounts)
    if state.panel.account is not None and same_id(state.panel.account_id, account_id):
        state = panel_closed(state)
    return state


def balance_overwritten(state: ViewState, account_id: AccountId, balance: float) -> ViewState:
    """Apply a balance the server reported for ``account_id`` to every cached copy."""
    accounts = [
        acc.model_copy(update={"balance": balance}) if same_id(acc.id, account_id) else acc
        for acc in state.accounts.accounts
    ]
    state = _replace_accounts(state, accounts)
    panel_account = state.panel.account
    if panel_account is not None and same_id(panel_account.id, account_id):
        state = state.model_copy(
            update={"panel": state.panel.model_copy(update={"account": panel_account.model_copy(update={"balance": balance})})}
        )
    return state


# Transaction panel


def panel_opening(state: ViewState, account: BankAccount) -> ViewState:
    """Replace whatever panel is open with a fresh, loading one for ``account``."""
    return state.model_copy(
        update={"panel": PanelState(status=PanelStatus.LOADING, account=account.model_copy(), form=TransactionForm())}
    )


def panel_loaded(state: ViewState, account_id: AccountId, transactions: Iterable[Transaction]) -> ViewState:
    if state.panel.status != PanelStatus.LOADING or not same_id(state.panel.account_id, account_id):
        return state
    return state.model_copy(
        update={
            "panel": state.panel.model_copy(
                update={"status": PanelStatus.READY, "transactions": tuple(transactions), "error": None}
            )
        }
    )


def panel_failed(
    state: ViewState, account_id: AccountId, message: str = TRANSACTIONS_LOAD_FAILED_MESSAGE
) -> ViewState:
    if state.panel.status != PanelStatus.LOADING or not same_id(state.panel.account_id, account_id):
        return state
    return state.model_copy(
        update={"panel": state.panel.model_copy(update={"status": PanelStatus.LOAD_FAILED, "error": message})}
    )


def panel_closed(state: ViewState) -> ViewState:
    return state.model_copy(update={"panel": PanelState()})


def form_edited(state: ViewState, amount: Any, type_: Any, description: Optional[str]) -> ViewState:
    """Remember what the user typed so a failed submission keeps it."""
    form = TransactionForm(
        amount="" if amount is None else amount,
        type=normalize_transaction_type(type_),
        description=description or "",
    )
    return state.model_copy(update={"panel": state.panel.model_copy(update={"form": form})})


def transaction_posted(state: ViewState, account_id: AccountId, result: TransactionResult) -> ViewState:
    if result.balance is not None:
        state = balance_overwritten(state, account_id, result.balance)

    panel = state.panel
    if panel.account is None or not same_id(panel.account_id, account_id):
        return state

    transactions = panel.transactions
    if result.transaction is not None:
        transactions = (result.transaction,) + transactions
    form = TransactionForm(type=panel.form.type)
    return state.model_copy(
        update={"panel": panel.model_copy(update={"transactions": transactions, "form": form})}
    )
