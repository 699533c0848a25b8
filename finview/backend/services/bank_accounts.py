from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Set

from finview.core.api_client import DEFAULT_TRANSACTION_LIMIT, FinanceAPIClient
from finview.core.data_models import (
    AccountDraft,
    AccountId,
    BalanceSnapshot,
    BankAccount,
    Transaction,
    TransactionDraft,
    TransactionResult,
)
from finview.core.errors import (
    GENERIC_FAILURE_MESSAGE,
    ClientValidationError,
    FinanceAPIError,
    NotFoundError,
    OperationInProgressError,
    UpstreamError,
)
from finview.core.formatting import format_amount, format_money, normalize_currency_label, summary_currency

from . import reconciliation as rc

logger = logging.getLogger("finview.backend.bank_accounts")

SAVE_FAILED_MESSAGE = "Failed to save account"
DELETE_FAILED_MESSAGE = "Failed to delete account"
BALANCE_FAILED_MESSAGE = "Failed to update balance"
TRANSACTION_FAILED_MESSAGE = "Failed to add transaction"


def _surface(exc: FinanceAPIError, fallback: str) -> FinanceAPIError:
    """Keep the server's own message when it sent one, otherwise use ``fallback``."""
    if isinstance(exc, UpstreamError) and exc.message != GENERIC_FAILURE_MESSAGE:
        return exc
    if isinstance(exc, ClientValidationError):
        return exc
    return type(exc)(fallback, status_code=exc.status_code)


class BankAccountsController:
    """
    Owns one user's account list and transaction panel.

    Handlers issue at most one request per operation at a time and apply a
    state transition only after the response arrives.
    """

    def __init__(
        self,
        client: FinanceAPIClient,
        *,
        page_size: int = DEFAULT_TRANSACTION_LIMIT,
        default_currency: str = "SAR",
    ):
        self._client = client
        self.page_size = page_size
        self.default_currency = default_currency
        self.state = rc.ViewState()
        self._in_flight: Set[str] = set()

    @property
    def client(self) -> FinanceAPIClient:
        return self._client

    def is_busy(self, operation: str) -> bool:
        return operation in self._in_flight

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        if operation in self._in_flight:
            logger.warning("Ignoring duplicate submission of %s", operation)
            raise OperationInProgressError("This request is already being processed")
        self._in_flight.add(operation)
        try:
            yield
        finally:
            self._in_flight.discard(operation)

    # Account list

    async def load_accounts(self) -> rc.ViewState:
        async with self._exclusive("load_accounts"):
            self.state = rc.accounts_loading(self.state)
            try:
                accounts = await self._client.list_accounts()
            except FinanceAPIError as exc:
                logger.error("Error fetching bank accounts: %s", exc.message)
                self.state = rc.accounts_failed(self.state)
            else:
                self.state = rc.accounts_loaded(self.state, accounts)
        return self.state

    async def ensure_loaded(self) -> rc.ViewState:
        listing = self.state.accounts
        if not listing.loaded and not listing.loading and listing.error is None:
            await self.load_accounts()
        return self.state

    async def save_account(self, draft: AccountDraft, account_id: Optional[AccountId] = None) -> BankAccount:
        """Create a new account, or update ``account_id`` when given."""
        draft.to_payload(self.default_currency)
        async with self._exclusive("account_form"):
            try:
                if account_id is None:
                    account = await self._client.create_account(draft)
                else:
                    account = await self._client.update_account(account_id, draft)
            except FinanceAPIError as exc:
                logger.error("Error saving bank account %s: %s", account_id, exc.message)
                raise _surface(exc, SAVE_FAILED_MESSAGE) from exc

        if account_id is None:
            self.state = rc.account_created(self.state, account)
        else:
            self.state = rc.account_updated(self.state, account)
        return account

    async def delete_account(self, account_id: AccountId) -> None:
        async with self._exclusive(f"delete:{account_id}"):
            try:
                await self._client.delete_account(account_id)
            except FinanceAPIError as exc:
                logger.error("Error deleting bank account %s: %s", account_id, exc.message)
                raise _surface(exc, DELETE_FAILED_MESSAGE) from exc
        self.state = rc.account_deleted(self.state, account_id)

    async def get_balance(self, account_id: AccountId) -> BalanceSnapshot:
        return await self._client.get_balance(account_id)

    async def set_balance(self, account_id: AccountId, value: Any) -> BankAccount:
        async with self._exclusive(f"balance:{account_id}"):
            try:
                account = await self._client.set_balance(account_id, value)
            except FinanceAPIError as exc:
                logger.error("Error overwriting balance of account %s: %s", account_id, exc.message)
                raise _surface(exc, BALANCE_FAILED_MESSAGE) from exc
        self.state = rc.account_updated(self.state, account)
        return account

    # Transaction panel

    async def open_panel(self, account_id: AccountId) -> rc.ViewState:
        account = self.state.find_account(account_id)
        if account is None:
            raise NotFoundError("Bank account not found")

        self.state = rc.panel_opening(self.state, account)
        try:
            transactions = await self._client.list_transactions(account.id, limit=self.page_size)
        except FinanceAPIError as exc:
            logger.error("Error fetching transactions for account %s: %s", account.id, exc.message)
            message = exc.message if isinstance(exc, UpstreamError) and exc.message != GENERIC_FAILURE_MESSAGE else None
            self.state = rc.panel_failed(self.state, account.id, message or rc.TRANSACTIONS_LOAD_FAILED_MESSAGE)
        else:
            self.state = rc.panel_loaded(self.state, account.id, transactions)
        return self.state

    def close_panel(self) -> rc.ViewState:
        self.state = rc.panel_closed(self.state)
        return self.state

    async def submit_transaction(self, draft: TransactionDraft) -> TransactionResult:
        panel = self.state.panel
        if panel.status != rc.PanelStatus.READY or panel.account is None:
            raise ClientValidationError("Open an account's transactions before adding one")

        draft.to_payload()
        account_id = panel.account.id

        async with self._exclusive("transaction_form"):
            self.state = rc.form_edited(self.state, draft.amount, draft.type, draft.description)
            try:
                result = await self._client.add_transaction(account_id, draft)
            except FinanceAPIError as exc:
                logger.error("Error adding transaction to account %s: %s", account_id, exc.message)
                raise _surface(exc, TRANSACTION_FAILED_MESSAGE) from exc

        self.state = rc.transaction_posted(self.state, account_id, result)
        return result


def _render_account(account: BankAccount, fallback: str) -> Dict[str, Any]:
    payload = account.model_dump(mode="json")
    payload["currency_label"] = normalize_currency_label(account.currency, fallback)
    payload["balance_label"] = format_money(account.balance, account.currency, fallback)
    return payload


def _render_transaction(transaction: Transaction) -> Dict[str, Any]:
    payload = transaction.model_dump(mode="json")
    payload["amount_label"] = format_amount(transaction.amount)
    return payload


def render_view(state: rc.ViewState, fallback_currency: str) -> Dict[str, Any]:
    """JSON-safe view of the page, with totals and display labels filled in."""
    accounts = state.accounts.accounts
    total = round(sum(acc.balance for acc in accounts), 2)
    currency = summary_currency((acc.currency for acc in accounts), fallback_currency)
    panel = state.panel

    rendered_accounts: List[Dict[str, Any]] = [_render_account(acc, fallback_currency) for acc in accounts]
    return {
        "accounts": rendered_accounts,
        "loading": state.accounts.loading,
        "error": state.accounts.error,
        "summary": {
            "total_balance": total,
            "currency": currency,
            "total_label": f"{currency} {format_amount(total)}",
            "account_count": len(accounts),
            "active": sum(1 for acc in accounts if acc.is_active),
            "inactive": sum(1 for acc in accounts if not acc.is_active),
        },
        "panel": {
            "status": panel.status.value,
            "account": _render_account(panel.account, fallback_currency) if panel.account else None,
            "transactions": [_render_transaction(tx) for tx in panel.transactions],
            "form": panel.form.model_dump(mode="json"),
            "error": panel.error,
        },
    }
