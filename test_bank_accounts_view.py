import asyncio

import pytest

from fake_finance_api import FakeFinanceAPI, raw_account
from finview.backend.services import reconciliation as rc
from finview.backend.services.bank_accounts import render_view
from finview.core.data_models import (
    AccountDraft,
    BankAccount,
    Transaction,
    TransactionDraft,
    TransactionResult,
    TransactionType,
)
from finview.core.errors import ClientValidationError, NotFoundError, OperationInProgressError, UpstreamError


def account(id_, balance=100.0, currency="SAR", **extra):
    return BankAccount(id=id_, account_name=f"Account {id_}", bank_name="SNB", account_number="1234",
                       balance=balance, currency=currency, **extra)


# Pure transitions


def test_transaction_posted_trusts_server_balance_everywhere():
    state = rc.accounts_loaded(rc.ViewState(), [account(1, balance=100)])
    state = rc.panel_opening(state, state.accounts.accounts[0])
    state = rc.panel_loaded(state, 1, [])
    result = TransactionResult(transaction=Transaction(id=9, amount=50, type="credit"), balance=137.25)

    new_state = rc.transaction_posted(state, 1, result)

    assert new_state.accounts.accounts[0].balance == 137.25
    assert new_state.panel.account.balance == 137.25
    assert new_state.panel.transactions[0].id == 9
    # previous state untouched
    assert state.accounts.accounts[0].balance == 100
    assert state.panel.transactions == ()


def test_transaction_posted_without_balance_keeps_cached_value():
    state = rc.accounts_loaded(rc.ViewState(), [account(1, balance=100)])
    state = rc.panel_loaded(rc.panel_opening(state, state.accounts.accounts[0]), 1, [])
    new_state = rc.transaction_posted(state, 1, TransactionResult(transaction=Transaction(id=9, amount=5, type="debit")))

    assert new_state.accounts.accounts[0].balance == 100
    assert [tx.id for tx in new_state.panel.transactions] == [9]


def test_transaction_posted_keeps_type_and_clears_amount():
    state = rc.accounts_loaded(rc.ViewState(), [account(1)])
    state = rc.panel_loaded(rc.panel_opening(state, state.accounts.accounts[0]), 1, [])
    state = rc.form_edited(state, "20", "withdraw", "groceries")
    state = rc.transaction_posted(state, 1, TransactionResult(balance=80))

    assert state.panel.form.type.value == "debit"
    assert state.panel.form.amount == ""
    assert state.panel.form.description == ""


def test_stale_transaction_load_is_ignored_after_panel_switch():
    state = rc.accounts_loaded(rc.ViewState(), [account(1), account(2)])
    state = rc.panel_opening(state, state.find_account(1))
    state = rc.panel_opening(state, state.find_account(2))
    state = rc.panel_loaded(state, 1, [Transaction(id=5, amount=1, type="credit")])

    assert state.panel.status == rc.PanelStatus.LOADING
    assert state.panel.account_id == 2
    assert state.panel.transactions == ()


def test_account_deleted_closes_its_panel():
    state = rc.accounts_loaded(rc.ViewState(), [account(1), account(2)])
    state = rc.panel_loaded(rc.panel_opening(state, state.find_account(1)), 1, [])
    state = rc.account_deleted(state, "1")

    assert [acc.id for acc in state.accounts.accounts] == [2]
    assert state.panel.status == rc.PanelStatus.CLOSED


def test_account_updated_syncs_panel_snapshot():
    state = rc.accounts_loaded(rc.ViewState(), [account(1)])
    state = rc.panel_opening(state, state.find_account(1))
    state = rc.account_updated(state, account(1, balance=5, notes="renamed"))

    assert state.panel.account.notes == "renamed"
    assert state.find_account(1).balance == 5


def test_render_view_summary():
    state = rc.accounts_loaded(
        rc.ViewState(), [account(1, balance=1000), account(2, balance=234.5, currency="USD", is_active=False)]
    )
    view = render_view(state, "SAR")

    assert view["summary"]["currency"] == "MULTI"
    assert view["summary"]["total_label"] == "MULTI 1,234.50"
    assert view["summary"]["active"] == 1
    assert view["summary"]["inactive"] == 1
    assert view["accounts"][0]["balance_label"] == "SR 1,000.00"
    assert view["panel"]["status"] == "closed"


def test_render_view_sar_and_sr_share_a_label():
    state = rc.accounts_loaded(rc.ViewState(), [account(1, currency="SAR"), account(2, currency="SR")])
    assert render_view(state, "USD")["summary"]["currency"] == "SR"


# Controller


@pytest.mark.asyncio
async def test_scenario_credit_updates_balance_from_server():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=100)])
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    result = await controller.submit_transaction(TransactionDraft(amount=50, type="credit"))

    state = controller.state
    assert result.balance == 150
    assert state.find_account(1).balance == 150
    assert state.panel.account.balance == 150
    assert [tx.id for tx in state.panel.transactions] == [result.transaction.id]


@pytest.mark.asyncio
async def test_scenario_zero_amount_never_reaches_the_server():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=100)])
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)
    before = controller.state

    with pytest.raises(ClientValidationError):
        await controller.submit_transaction(TransactionDraft(amount=0, type="credit"))

    assert api.count("POST", "/transactions") == 0
    assert controller.state == before
    assert controller.state.find_account(1).balance == 100


@pytest.mark.asyncio
async def test_new_transaction_is_prepended():
    existing = [{"id": 1, "amount": 10, "type": "credit"}]
    api = FakeFinanceAPI(accounts=[raw_account(1)], transactions={1: existing})
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    result = await controller.submit_transaction(TransactionDraft(amount=5, type="debit"))

    assert [tx.id for tx in controller.state.panel.transactions] == [result.transaction.id, 1]


@pytest.mark.asyncio
async def test_failed_transaction_keeps_form_and_surfaces_server_message():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=10)])
    api.fail[("POST", "/api/bank-accounts/1/transactions")] = (400, {"error": "Insufficient funds"})
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    with pytest.raises(UpstreamError) as excinfo:
        await controller.submit_transaction(TransactionDraft(amount=50, type="debit", description="rent"))

    assert excinfo.value.message == "Insufficient funds"
    panel = controller.state.panel
    assert panel.transactions == ()
    assert controller.state.find_account(1).balance == 10
    assert panel.form.amount == 50
    assert panel.form.description == "rent"


@pytest.mark.asyncio
async def test_failed_transaction_without_message_uses_generic_text():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    api.fail[("POST", "/api/bank-accounts/1/transactions")] = (500, {})
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    with pytest.raises(UpstreamError) as excinfo:
        await controller.submit_transaction(TransactionDraft(amount=5, type="credit"))
    assert excinfo.value.message == "Failed to add transaction"


@pytest.mark.asyncio
async def test_double_submit_is_refused_while_first_is_pending():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=100)])
    api.gate = asyncio.Event()
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    first = asyncio.create_task(controller.submit_transaction(TransactionDraft(amount=10, type="credit")))
    await asyncio.sleep(0)
    assert controller.is_busy("transaction_form")

    with pytest.raises(OperationInProgressError):
        await controller.submit_transaction(TransactionDraft(amount=99, type="debit", description="dup"))
    assert controller.state.panel.form.amount == 10
    assert controller.state.panel.form.description == ""

    api.gate.set()
    await first
    assert api.count("POST", "/transactions") == 1
    assert controller.state.find_account(1).balance == 110
    assert controller.state.panel.form.type == TransactionType.CREDIT
    assert not controller.is_busy("transaction_form")


@pytest.mark.asyncio
async def test_malformed_transaction_record_still_applies_server_balance():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=100)])
    api.fail[("POST", "/api/bank-accounts/1/transactions")] = (
        201,
        {"transaction": {"amount": 5, "type": "credit"}, "balance": 105},
    )
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    result = await controller.submit_transaction(TransactionDraft(amount=5, type="credit"))

    assert result.transaction is None
    assert controller.state.find_account(1).balance == 105
    assert controller.state.panel.account.balance == 105
    assert controller.state.panel.transactions == ()


@pytest.mark.asyncio
async def test_malformed_account_body_is_an_upstream_error():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    api.fail[("POST", "/api/bank-accounts")] = (201, {"account_name": "No id"})
    controller = api.controller()
    await controller.load_accounts()

    with pytest.raises(UpstreamError) as excinfo:
        await controller.save_account(AccountDraft(account_name="New", bank_name="SNB", account_number="1"))

    assert excinfo.value.status_code == 502
    assert [acc.id for acc in controller.state.accounts.accounts] == [1]


@pytest.mark.asyncio
async def test_opening_second_panel_replaces_first():
    api = FakeFinanceAPI(
        accounts=[raw_account(1), raw_account(2)],
        transactions={1: [{"id": 11, "amount": 1, "type": "credit"}], 2: [{"id": 22, "amount": 2, "type": "debit"}]},
    )
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)
    await controller.open_panel("2")

    panel = controller.state.panel
    assert panel.account.id == 2
    assert [tx.id for tx in panel.transactions] == [22]
    assert panel.status == rc.PanelStatus.READY


@pytest.mark.asyncio
async def test_panel_open_resets_form():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)
    controller.state = rc.form_edited(controller.state, "9", "debit", "x")
    await controller.open_panel(1)

    assert controller.state.panel.form == rc.TransactionForm()


@pytest.mark.asyncio
async def test_panel_load_failure_keeps_panel_open():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    api.fail[("GET", "/api/bank-accounts/1/transactions")] = (500, {})
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    panel = controller.state.panel
    assert panel.status == rc.PanelStatus.LOAD_FAILED
    assert panel.error == rc.TRANSACTIONS_LOAD_FAILED_MESSAGE
    assert panel.account.id == 1


@pytest.mark.asyncio
async def test_close_panel_discards_transactions():
    api = FakeFinanceAPI(accounts=[raw_account(1)], transactions={1: [{"id": 1, "amount": 1, "type": "credit"}]})
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)
    controller.close_panel()

    assert controller.state.panel == rc.PanelState()


@pytest.mark.asyncio
async def test_submit_without_open_panel_is_rejected():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    controller = api.controller()
    await controller.load_accounts()

    with pytest.raises(ClientValidationError):
        await controller.submit_transaction(TransactionDraft(amount=5, type="credit"))


@pytest.mark.asyncio
async def test_open_panel_for_unknown_account():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    controller = api.controller()
    await controller.load_accounts()

    with pytest.raises(NotFoundError):
        await controller.open_panel(99)


@pytest.mark.asyncio
async def test_load_failure_empties_list_and_reports_error():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    api.fail[("GET", "/api/bank-accounts")] = (500, {"error": "db down"})
    controller = api.controller()
    await controller.load_accounts()

    assert controller.state.accounts.accounts == ()
    assert controller.state.accounts.error == rc.ACCOUNTS_LOAD_FAILED_MESSAGE
    assert controller.state.accounts.loading is False


@pytest.mark.asyncio
async def test_create_update_delete_reflect_server_responses():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    controller = api.controller()
    await controller.load_accounts()

    created = await controller.save_account(AccountDraft(account_name="New", bank_name="Riyad", account_number="55"))
    assert [acc.id for acc in controller.state.accounts.accounts] == [1, created.id]

    await controller.save_account(
        AccountDraft(account_name="Renamed", bank_name="Riyad", account_number="55"), account_id=created.id
    )
    assert controller.state.find_account(created.id).account_name == "Renamed"

    await controller.delete_account(1)
    assert [acc.id for acc in controller.state.accounts.accounts] == [created.id]


@pytest.mark.asyncio
async def test_invalid_account_form_makes_no_request():
    api = FakeFinanceAPI(accounts=[])
    controller = api.controller()
    await controller.load_accounts()

    with pytest.raises(ClientValidationError):
        await controller.save_account(AccountDraft(account_name="", bank_name="Riyad", account_number="55"))
    assert api.count("POST", "/bank-accounts") == 0


@pytest.mark.asyncio
async def test_failed_delete_leaves_account_in_place():
    api = FakeFinanceAPI(accounts=[raw_account(1)])
    api.fail[("DELETE", "/api/bank-accounts/1")] = (500, {})
    controller = api.controller()
    await controller.load_accounts()

    with pytest.raises(UpstreamError) as excinfo:
        await controller.delete_account(1)
    assert excinfo.value.message == "Failed to delete account"
    assert [acc.id for acc in controller.state.accounts.accounts] == [1]


@pytest.mark.asyncio
async def test_set_balance_overwrites_cached_account():
    api = FakeFinanceAPI(accounts=[raw_account(1, balance=100)])
    controller = api.controller()
    await controller.load_accounts()
    await controller.open_panel(1)

    await controller.set_balance(1, "42.5")

    assert controller.state.find_account(1).balance == 42.5
    assert controller.state.panel.account.balance == 42.5
    assert api.count("POST", "/transactions") == 0
