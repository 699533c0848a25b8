from __future__ import annotations

from fastapi import APIRouter, Depends

from finview.core.data_models import AccountDraft
from finview.core.formatting import format_money

from ..config import settings
from ..schemas import BalanceUpdateRequest
from ..services.bank_accounts import BankAccountsController, render_view
from ..services.sessions import current_controller

router = APIRouter(prefix="/api", tags=["accounts"])


@router.get("/accounts")
async def get_accounts_view(controller: BankAccountsController = Depends(current_controller)):
    await controller.ensure_loaded()
    return render_view(controller.state, settings.default_currency)


@router.post("/accounts/refresh")
async def refresh_accounts(controller: BankAccountsController = Depends(current_controller)):
    await controller.load_accounts()
    return render_view(controller.state, settings.default_currency)


@router.post("/accounts", status_code=201)
async def create_account(draft: AccountDraft, controller: BankAccountsController = Depends(current_controller)):
    await controller.ensure_loaded()
    account = await controller.save_account(draft)
    return {"account": account.model_dump(mode="json"), "view": render_view(controller.state, settings.default_currency)}


@router.put("/accounts/{account_id}")
async def update_account(
    account_id: str,
    draft: AccountDraft,
    controller: BankAccountsController = Depends(current_controller),
):
    account = await controller.save_account(draft, account_id=account_id)
    return {"account": account.model_dump(mode="json"), "view": render_view(controller.state, settings.default_currency)}


@router.delete("/accounts/{account_id}")
async def delete_account(account_id: str, controller: BankAccountsController = Depends(current_controller)):
    await controller.delete_account(account_id)
    return render_view(controller.state, settings.default_currency)


@router.get("/accounts/{account_id}/balance")
async def get_balance(account_id: str, controller: BankAccountsController = Depends(current_controller)):
    snapshot = await controller.get_balance(account_id)
    payload = snapshot.model_dump(mode="json")
    payload["balance_label"] = format_money(snapshot.balance, snapshot.currency, settings.default_currency)
    return payload


@router.put("/accounts/{account_id}/balance")
async def set_balance(
    account_id: str,
    req: BalanceUpdateRequest,
    controller: BankAccountsController = Depends(current_controller),
):
    """Administrative override: writes the balance without posting a transaction."""
    await controller.set_balance(account_id, req.balance)
    return render_view(controller.state, settings.default_currency)
