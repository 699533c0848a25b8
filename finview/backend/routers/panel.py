from __future__ import annotations

from fastapi import APIRouter, Depends

from finview.core.data_models import TransactionDraft

from ..config import settings
from ..services.bank_accounts import BankAccountsController, render_view
from ..services.sessions import current_controller

router = APIRouter(prefix="/api", tags=["transactions"])


@router.post("/accounts/{account_id}/panel")
async def open_panel(account_id: str, controller: BankAccountsController = Depends(current_controller)):
    """
    Open the transaction panel for one account, replacing any open panel.

    A failed history load still returns 200; the panel reports status
    ``load-failed`` with the error so the user can reopen it.
    """
    await controller.ensure_loaded()
    await controller.open_panel(account_id)
    return render_view(controller.state, settings.default_currency)


@router.delete("/panel")
async def close_panel(controller: BankAccountsController = Depends(current_controller)):
    controller.close_panel()
    return render_view(controller.state, settings.default_currency)


@router.post("/panel/transactions", status_code=201)
async def add_transaction(draft: TransactionDraft, controller: BankAccountsController = Depends(current_controller)):
    result = await controller.submit_transaction(draft)
    return {
        "transaction": result.transaction.model_dump(mode="json") if result.transaction else None,
        "balance": result.balance,
        "view": render_view(controller.state, settings.default_currency),
    }
