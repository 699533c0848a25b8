from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# Account and transaction forms are posted as finview.core.data_models.AccountDraft
# and TransactionDraft; only the auth and balance bodies need their own schema.


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class BalanceUpdateRequest(BaseModel):
    balance: Any = 0
