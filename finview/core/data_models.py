"""Data models for bank accounts and their ledger transactions."""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ClientValidationError
from .formatting import coerce_amount, normalize_currency_code, to_finite_float

logger = logging.getLogger(__name__)

AccountId = Union[int, str]

ACCOUNT_TYPES = ("Checking", "Savings", "Credit Card", "Investment", "Money Market", "CD")
DEFAULT_ACCOUNT_COLOR = "#3B82F6"
DEFAULT_ACCOUNT_ICON = "🏦"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


_TRANSACTION_TYPE_ALIASES = {
    "credit": TransactionType.CREDIT,
    "add": TransactionType.CREDIT,
    "deposit": TransactionType.CREDIT,
    "in": TransactionType.CREDIT,
    "debit": TransactionType.DEBIT,
    "sub": TransactionType.DEBIT,
    "subtract": TransactionType.DEBIT,
    "withdraw": TransactionType.DEBIT,
    "out": TransactionType.DEBIT,
}


def _canonical_account_type(value: Any) -> str:
    key = str(value or "").strip().lower()
    for account_type in ACCOUNT_TYPES:
        if account_type.lower() == key:
            return account_type
    raise ClientValidationError(f"Unknown account type '{value}'")


def normalize_transaction_type(value: Any) -> TransactionType:
    """Resolve user input such as ``deposit`` or ``withdraw`` to credit/debit."""
    if isinstance(value, TransactionType):
        return value
    key = str(value or "").strip().lower()
    try:
        return _TRANSACTION_TYPE_ALIASES[key]
    except KeyError:
        raise ClientValidationError("Transaction type must be add/credit or sub/debit") from None


class BankAccount(BaseModel):
    """A tracked bank account as returned by the finance API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: AccountId
    account_name: str = ""
    bank_name: str = ""
    account_type: str = "Checking"
    account_number: str = ""
    balance: float = 0.0
    currency: Optional[str] = None
    color: str = DEFAULT_ACCOUNT_COLOR
    icon: str = DEFAULT_ACCOUNT_ICON
    notes: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("balance", mode="before")
    @classmethod
    def _finite_balance(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator("account_name", "bank_name", "account_number", "notes", "color", "icon", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class AccountDraft(BaseModel):
    """Account form contents, prior to submission."""

    account_name: str = ""
    bank_name: str = ""
    account_type: str = "Checking"
    account_number: str = ""
    balance: Any = 0
    currency: Optional[str] = None
    color: str = DEFAULT_ACCOUNT_COLOR
    icon: str = DEFAULT_ACCOUNT_ICON
    notes: str = ""
    is_active: bool = True

    def to_payload(self, default_currency: str) -> Dict[str, Any]:
        """Trim and coerce the form; raise if a required field is blank."""
        account_name = (self.account_name or "").strip()
        bank_name = (self.bank_name or "").strip()
        account_number = (self.account_number or "").strip()
        if not account_name or not bank_name or not account_number:
            raise ClientValidationError("Please fill in all required fields")
        account_type = _canonical_account_type(self.account_type)

        return {
            "account_name": account_name,
            "bank_name": bank_name,
            "account_type": account_type,
            "account_number": account_number,
            "balance": coerce_amount(self.balance),
            "currency": normalize_currency_code(self.currency, default_currency),
            "color": self.color or DEFAULT_ACCOUNT_COLOR,
            "icon": self.icon or DEFAULT_ACCOUNT_ICON,
            "notes": self.notes or "",
            "is_active": self.is_active,
        }


class Transaction(BaseModel):
    """An immutable credit or debit posted against one account."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: AccountId
    bank_account_id: Optional[AccountId] = None
    type: TransactionType
    amount: float
    description: str = ""
    created_at: Optional[datetime] = None

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: Any) -> Any:
        return str(value).strip().lower() if value is not None else value

    @field_validator("description", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class TransactionDraft(BaseModel):
    """Transaction entry form: amount, direction, optional description."""

    amount: Any = None
    type: Any = TransactionType.CREDIT
    description: str = ""

    def to_payload(self) -> Dict[str, Any]:
        amount = to_finite_float(self.amount)
        if amount is None or amount <= 0:
            raise ClientValidationError("Please enter an amount greater than zero")
        return {
            "amount": amount,
            "type": normalize_transaction_type(self.type).value,
            "description": (self.description or "").strip(),
        }


class TransactionResult(BaseModel):
    """Outcome of posting a transaction: the new record and the account's new total."""

    model_config = ConfigDict(frozen=True)

    transaction: Optional[Transaction] = None
    balance: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TransactionResult":
        if not isinstance(payload, dict):
            return cls()
        raw_tx = payload.get("transaction")
        transaction = None
        if isinstance(raw_tx, dict):
            try:
                transaction = Transaction.model_validate(raw_tx)
            except ValidationError as exc:
                logger.warning("Ignoring malformed transaction in response %s: %s", raw_tx, exc)
        raw_balance = payload.get("balance")
        balance = None
        if isinstance(raw_balance, (int, float)):
            balance = to_finite_float(raw_balance)
        return cls(transaction=transaction, balance=balance)


class BalanceSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: AccountId
    balance: float = 0.0
    currency: Optional[str] = None

    @field_validator("balance", mode="before")
    @classmethod
    def _finite_balance(cls, value: Any) -> float:
        return coerce_amount(value)


class AuthSession(BaseModel):
    """Token and user profile handed back by login/register."""

    token: str
    user: Dict[str, Any] = Field(default_factory=dict)
