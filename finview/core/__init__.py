"""Core package exposing the finance API client and its data models."""

from .api_client import FinanceAPIClient
from .data_models import AccountDraft, BankAccount, Transaction, TransactionDraft, TransactionResult
from .errors import FinanceAPIError

__all__ = [
    "FinanceAPIClient",
    "AccountDraft",
    "BankAccount",
    "Transaction",
    "TransactionDraft",
    "TransactionResult",
    "FinanceAPIError",
]
