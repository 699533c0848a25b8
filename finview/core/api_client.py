import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import jwt
from pydantic import BaseModel, ValidationError

from .data_models import (
    AccountDraft,
    AccountId,
    AuthSession,
    BalanceSnapshot,
    BankAccount,
    Transaction,
    TransactionDraft,
    TransactionResult,
)
from .errors import (
    GENERIC_FAILURE_MESSAGE,
    NotFoundError,
    TransportError,
    UnauthorizedError,
    UpstreamError,
)
from .formatting import to_finite_float

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT = httpx.Timeout(20.0, connect=5.0)
DEFAULT_TRANSACTION_LIMIT = 50
DEFAULT_CURRENCY = "SAR"

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_token_claims(token: str) -> Dict[str, Any]:
    """
    Decode the bearer token payload without verifying its signature.
    The finance API owns the signing key and verifies every request itself;
    we only need the user id and expiry to key local view state.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.warning("Could not decode bearer token: %s", exc)
        raise UnauthorizedError("Invalid or expired token") from exc


def token_expired(claims: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return False
    now = now or datetime.now(timezone.utc)
    return datetime.fromtimestamp(exp, tz=timezone.utc) <= now


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return GENERIC_FAILURE_MESSAGE
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return GENERIC_FAILURE_MESSAGE


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response)
    if response.status_code == 404:
        raise NotFoundError(message)
    if response.status_code == 401:
        raise UnauthorizedError(message)
    raise UpstreamError(message, status_code=response.status_code)


def _extract_items(payload: Any, *keys: str) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for key in keys + ("data", "items"):
            section = payload.get(key)
            if isinstance(section, list):
                return [item for item in section if isinstance(item, dict)]
    return []


def _parse_rows(model: Type[ModelT], rows: List[Dict[str, Any]]) -> List[ModelT]:
    parsed: List[ModelT] = []
    for raw in rows:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s payload %s: %s", model.__name__, raw, exc)
    return parsed


def _parse_one(model: Type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.error("Malformed %s payload %s: %s", model.__name__, payload, exc)
        raise UpstreamError("Invalid response from the finance service", status_code=502) from exc


class FinanceAPIClient:
    """Async client for the bank-account and ledger endpoints of the finance API."""

    def __init__(
        self,
        api_base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        default_currency: str = DEFAULT_CURRENCY,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        if client is None and not api_base_url:
            raise ValueError("api_base_url is required when no shared client is given.")

        self.token = token
        self.default_currency = default_currency
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=api_base_url.rstrip("/"), timeout=timeout, transport=transport
            )
        self._client = client

    def _headers(self, authenticated: bool) -> Dict[str, str]:
        if authenticated and self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=self._headers(authenticated)
            )
        except httpx.RequestError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise TransportError("Unable to reach the finance service") from exc

        if response.status_code >= 400:
            logger.warning("%s %s returned %s", method, path, response.status_code)
        _raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("Invalid response from the finance service", status_code=502) from exc

    async def close(self) -> None:
        """Dispose the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # Auth

    async def login(self, email: str, password: str) -> AuthSession:
        payload = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}, authenticated=False
        )
        session = _parse_one(AuthSession, payload)
        self.token = session.token
        return session

    async def register(self, name: str, email: str, password: str) -> AuthSession:
        payload = await self._request(
            "POST",
            "/auth/register",
            json={"name": name, "email": email, "password": password},
            authenticated=False,
        )
        session = _parse_one(AuthSession, payload)
        self.token = session.token
        return session

    async def current_user(self) -> Dict[str, Any]:
        payload = await self._request("GET", "/auth/me")
        return payload if isinstance(payload, dict) else {}

    # Accounts

    async def list_accounts(self) -> List[BankAccount]:
        payload = await self._request("GET", "/bank-accounts")
        accounts = _parse_rows(BankAccount, _extract_items(payload, "accounts"))
        logger.info("Fetched %d bank accounts", len(accounts))
        return accounts

    async def get_account(self, account_id: AccountId) -> BankAccount:
        payload = await self._request("GET", f"/bank-accounts/{account_id}")
        return _parse_one(BankAccount, payload)

    async def create_account(self, draft: AccountDraft) -> BankAccount:
        body = draft.to_payload(self.default_currency)
        payload = await self._request("POST", "/bank-accounts", json=body)
        account = _parse_one(BankAccount, payload)
        logger.info("Created bank account %s", account.id)
        return account

    async def update_account(self, account_id: AccountId, draft: AccountDraft) -> BankAccount:
        body = draft.to_payload(self.default_currency)
        payload = await self._request("PUT", f"/bank-accounts/{account_id}", json=body)
        return _parse_one(BankAccount, payload)

    async def delete_account(self, account_id: AccountId) -> None:
        await self._request("DELETE", f"/bank-accounts/{account_id}")
        logger.info("Deleted bank account %s", account_id)

    async def get_balance(self, account_id: AccountId) -> BalanceSnapshot:
        payload = await self._request("GET", f"/bank-accounts/{account_id}/balance")
        return _parse_one(BalanceSnapshot, payload)

    async def set_balance(self, account_id: AccountId, value: Any) -> BankAccount:
        """Overwrite the balance directly, bypassing the transaction ledger."""
        balance = to_finite_float(value)
        payload = await self._request(
            "PUT",
            f"/bank-accounts/{account_id}/balance",
            json={"balance": balance if balance is not None else 0.0},
        )
        return _parse_one(BankAccount, payload)

    # Ledger

    async def list_transactions(
        self, account_id: AccountId, limit: int = DEFAULT_TRANSACTION_LIMIT
    ) -> List[Transaction]:
        payload = await self._request(
            "GET", f"/bank-accounts/{account_id}/transactions", params={"limit": limit}
        )
        return _parse_rows(Transaction, _extract_items(payload, "transactions"))[:limit]

    async def add_transaction(self, account_id: AccountId, draft: TransactionDraft) -> TransactionResult:
        body = draft.to_payload()
        payload = await self._request("POST", f"/bank-accounts/{account_id}/transactions", json=body)
        result = TransactionResult.from_payload(payload)
        logger.info(
            "Posted %s of %.2f to account %s (new balance %s)",
            body["type"],
            body["amount"],
            account_id,
            result.balance,
        )
        return result
