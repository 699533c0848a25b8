from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, Header, Request

from finview.core.api_client import FinanceAPIClient, read_token_claims, token_expired
from finview.core.data_models import AuthSession
from finview.core.errors import UnauthorizedError

from ..config import settings
from ..state import sessions
from .bank_accounts import BankAccountsController

logger = logging.getLogger("finview.backend.sessions")


def session_key(token: str, check_expiry: bool = True) -> str:
    """Resolve the user id a bearer token was issued for."""
    claims = read_token_claims(token)
    if check_expiry and token_expired(claims):
        raise UnauthorizedError("Session expired")
    user_id = claims.get("user_id") or claims.get("sub")
    if user_id is None:
        raise UnauthorizedError("Invalid or expired token")
    return str(user_id)


def _new_controller(token: str, http_client: httpx.AsyncClient) -> BankAccountsController:
    client = FinanceAPIClient(token=token, client=http_client, default_currency=settings.default_currency)
    return BankAccountsController(
        client,
        page_size=settings.transaction_page_size,
        default_currency=settings.default_currency,
    )


def controller_for_token(token: str, http_client: httpx.AsyncClient) -> BankAccountsController:
    key = session_key(token)
    controller = sessions.get(key)
    if controller is None:
        logger.info("Starting view session for user %s", key)
        controller = _new_controller(token, http_client)
        sessions[key] = controller
    elif controller.client.token != token:
        controller.client.token = token
    return controller


def drop_session(token: str) -> None:
    # An expired token may still end its own session.
    key = session_key(token, check_expiry=False)
    if sessions.pop(key, None) is not None:
        logger.info("Closed view session for user %s", key)


def _start_session(token: str, http_client: httpx.AsyncClient) -> BankAccountsController:
    sessions.pop(session_key(token), None)
    return controller_for_token(token, http_client)


async def login(email: str, password: str, http_client: httpx.AsyncClient) -> AuthSession:
    client = FinanceAPIClient(client=http_client, default_currency=settings.default_currency)
    session = await client.login(email, password)
    _start_session(session.token, http_client)
    return session


async def register(name: str, email: str, password: str, http_client: httpx.AsyncClient) -> AuthSession:
    client = FinanceAPIClient(client=http_client, default_currency=settings.default_currency)
    session = await client.register(name, email, password)
    _start_session(session.token, http_client)
    return session


async def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization:
        raise UnauthorizedError("Authorization header required")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise UnauthorizedError("Invalid authorization header format")
    return parts[1]


async def current_controller(request: Request, token: str = Depends(bearer_token)) -> BankAccountsController:
    """
    FastAPI dependency returning the caller's view controller.
    Declared async so the session cache is only touched from the event loop.
    """
    return controller_for_token(token, request.app.state.http_client)


def profile_payload(session: AuthSession) -> Dict[str, Any]:
    return {"token": session.token, "user": session.user}
