from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..schemas import LoginRequest, RegisterRequest
from ..services import sessions
from ..services.bank_accounts import BankAccountsController

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(req: LoginRequest, request: Request):
    session = await sessions.login(req.email, req.password, request.app.state.http_client)
    return sessions.profile_payload(session)


@router.post("/register", status_code=201)
async def register(req: RegisterRequest, request: Request):
    session = await sessions.register(req.name, req.email, req.password, request.app.state.http_client)
    return sessions.profile_payload(session)


@router.post("/logout")
async def logout(token: str = Depends(sessions.bearer_token)):
    sessions.drop_session(token)
    return {"message": "Logged out"}


@router.get("/me")
async def current_user(controller: BankAccountsController = Depends(sessions.current_controller)):
    return await controller.client.current_user()
