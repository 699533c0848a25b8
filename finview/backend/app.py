from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finview.core.errors import FinanceAPIError

from .config import settings
from .routers import accounts, auth, panel

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("finview.backend")


def create_app(transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    app = FastAPI(title=settings.title, version=settings.version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(accounts.router)
    app.include_router(panel.router)

    @app.exception_handler(FinanceAPIError)
    async def _finance_error(request: Request, exc: FinanceAPIError) -> JSONResponse:
        status_code = exc.status_code if 400 <= exc.status_code < 500 else 502
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.on_event("startup")
    async def _on_startup() -> None:
        logger.info("Bootstrapping FinView backend against %s", settings.finance_api_url)
        app.state.http_client = httpx.AsyncClient(
            base_url=settings.finance_api_url.rstrip("/"),
            timeout=httpx.Timeout(settings.request_timeout, connect=5.0),
            transport=transport,
        )

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        await app.state.http_client.aclose()

    return app


app = create_app()
