from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings:
    """Runtime settings shared across the experience API."""

    def __init__(self) -> None:
        self.title: str = "FinView Experience API"
        self.version: str = "1.0.0"
        self.finance_api_url: str = os.getenv("FINANCE_API_URL", "http://localhost:8086/api")
        self.frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")
        self.cors_origins: List[str] = _split_origins(
            os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173")
        )
        # Fallback for accounts that carry no currency code.
        self.default_currency: str = os.getenv("DEFAULT_CURRENCY", "SAR").upper()
        self.transaction_page_size: int = int(os.getenv("TRANSACTION_PAGE_SIZE", "50"))
        self.request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "20"))
        self.session_cache_ttl: int = int(os.getenv("SESSION_CACHE_TTL", "1800"))
        self.session_cache_size: int = int(os.getenv("SESSION_CACHE_SIZE", "256"))


settings = Settings()
