from __future__ import annotations

from typing import TYPE_CHECKING

from cachetools import TTLCache

from .config import settings

if TYPE_CHECKING:
    from .services.bank_accounts import BankAccountsController

# Per-user view state, keyed by the user id found in the bearer token.
sessions: "TTLCache[str, BankAccountsController]" = TTLCache(
    maxsize=settings.session_cache_size, ttl=settings.session_cache_ttl
)
