"""Error taxonomy shared by the API client and the view layer."""
from __future__ import annotations

from typing import Optional

GENERIC_FAILURE_MESSAGE = "Request failed"


class FinanceAPIError(Exception):
    """Base error for everything the finance client or view layer can raise."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClientValidationError(FinanceAPIError):
    """Local precondition failed; no request was issued."""

    status_code = 400


class OperationInProgressError(FinanceAPIError):
    """The same operation is already awaiting a response."""

    status_code = 409


class TransportError(FinanceAPIError):
    """The upstream API could not be reached."""

    status_code = 502


class UpstreamError(FinanceAPIError):
    """The upstream API answered with an error status."""


class UnauthorizedError(UpstreamError):
    status_code = 401


class NotFoundError(UpstreamError):
    status_code = 404
