"""Display helpers for currency codes and monetary amounts."""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, Optional

MULTI_CURRENCY_LABEL = "MULTI"
_RIYAL_CODES = {"SAR", "SR"}
_GROUPED_NUMBER = re.compile(r"[+-]?\d{1,3}(,\d{3})+(\.\d*)?")


def to_finite_float(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(" ", "")
        if not text:
            return None
        if "," in text:
            # Only thousands separators; "1,5" is ambiguous.
            if not _GROUPED_NUMBER.fullmatch(text):
                return None
            text = text.replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def coerce_amount(value: Any) -> float:
    numeric = to_finite_float(value)
    return numeric if numeric is not None else 0.0


def normalize_currency_code(code: Any, fallback: str) -> str:
    text = str(code).strip() if code is not None else ""
    return (text or fallback).upper()


def normalize_currency_label(code: Any, fallback: str) -> str:
    """Map a currency code to its display label; SAR and SR both render as SR."""
    normalized = normalize_currency_code(code, fallback)
    return "SR" if normalized in _RIYAL_CODES else normalized


def format_amount(value: Any) -> str:
    return f"{coerce_amount(value):,.2f}"


def format_money(value: Any, currency: Any, fallback: str) -> str:
    return f"{normalize_currency_label(currency, fallback)} {format_amount(value)}"


def summary_currency(currencies: Iterable[Any], fallback: str) -> str:
    """Label for a total across accounts; MULTI when they use different currencies."""
    labels = {normalize_currency_label(code, fallback) for code in currencies}
    if len(labels) > 1:
        return MULTI_CURRENCY_LABEL
    if labels:
        return labels.pop()
    return normalize_currency_label(None, fallback)
