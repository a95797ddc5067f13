"""Lightweight parsing helpers for permissive type coercion."""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Optional


def parse_optional_int(value: object) -> Optional[int]:
    """Best-effort int parsing; returns None on failure."""
    try:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def parse_optional_decimal(value: object) -> Optional[Decimal]:
    """Parse a number or decimal string exactly; booleans and blanks are rejected."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None
