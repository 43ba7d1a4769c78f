"""
utils/validators.py
-------------------
Input validation for payment fields. Every check raises
`exceptions.ValidationError` so callers can reject input before any write.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from exceptions import ValidationError

MAX_TITLE_LENGTH = 100
MAX_NOTES_LENGTH = 500
MAX_AMOUNT = Decimal("999999999")
# Amounts are stored as NUMERIC(12,2).
_CENT = Decimal("0.01")


def validate_title(value: Optional[str]) -> str:
    """Return the stripped title or raise."""
    if value is None or not value.strip():
        raise ValidationError("title", "Payment title is required")
    title = value.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError("title", f"Title cannot exceed {MAX_TITLE_LENGTH} characters")
    return title


def validate_amount(value) -> Decimal:
    """Accept a number or a string like '€1,200.50'; return a Decimal."""
    if isinstance(value, str):
        value = parse_amount(value)
    if value is None:
        raise ValidationError("amount", "Amount is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("amount", "Please enter a valid amount")
    if not amount.is_finite():
        raise ValidationError("amount", "Please enter a valid amount")
    if amount <= 0:
        raise ValidationError("amount", "Amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError("amount", "Amount is too large")
    if amount != amount.quantize(_CENT):
        raise ValidationError("amount", "Amount can have at most 2 decimal places")
    return amount


def validate_notes(value: Optional[str]) -> Optional[str]:
    """Notes are optional; empty strings are stored as None."""
    if not value:
        return None
    if len(value) > MAX_NOTES_LENGTH:
        raise ValidationError("notes", f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
    return value


def validate_due_date(value: Optional[datetime]) -> datetime:
    if value is None:
        raise ValidationError("due_date", "Due date is required")
    return value


def parse_amount(text: str) -> Optional[Decimal]:
    """
    Strip currency symbols and thousands separators from `text`.

    Returns:
        The parsed Decimal, or None if nothing numeric remains.
    """
    cleaned = re.sub(r"[^\d.\-]", "", text or "")
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
