"""
Extraction Engine

Turns raw text (a voice transcript or a receipt's OCR text) into a
TransactionDraft. Everything here is a pure function of its inputs plus
the clock reading used for the draft's date: no I/O and no shared state.

CRITICAL: Failure is returned as ``None``, never raised. A capture that
yields no usable amount is a normal outcome the user sees as "try again",
not an error.

Voice rules:
- Income when any income signal word appears, expense otherwise
- Amount is the first number in the text
- Description is the whole transcript

Receipt rules:
- Always an expense
- Amount follows the first whole-word "total" label; with no such label
  the draft carries amount 0 for the user to correct
- Description is the first printed line, tagged " (Receipt)"
"""

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from trackrise.extraction.lexicon import (
    FREE_TEXT_EXPENSE_CATEGORIES,
    FREE_TEXT_INCOME_CATEGORIES,
    INCOME_SIGNALS,
    RECEIPT_CATEGORIES,
    contains_any,
    match_category,
)
from trackrise.models.currency import SUPPORTED_CURRENCIES
from trackrise.models.transaction import (
    FALLBACK_CATEGORY,
    EntryMethod,
    TransactionDraft,
    TransactionType,
    utcnow,
)

MAX_DESCRIPTION_LENGTH = 50
RECEIPT_SUFFIX = " (Receipt)"
DEFAULT_RECEIPT_DESCRIPTION = "Receipt"

# First run of digits, optionally with thousands separators and decimals
AMOUNT_PATTERN = re.compile(r"\d+[\d,]*(?:\.\d+)?")


def _currency_marker_pattern() -> str:
    markers = {"kshs"}
    for currency in SUPPORTED_CURRENCIES:
        markers.add(currency.code.lower())
        markers.add(currency.symbol.lower())
    alternatives = sorted(markers, key=len, reverse=True)
    return "|".join(re.escape(marker) for marker in alternatives)


# "TOTAL", "Total:", "TOTAL: KSh 1,150.00". "SUBTOTAL" is not a total.
TOTAL_PATTERN = re.compile(
    r"\btotal\b\s*:?\s*(?:(?:" + _currency_marker_pattern() + r")\.?\s*)?"
    r"(\d[\d,]*(?:\.\d+)?)",
    re.IGNORECASE,
)


class TextSource(str, Enum):
    """Where raw text came from, which decides the rules applied to it."""

    FREE_TEXT = "free_text"
    RECEIPT = "receipt"


def parse_amount(token: str) -> Optional[Decimal]:
    """Parse a numeric token like ``"1,150.00"`` to a 2-place Decimal."""
    try:
        value = Decimal(token.replace(",", ""))
    except InvalidOperation:
        return None
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def classify_type(text: str) -> TransactionType:
    if contains_any(text, INCOME_SIGNALS):
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def free_text_category(text: str, transaction_type: TransactionType) -> str:
    lexicon = (
        FREE_TEXT_INCOME_CATEGORIES
        if transaction_type == TransactionType.INCOME
        else FREE_TEXT_EXPENSE_CATEGORIES
    )
    return match_category(text, lexicon, FALLBACK_CATEGORY[transaction_type])


def receipt_category(text: str) -> str:
    return match_category(text, RECEIPT_CATEGORIES, FALLBACK_CATEGORY[TransactionType.EXPENSE])


def receipt_total(text: str) -> Decimal:
    """Amount printed after the receipt's total label, or 0 when absent."""
    match = TOTAL_PATTERN.search(text)
    if match is None:
        return Decimal("0.00")
    return parse_amount(match.group(1)) or Decimal("0.00")


def receipt_description(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    description = lines[0] if lines else DEFAULT_RECEIPT_DESCRIPTION

    if len(description) > MAX_DESCRIPTION_LENGTH:
        description = description[:MAX_DESCRIPTION_LENGTH - 3] + "..."
    return description + RECEIPT_SUFFIX


def extract_from_free_text(
    text: str,
    default_currency: str,
    now: Optional[datetime] = None,
) -> Optional[TransactionDraft]:
    """
    Build a draft from a voice transcript.

    Returns None when the text holds no amount or the amount is zero.
    """
    match = AMOUNT_PATTERN.search(text)
    if match is None:
        return None

    amount = parse_amount(match.group(0))
    if amount is None or amount <= 0:
        return None

    transaction_type = classify_type(text)

    return TransactionDraft(
        amount=amount,
        currency_code=default_currency,
        type=transaction_type,
        category=free_text_category(text, transaction_type),
        description=text,
        date=now or utcnow(),
        entry_method=EntryMethod.VOICE,
        raw_text=text,
    )


def extract_from_receipt(
    text: str,
    default_currency: str,
    now: Optional[datetime] = None,
) -> TransactionDraft:
    """Build an expense draft from a receipt's OCR text. Always succeeds."""
    return TransactionDraft(
        amount=receipt_total(text),
        currency_code=default_currency,
        type=TransactionType.EXPENSE,
        category=receipt_category(text),
        description=receipt_description(text),
        date=now or utcnow(),
        entry_method=EntryMethod.PHOTO,
        raw_text=text,
    )


def extract(
    raw_text: str,
    default_currency: str,
    source: TextSource = TextSource.FREE_TEXT,
    now: Optional[datetime] = None,
) -> Optional[TransactionDraft]:
    """
    Turn raw text into a transaction draft.

    Args:
        raw_text: transcript or OCR text
        default_currency: currency code stamped on the draft
        source: which rule set applies
        now: draft date (defaults to the current time)

    Returns:
        The draft, or None when no usable transaction was found
    """
    if source == TextSource.RECEIPT:
        return extract_from_receipt(raw_text, default_currency, now)
    return extract_from_free_text(raw_text, default_currency, now)
