"""
Supported Currencies

Reference data for the currencies a ledger entry may be recorded in.
Amounts are currency-agnostic magnitudes; the code travels with each
transaction and only affects display.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Currency(BaseModel):
    """A supported currency."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=3, max_length=3)
    name: str
    symbol: str


SUPPORTED_CURRENCIES: tuple[Currency, ...] = (
    Currency(code="KES", name="Kenyan Shilling", symbol="KSh"),
    Currency(code="UGX", name="Ugandan Shilling", symbol="USh"),
    Currency(code="TZS", name="Tanzanian Shilling", symbol="TSh"),
    Currency(code="RWF", name="Rwandan Franc", symbol="RF"),
    Currency(code="NGN", name="Nigerian Naira", symbol="₦"),
    Currency(code="GHS", name="Ghanaian Cedi", symbol="₵"),
    Currency(code="ZAR", name="South African Rand", symbol="R"),
    Currency(code="ETB", name="Ethiopian Birr", symbol="Br"),
    Currency(code="EGP", name="Egyptian Pound", symbol="E£"),
    Currency(code="USD", name="US Dollar", symbol="$"),
)

_BY_CODE = {currency.code: currency for currency in SUPPORTED_CURRENCIES}


def get_currency(code: str) -> Optional[Currency]:
    """Look up a supported currency by its code (case-insensitive)."""
    return _BY_CODE.get(code.upper()) if code else None


def is_supported_currency(code: str) -> bool:
    return get_currency(code) is not None


def format_currency(amount: Union[Decimal, int, float], currency_code: str) -> str:
    """
    Render an amount for display.

    Known currencies get their symbol and thousands separators, with
    trailing zero decimals dropped (``KSh 1,150``, ``KSh 1,150.5``).
    Unknown codes fall back to the bare amount with two decimals.
    """
    value = Decimal(str(amount))
    currency = get_currency(currency_code)
    if currency is None:
        return f"{value:.2f}"

    rendered = f"{value.quantize(Decimal('0.01')):,.2f}"
    if rendered.endswith(".00"):
        rendered = rendered[:-3]
    elif rendered.endswith("0"):
        rendered = rendered[:-1]
    return f"{currency.symbol} {rendered}"
