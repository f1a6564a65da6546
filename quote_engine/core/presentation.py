"""
Presentation helpers for quote figures.

Rounding to the currency's minor unit happens here and nowhere else. Also
builds the variable map consumed by the email templating layer.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional

from quote_engine.storage.models import Quote

from .workflow import STATUS_METADATA

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
    "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
})

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "KRW": "₩",
}


def minor_units(currency: str, overrides: Optional[Mapping[str, int]] = None) -> int:
    """Number of decimal places used when presenting amounts in a currency."""
    code = currency.upper()
    if overrides and code in overrides:
        return overrides[code]
    return 0 if code in ZERO_DECIMAL_CURRENCIES else 2


def round_money(
    amount: Decimal,
    currency: str,
    overrides: Optional[Mapping[str, int]] = None,
) -> Decimal:
    """Round an amount to the currency's minor unit, half away from zero."""
    exponent = Decimal(1).scaleb(-minor_units(currency, overrides))
    return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def format_money(
    amount: Decimal,
    currency: str,
    overrides: Optional[Mapping[str, int]] = None,
) -> str:
    """Format an amount for display, e.g. "$1,250.00" or "¥1,250"."""
    code = currency.upper()
    places = minor_units(code, overrides)
    rounded = round_money(amount, code, overrides)
    sign = "-" if rounded < 0 else ""
    number = f"{abs(rounded):,.{places}f}"
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{number}"
    return f"{sign}{code} {number}"


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return f"{value:%B} {value.day}, {value.year}"


def build_template_variables(
    quote: Quote,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    company_name: Optional[str] = None,
    shop_name: Optional[str] = None,
    quote_url: Optional[str] = None,
    overrides: Optional[Mapping[str, int]] = None,
) -> Dict[str, str]:
    """Build the template variables for outbound quote emails.

    Reads the quote's already-derived totals; call ``reprice_quote`` first
    if line items changed.
    """
    currency = quote.terms.currency
    valid_until = _format_date(quote.expires_at)
    return {
        "shopName": shop_name or "",
        "customerName": customer_name or "",
        "customerEmail": customer_email or "",
        "companyName": company_name or "",
        "quoteNumber": quote.quote_number,
        "quoteUrl": quote_url or "",
        "quoteDate": _format_date(quote.created_at),
        "expiresAt": valid_until,
        "validUntil": valid_until,
        "quoteStatus": STATUS_METADATA[quote.status].label,
        "quoteSubtotal": format_money(quote.subtotal, currency, overrides),
        "quoteDiscount": format_money(quote.discount_total, currency, overrides),
        "quoteTax": format_money(quote.tax_total, currency, overrides),
        "quoteShipping": format_money(quote.shipping_total, currency, overrides),
        "quoteTotal": format_money(quote.total, currency, overrides),
    }
