"""
Line item and quote total calculations.

Single source of truth for quote money arithmetic. Every caller (creation
wizard, edit flow, detail view, email templating) derives totals through
these functions so that figures never diverge between call sites.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .discount import AbsoluteDiscount, PercentageDiscount
from .errors import ValidationError
from .money import HUNDRED, ZERO, to_decimal
from quote_engine.storage.models import LineItem, Quote, QuoteTerms


@dataclass(frozen=True)
class QuoteTotals:
    """Aggregate money fields of a quote."""
    subtotal: Decimal
    discount_total: Decimal
    tax_total: Decimal
    shipping_total: Decimal
    total: Decimal


def _validate_inputs(item: LineItem) -> None:
    if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
        raise ValidationError(
            f"quantity must be an integer, got {item.quantity!r}", field="quantity"
        )
    if item.quantity < 0:
        raise ValidationError(f"quantity cannot be negative: {item.quantity}", field="quantity")

    unit_price = to_decimal(item.unit_price, "unit_price")
    if unit_price < 0:
        raise ValidationError(f"unit_price cannot be negative: {unit_price}", field="unit_price")

    tax_rate = to_decimal(item.tax_rate, "tax_rate")
    if tax_rate < 0 or tax_rate > HUNDRED:
        raise ValidationError(f"tax_rate must be between 0 and 100: {tax_rate}", field="tax_rate")

    if isinstance(item.discount, PercentageDiscount):
        pct = to_decimal(item.discount.percentage, "discount_percentage")
        if pct < 0 or pct > HUNDRED:
            raise ValidationError(
                f"discount_percentage must be between 0 and 100: {pct}",
                field="discount_percentage",
            )
    elif isinstance(item.discount, AbsoluteDiscount):
        amount = to_decimal(item.discount.amount, "discount_amount")
        if amount < 0:
            raise ValidationError(
                f"discount_amount cannot be negative: {amount}", field="discount_amount"
            )
    elif item.discount is not None:
        raise ValidationError(
            f"Unsupported discount specification: {item.discount!r}", field="discount"
        )


def recompute_line_item(item: LineItem) -> LineItem:
    """Derive subtotal, discount, tax and total for a line item.

    Algorithm:
    1. subtotal = quantity * unit_price
    2. discount = subtotal * pct / 100 (percentage) or the fixed amount
    3. tax = (subtotal - discount) * tax_rate / 100
    4. total = subtotal - discount + tax

    Values are kept at full Decimal precision; rounding to the currency's
    minor unit happens only at presentation.

    Args:
        item: Line item with its input fields set

    Returns:
        A copy of the item with derived fields refreshed

    Raises:
        ValidationError: If any input is out of range, or a fixed
            discount exceeds the subtotal
    """
    _validate_inputs(item)

    unit_price = to_decimal(item.unit_price, "unit_price")
    tax_rate = to_decimal(item.tax_rate, "tax_rate")

    subtotal = Decimal(item.quantity) * unit_price

    if isinstance(item.discount, PercentageDiscount):
        pct = to_decimal(item.discount.percentage, "discount_percentage")
        discount_amount = subtotal * (pct / HUNDRED)
    elif isinstance(item.discount, AbsoluteDiscount):
        discount_amount = to_decimal(item.discount.amount, "discount_amount")
        if discount_amount > subtotal:
            raise ValidationError(
                f"discount_amount {discount_amount} exceeds subtotal {subtotal}",
                field="discount_amount",
            )
    else:
        discount_amount = ZERO

    tax_amount = (subtotal - discount_amount) * (tax_rate / HUNDRED)
    total = subtotal - discount_amount + tax_amount

    return replace(
        item,
        unit_price=unit_price,
        tax_rate=tax_rate,
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
    )


def recompute_quote_totals(
    items: Iterable[LineItem],
    shipping_total=ZERO,
) -> QuoteTotals:
    """Sum line items into quote-level totals.

    Each item is recomputed first, so stale derived fields never leak into
    the aggregate. An empty item list yields all-zero totals.

    Args:
        items: Line items of the quote
        shipping_total: Flat shipping charge added to the grand total

    Returns:
        QuoteTotals with total = subtotal - discount + tax + shipping

    Raises:
        ValidationError: If any item is invalid or shipping is negative
    """
    shipping = to_decimal(shipping_total, "shipping_total")
    if shipping < 0:
        raise ValidationError(
            f"shipping_total cannot be negative: {shipping}", field="shipping_total"
        )

    subtotal = ZERO
    discount_total = ZERO
    tax_total = ZERO
    for item in items:
        computed = recompute_line_item(item)
        subtotal += computed.subtotal
        discount_total += computed.discount_amount
        tax_total += computed.tax_amount

    return QuoteTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        tax_total=tax_total,
        shipping_total=shipping,
        total=subtotal - discount_total + tax_total + shipping,
    )


def reprice_quote(quote: Quote) -> Quote:
    """Recompute every line item and the aggregate fields of a quote."""
    items = tuple(recompute_line_item(item) for item in quote.line_items)
    totals = recompute_quote_totals(items, quote.shipping_total)
    return replace(
        quote,
        line_items=items,
        shipping_total=totals.shipping_total,
        subtotal=totals.subtotal,
        discount_total=totals.discount_total,
        tax_total=totals.tax_total,
        total=totals.total,
    )


def new_quote(
    quote_id: str,
    quote_number: str,
    now: datetime,
    line_items: Sequence[LineItem] = (),
    shipping_total=ZERO,
    terms: Optional[QuoteTerms] = None,
    expires_at: Optional[datetime] = None,
) -> Quote:
    """Create a DRAFT quote with its totals already derived."""
    quote = Quote(
        id=quote_id,
        quote_number=quote_number,
        created_at=now,
        updated_at=now,
        line_items=tuple(line_items),
        shipping_total=to_decimal(shipping_total, "shipping_total"),
        terms=terms or QuoteTerms(),
        expires_at=expires_at,
    )
    return reprice_quote(quote)
