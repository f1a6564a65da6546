"""
Discount specification for line items.

A line item carries at most one discount, either a percentage of its
subtotal or a fixed money amount.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from .errors import ValidationError
from .money import to_decimal


@dataclass(frozen=True)
class PercentageDiscount:
    """Discount expressed as a percentage (0-100) of the line subtotal."""
    percentage: Decimal


@dataclass(frozen=True)
class AbsoluteDiscount:
    """Discount expressed as a fixed amount in the quote currency."""
    amount: Decimal


Discount = Union[PercentageDiscount, AbsoluteDiscount]


def discount_from_fields(
    discount_percentage=None,
    discount_amount=None,
) -> Optional[Discount]:
    """Build a discount from the two-field form used by forms and imports.

    Args:
        discount_percentage: Percentage of the subtotal, or None
        discount_amount: Fixed amount, or None

    Returns:
        The matching discount variant, or None when neither is given

    Raises:
        ValidationError: If both fields are supplied
    """
    if discount_percentage is not None and discount_amount is not None:
        raise ValidationError(
            "discount_percentage and discount_amount are mutually exclusive",
            field="discount",
        )
    if discount_percentage is not None:
        return PercentageDiscount(
            percentage=to_decimal(discount_percentage, "discount_percentage")
        )
    if discount_amount is not None:
        return AbsoluteDiscount(amount=to_decimal(discount_amount, "discount_amount"))
    return None
