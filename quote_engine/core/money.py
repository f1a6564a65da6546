"""
Decimal coercion for money, percentages and quantities.
"""

from decimal import Decimal, InvalidOperation

from .errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, field: str) -> Decimal:
    """Coerce caller input into a Decimal without losing precision.

    Floats go through their shortest ``str`` form so that ``8.5`` becomes
    ``Decimal("8.5")`` rather than its binary expansion.

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    else:
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)
    return result
