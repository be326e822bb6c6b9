from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from stockledger.services.exceptions import ValidationError

_MISSING = object()

QUANTITY_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")


def to_decimal(value, field: str = "value", default=_MISSING) -> Decimal:
    """
    Normalize a numeric operand to Decimal.

    Strings from drivers or JSON ("10", " 2.5 ") are parsed, never
    concatenated. Booleans, NaN and infinities are rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not _MISSING:
            return default
        raise ValidationError(field, "is required")

    if isinstance(value, bool):
        raise ValidationError(field, f"must be a number, got {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(field, f"must be a number, got {value!r}")
    else:
        raise ValidationError(field, f"must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise ValidationError(field, f"must be a finite number, got {value!r}")
    return result


def quantize_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
