"""
Decimal precision helpers for tax amounts and rates.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - No floats: every helper accepts and returns ``Decimal``.
    - Rounding is half-up and happens where an amount is calculated, not
      at presentation time, so summed components never compound error.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TAX_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str, field: str = "value") -> Decimal:
    """
    Coerce an int, str or Decimal into a Decimal.

    Floats are rejected; they carry binary representation error.

    Raises:
        TypeError: If value is a float or another unsupported type.
        ValueError: If a string cannot be parsed.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, float)):
        raise TypeError(f"{field} must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"{field} is not a decimal number: {value!r}") from exc
    raise TypeError(f"{field} must be Decimal, int or str, got {type(value).__name__}")


def round_tax(
    value: Decimal,
    decimal_places: int = TAX_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a tax amount to a fixed number of decimal places.

    This is the only rounding function the engines use for amounts.

    Example:
        round_tax(Decimal("7000")) -> Decimal("7000.0000")
        round_tax(Decimal("1.23455")) -> Decimal("1.2346")
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)


def percentage_of(
    amount: Decimal,
    rate_percentage: Decimal,
    decimal_places: int = TAX_DECIMAL_PLACES,
) -> Decimal:
    """``amount * rate / 100`` rounded half-up."""
    return round_tax(amount * rate_percentage / HUNDRED, decimal_places)
