"""
Token Unit Conversion Module

Converts between human-readable decimal token quantities and the ledger's
integer base unit (18 fractional digits, "wei" style). NEVER uses float
for token amounts.
"""

from decimal import Decimal
from enum import Enum
from typing import Union
import re

TOKEN_DECIMALS = 18
ONE_TOKEN = 10 ** TOKEN_DECIMALS

_DECIMAL_PATTERN = re.compile(r'^\+?([0-9]*)(?:\.([0-9]*))?$')


class Unit(Enum):
    """Named denominations with their number of fractional digits"""
    WEI = ("wei", 0)
    KWEI = ("kwei", 3)
    MWEI = ("mwei", 6)
    GWEI = ("gwei", 9)
    SZABO = ("szabo", 12)
    FINNEY = ("finney", 15)
    ETHER = ("ether", 18)

    def __init__(self, label: str, decimals: int):
        self.label = label
        self.decimals = decimals


UnitLike = Union[Unit, str, int]


def resolve_decimals(unit: UnitLike) -> int:
    """
    Resolve a unit given as a Unit, a unit name or a decimal count

    Raises:
        ValueError: If the unit is unknown or the decimal count is negative
    """
    if isinstance(unit, Unit):
        return unit.decimals
    if isinstance(unit, bool):
        raise ValueError(f"Invalid unit: {unit!r}")
    if isinstance(unit, int):
        if unit < 0:
            raise ValueError("Unit decimals must be non-negative")
        return unit
    if isinstance(unit, str):
        for candidate in Unit:
            if candidate.label == unit.strip().lower():
                return candidate.decimals
    raise ValueError(f"Unknown unit: {unit!r}")


def to_base_units(value: Union[str, int, Decimal], unit: UnitLike = Unit.ETHER) -> int:
    """
    Convert a decimal quantity into integer base units

    Args:
        value: Decimal string such as "0.9" or "1000000", an int, or a Decimal
        unit: Denomination of ``value`` (default ether, 18 decimals)

    Returns:
        Amount in base units

    Raises:
        ValueError: If the value is malformed, negative, a float, or has more
            fractional digits than the unit allows
    """
    decimals = resolve_decimals(unit)

    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing to convert {type(value).__name__} {value!r}; use a decimal string")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("Token amounts cannot be negative")
        return value * 10 ** decimals
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Cannot convert {value!r} to base units")
        value = format(value, 'f')
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert {value!r} to base units")

    text = value.strip().replace('_', '')
    if text.startswith('-'):
        raise ValueError("Token amounts cannot be negative")

    match = _DECIMAL_PATTERN.match(text)
    if not match or not (match.group(1) or match.group(2)):
        raise ValueError(f"Cannot convert '{value}' to base units")

    whole, fraction = match.group(1) or '0', (match.group(2) or '').rstrip('0')
    if len(fraction) > decimals:
        raise ValueError(
            f"'{value}' has more than {decimals} fractional digits"
        )

    return int(whole) * 10 ** decimals + int(fraction.ljust(decimals, '0') or '0')


def to_decimal_string(amount: int, unit: UnitLike = Unit.ETHER) -> str:
    """
    Format integer base units as a decimal string

    The result always carries at least one fractional digit ("1.0", "0.9")
    and never trailing zeros beyond that.
    """
    decimals = resolve_decimals(unit)
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of base units, got {amount!r}")

    sign = '-' if amount < 0 else ''
    whole, fraction = divmod(abs(amount), 10 ** decimals)
    fraction_text = str(fraction).rjust(decimals, '0').rstrip('0') if decimals else ''
    return f"{sign}{whole}.{fraction_text or '0'}"


def to_decimal(amount: int, unit: UnitLike = Unit.ETHER) -> Decimal:
    """Exact Decimal value of a base-unit amount, for display and reporting"""
    return Decimal(to_decimal_string(amount, unit))


def tokens(value: Union[str, int, Decimal]) -> int:
    """Shorthand for ``to_base_units(value, Unit.ETHER)``"""
    return to_base_units(value, Unit.ETHER)
