"""
Token unit conversions.

Gas prices are quoted in *grains*, the smallest unit of the network token:

    1 token = 10**8 grains
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

GRAINS_PER_TOKEN = 10**8

Amount = Union[int, str, Decimal]


def to_grains(amount: Amount) -> int:
    """
    Convert a token amount (int, decimal string or Decimal) to integer grains.

    Floats are rejected because they cannot represent most decimal amounts
    exactly. Fractions smaller than one grain raise ValueError.
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise TypeError("amount must be int, str or Decimal")
    try:
        value = Decimal(amount)
    except InvalidOperation as e:
        raise ValueError(f"invalid token amount: {amount!r}") from e
    if value < 0:
        raise ValueError("token amount must be non-negative")
    grains = value * GRAINS_PER_TOKEN
    if grains != grains.to_integral_value():
        raise ValueError(f"amount {amount!r} is not a whole number of grains")
    return int(grains)


def from_grains(grains: int) -> Decimal:
    """Convert integer grains back to a token Decimal."""
    if isinstance(grains, bool) or not isinstance(grains, int):
        raise TypeError("grains must be an int")
    return Decimal(grains) / GRAINS_PER_TOKEN


__all__ = ["GRAINS_PER_TOKEN", "to_grains", "from_grains"]
