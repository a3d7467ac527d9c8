# app/core/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
BASIS = Decimal("0.0001")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise along
    return Decimal(str(value))


def money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Number) -> Decimal:
    return money(to_decimal(unit_price) * quantity)


def percentage(part: int, whole: int, places: Decimal = BASIS) -> Decimal:
    if whole <= 0:
        return Decimal("0").quantize(places)
    return (Decimal(part) * 100 / Decimal(whole)).quantize(places, rounding=ROUND_HALF_UP)
