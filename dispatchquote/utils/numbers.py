import math
from typing import Any


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, toward +inf otherwise."""
    return int(math.floor(value + 0.5))


def finite_or(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def ceil_money(value: float) -> int:
    # Binary float noise such as 10 * 1.1 == 11.000000000000002 must not add a unit.
    return int(math.ceil(round(value, 6)))
