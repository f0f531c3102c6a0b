import math


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for non-negative values, unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def to_percentage(numerator: int, denominator: int) -> int:
    """Whole-number percentage of numerator over denominator; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0
    return round_half_up(numerator / denominator * 100)


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10
