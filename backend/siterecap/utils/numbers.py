import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, as JavaScript's Math.round does.

    ``round()`` rounds half to even (72.5 -> 72), which disagrees with the
    figures the web app shows for the same data.
    """
    return math.floor(value + 0.5)
