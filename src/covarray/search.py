"""
Nearest-value search over sorted sequences.
"""

from typing import Any, Sequence, Tuple

from .errors import InvalidArgumentError


def indices_of_nearest(values: Sequence[Any], x: Any) -> Tuple[int, int]:
    """
    Return the indices of the two neighbours in ``values`` closest to ``x``.

    Args:
        values: Sequence sorted ascending or descending. The direction is
            detected from the first two elements.
        x: Target value

    Returns:
        ``(lo, hi)``, possibly equal.
         - if ``x`` exists in ``values``, both point to it
         - if ``x`` lies before the first value, both are 0
         - if ``x`` lies beyond the last value, both are the last index

    Raises:
        InvalidArgumentError: If ``values`` is empty

    Examples:
        >>> indices_of_nearest([2, 5, 8, 12, 13], 6)
        (1, 2)
        >>> indices_of_nearest([2, 5, 8, 12, 13], 5)
        (1, 1)
        >>> indices_of_nearest([2, 5, 8, 12, 13], 50)
        (4, 4)
    """
    n = len(values)
    if n == 0:
        raise InvalidArgumentError("Array must have at least one element")

    lo = -1
    hi = n
    ascending = n == 1 or values[0] < values[1]
    # (lo + hi + 1) // 2 rounds halves up, the midpoint must not drift
    if ascending:
        while hi - lo > 1:
            mid = (lo + hi + 1) // 2
            if values[mid] <= x:
                lo = mid
            else:
                hi = mid
    else:
        while hi - lo > 1:
            mid = (lo + hi + 1) // 2
            if values[mid] >= x:
                lo = mid
            else:
                hi = mid

    if lo >= 0 and values[lo] == x:
        hi = lo
    if lo == -1:
        lo = hi
    if hi == n:
        hi = lo
    return lo, hi


def index_of_nearest(values: Sequence[Any], x: Any) -> int:
    """
    Return the index of the value closest to ``x`` in a sorted sequence.

    If ``x`` lies exactly between two values, the lower index is returned.

    Examples:
        >>> index_of_nearest([2, 5, 8, 12, 13], 6)
        1
        >>> index_of_nearest([2, 5, 8, 12, 13], 7)
        2
        >>> index_of_nearest([2, 5, 8, 12, 13], 50)
        4
    """
    lo, hi = indices_of_nearest(values, x)
    if abs(x - values[lo]) <= abs(x - values[hi]):
        return lo
    return hi
