"""
Result verification and performance figures.

Verification compares the accelerator result against the reference element by
element in row-major order and stops at the first element whose absolute
difference exceeds the tolerance. A difference equal to the tolerance passes.
NaN results always fail.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Mismatch:
    """First element that failed verification."""

    row: int
    col: int
    actual: object
    expected: object

    def __str__(self):
        return f"Mismatch at ({self.row}, {self.col}): {self.actual} vs. {self.expected}"


def find_first_mismatch(
    result: np.ndarray,
    reference: np.ndarray,
    size_n: int,
    size_m: int,
    tolerance,
) -> Mismatch | None:
    """
    Find the first out-of-tolerance element.

    The difference is computed in the element type, so the comparison behaves
    like a scalar loop over the same type would.

    Args:
        result: N×M accelerator result, flat row-major
        reference: N×M reference result, flat row-major
        size_n: Rows
        size_m: Columns
        tolerance: Largest accepted absolute difference

    Returns:
        The first Mismatch in row-major order, or None if all elements pass
    """
    test = np.asarray(result).reshape(size_n, size_m)
    ref = np.asarray(reference).reshape(size_n, size_m)

    # Ordered subtraction keeps unsigned types from wrapping
    diff = np.where(test >= ref, test - ref, ref - test)
    failed = ~(diff <= tolerance)

    hits = np.flatnonzero(failed)
    if hits.size == 0:
        return None

    row, col = divmod(int(hits[0]), size_m)
    return Mismatch(row, col, test[row, col], ref[row, col])


def throughput_gops(op_count: int, elapsed: float) -> float:
    """Operations per second in units of 10^9."""
    if elapsed <= 0:
        return float("inf")
    return 1e-9 * op_count / elapsed
