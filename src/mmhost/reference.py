"""
Reference implementation and test data for the harness.

The reference product is the correctness oracle for the accelerator. It runs
on the host only and accumulates every output element in increasing k order
in the element type, which gives the same bits as the plain triple loop

    for i in range(N):
        for j in range(M):
            for k in range(K):
                C[i][j] += A[i][k] * B[k][j]

while iterating over whole rows of C at a time.
"""

import numpy as np

from .config import ProblemConfig


def generate_operands(problem: ProblemConfig) -> tuple[np.ndarray, np.ndarray]:
    """
    Generate the A and B operands for a run.

    Values are drawn from a generator seeded with problem.seed: uniform
    integers over [value_low, value_high] for integral element types, uniform
    reals over [value_low, value_high) otherwise. A is drawn before B.

    Returns:
        (a, b) as flat row-major arrays of problem.dtype
    """
    rng = np.random.default_rng(problem.seed)
    a = _draw(rng, problem, problem.a_elements)
    b = _draw(rng, problem, problem.b_elements)
    return a, b


def _draw(rng: np.random.Generator, problem: ProblemConfig, count: int) -> np.ndarray:
    if problem.is_integral:
        values = rng.integers(problem.value_low, problem.value_high, size=count, endpoint=True)
    else:
        values = rng.uniform(problem.value_low, problem.value_high, size=count)
    return values.astype(problem.dtype)


def reference_matmul(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    size_n: int,
    size_k: int,
    size_m: int,
) -> np.ndarray:
    """
    Compute C = A × B into a zero-initialized output.

    Args:
        a: N×K left operand, flat row-major
        b: K×M right operand, flat row-major
        c: N×M output, flat row-major, filled in place
        size_n: Rows of A and C
        size_k: Reduction dimension
        size_m: Columns of B and C

    Returns:
        c, for convenience
    """
    a_mat = a.reshape(size_n, size_k)
    b_mat = b.reshape(size_k, size_m)
    c_mat = c.reshape(size_n, size_m)
    if not np.shares_memory(c_mat, c):
        raise ValueError("output buffer must be reshapeable without copying")

    for k in range(size_k):
        c_mat += np.multiply.outer(a_mat[:, k], b_mat[k, :])

    return c
