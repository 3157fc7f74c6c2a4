"""
Unit tests for the reference implementation and operand generation.

These tests verify:
1. Operand generation is reproducible and in range
2. The reference product matches a scalar triple loop bit for bit
3. Integer results match numpy's matmul
"""

import numpy as np
import pytest

from mmhost.config import ProblemConfig
from mmhost.reference import generate_operands, reference_matmul


def triple_loop(a, b, size_n, size_k, size_m, dtype):
    """Plain scalar reference in the element type."""
    c = np.zeros(size_n * size_m, dtype=dtype)
    for i in range(size_n):
        for j in range(size_m):
            acc = dtype.type(0)
            for k in range(size_k):
                acc = dtype.type(acc + a[i * size_k + k] * b[k * size_m + j])
            c[i * size_m + j] = acc
    return c


class TestGenerateOperands:
    """Test seeded operand generation."""

    def test_shapes(self, small_problem):
        a, b = generate_operands(small_problem)
        assert a.shape == (small_problem.a_elements,)
        assert b.shape == (small_problem.b_elements,)
        assert a.dtype == small_problem.dtype
        assert b.dtype == small_problem.dtype

    def test_reproducible(self, small_problem):
        """Test the same seed gives identical operands."""
        a1, b1 = generate_operands(small_problem)
        a2, b2 = generate_operands(small_problem)
        np.testing.assert_array_equal(a1, a2)
        np.testing.assert_array_equal(b1, b2)

    def test_seed_changes_data(self):
        p1 = ProblemConfig(size_n=8, size_k=8, size_m=8, seed=1)
        p2 = ProblemConfig(size_n=8, size_k=8, size_m=8, seed=2)
        assert not np.array_equal(generate_operands(p1)[0], generate_operands(p2)[0])

    def test_real_range(self, small_problem):
        """Test reals fall in [1, 10)."""
        a, b = generate_operands(small_problem)
        for values in (a, b):
            assert values.min() >= 1.0
            assert values.max() < 10.0

    def test_integer_range_inclusive(self):
        """Test integers fall in [1, 10] and both ends occur."""
        problem = ProblemConfig(size_n=32, size_k=32, size_m=32, dtype=np.int32)
        a, _ = generate_operands(problem)
        assert a.min() == 1
        assert a.max() == 10

    def test_a_and_b_differ(self):
        """Test B continues the random stream instead of repeating A."""
        problem = ProblemConfig(size_n=8, size_k=8, size_m=8)
        a, b = generate_operands(problem)
        assert not np.array_equal(a, b)


class TestReferenceMatmul:
    """Test the reference product."""

    @pytest.mark.parametrize("dtype", [np.float32, np.float64, np.int32])
    def test_matches_triple_loop(self, dtype):
        """Test bit-identical results to the scalar triple loop."""
        problem = ProblemConfig(size_n=4, size_k=12, size_m=8, dtype=dtype)
        a, b = generate_operands(problem)
        c = np.zeros(problem.c_elements, dtype=problem.dtype)

        reference_matmul(a, b, c, problem.size_n, problem.size_k, problem.size_m)

        expected = triple_loop(a, b, 4, 12, 8, problem.dtype)
        np.testing.assert_array_equal(c, expected)

    def test_integer_matches_numpy(self):
        problem = ProblemConfig(size_n=16, size_k=32, size_m=8, dtype=np.int64)
        a, b = generate_operands(problem)
        c = np.zeros(problem.c_elements, dtype=problem.dtype)

        reference_matmul(a, b, c, 16, 32, 8)

        expected = a.reshape(16, 32) @ b.reshape(32, 8)
        np.testing.assert_array_equal(c.reshape(16, 8), expected)

    def test_fills_output_in_place(self):
        a = np.array([1, 2, 3, 4], dtype=np.int32)  # [[1, 2], [3, 4]]
        b = np.array([5, 6, 7, 8], dtype=np.int32)  # [[5, 6], [7, 8]]
        c = np.zeros(4, dtype=np.int32)

        returned = reference_matmul(a, b, c, 2, 2, 2)

        assert returned is c
        np.testing.assert_array_equal(c, [19, 22, 43, 50])

    def test_inputs_unchanged(self, small_problem):
        a, b = generate_operands(small_problem)
        a_copy, b_copy = a.copy(), b.copy()
        c = np.zeros(small_problem.c_elements, dtype=small_problem.dtype)

        reference_matmul(a, b, c, small_problem.size_n, small_problem.size_k, small_problem.size_m)

        np.testing.assert_array_equal(a, a_copy)
        np.testing.assert_array_equal(b, b_copy)

    def test_deterministic(self, small_problem):
        """Test repeated runs give bit-identical results."""
        p = small_problem
        results = []
        for _ in range(2):
            a, b = generate_operands(p)
            c = np.zeros(p.c_elements, dtype=p.dtype)
            reference_matmul(a, b, c, p.size_n, p.size_k, p.size_m)
            results.append(c)
        np.testing.assert_array_equal(results[0].view(np.uint32), results[1].view(np.uint32))
