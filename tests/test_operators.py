"""Tests for the bounded-grid finite difference operators.

Uses the dot-product test to verify adjoint correctness:
    ⟨A(x), y⟩ = ⟨x, A^T(y)⟩

For random vectors x and y, both inner products should be equal
(up to floating-point precision).
"""

import math

import pytest
import torch

from fgptv.denoising import (
    backward_diff,
    divergence,
    fgp_tv_objective,
    forward_diff,
    forward_diff_adjoint,
    gradient,
    total_variation,
)


def dot_product_test(
    forward,
    adjoint,
    x_shape: tuple,
    y_shape: tuple,
    dtype: torch.dtype = torch.float64,
    rtol: float = 1e-10,
) -> tuple:
    """Verify adjoint correctness via dot-product test.

    Args:
        forward: Forward operator A
        adjoint: Adjoint operator A^T
        x_shape: Shape of input to forward operator
        y_shape: Shape of input to adjoint operator (output of forward)
        dtype: Data type for tensors (float64 recommended for precision)
        rtol: Relative tolerance for comparison

    Returns:
        Tuple of (lhs, rhs, relative_error)
    """
    torch.manual_seed(42)
    x = torch.randn(x_shape, dtype=dtype)
    y = torch.randn(y_shape, dtype=dtype)

    lhs = torch.sum(forward(x) * y).item()
    rhs = torch.sum(x * adjoint(y)).item()

    rel_error = abs(lhs - rhs) / (0.5 * (abs(lhs) + abs(rhs)) + 1e-12)

    assert rel_error < rtol, (
        f"Dot-product test failed: ⟨Ax, y⟩ = {lhs:.12e}, ⟨x, A^T y⟩ = {rhs:.12e}, "
        f"relative error = {rel_error:.2e} (tolerance = {rtol:.2e})"
    )

    return lhs, rhs, rel_error


class TestFiniteDifferences:
    """Boundary handling of single-axis differences."""

    def test_forward_diff_zero_on_upper_boundary(self):
        x = torch.arange(15, dtype=torch.float64).reshape(5, 3) ** 2
        d0 = forward_diff(x, dim=0)
        d1 = forward_diff(x, dim=1)

        assert torch.all(d0[-1] == 0)
        assert torch.all(d1[:, -1] == 0)
        assert torch.allclose(d0[:-1], x[1:] - x[:-1])
        assert torch.allclose(d1[:, :-1], x[:, 1:] - x[:, :-1])

    def test_backward_diff_zero_predecessor(self):
        y = torch.tensor([[3.0, 5.0, 4.0]], dtype=torch.float64)
        result = backward_diff(y, dim=1)
        assert torch.equal(result, torch.tensor([[3.0, 2.0, -1.0]], dtype=torch.float64))

    def test_backward_diff_single_cell_axis(self):
        """An axis of length one has no predecessors at all."""
        torch.manual_seed(0)
        y = torch.randn(7, 1, dtype=torch.float64)
        assert torch.equal(backward_diff(y, dim=1), y)

    def test_backward_diff_matches_negative_adjoint(self):
        """With a zero last slice, backward_diff = -forward_diff^T."""
        torch.manual_seed(1)
        y = torch.randn(6, 9, dtype=torch.float64)
        for dim in range(2):
            y_cut = y.clone()
            y_cut.select(dim, -1).zero_()
            assert torch.allclose(backward_diff(y_cut, dim), -forward_diff_adjoint(y_cut, dim))


class TestAdjoints:
    """Dot-product tests for the difference operators."""

    def test_forward_diff_adjoint_2d(self):
        for dim in range(2):
            dot_product_test(
                lambda x, d=dim: forward_diff(x, d),
                lambda y, d=dim: forward_diff_adjoint(y, d),
                x_shape=(16, 24),
                y_shape=(16, 24),
            )

    def test_forward_diff_adjoint_3d(self):
        for dim in range(3):
            dot_product_test(
                lambda x, d=dim: forward_diff(x, d),
                lambda y, d=dim: forward_diff_adjoint(y, d),
                x_shape=(6, 8, 10),
                y_shape=(6, 8, 10),
            )

    def test_gradient_divergence_2d(self):
        """⟨∇x, p⟩ = -⟨x, div p⟩."""
        dot_product_test(
            gradient,
            lambda p: -divergence(p),
            x_shape=(16, 16),
            y_shape=(2, 16, 16),
        )

    def test_gradient_divergence_3d(self):
        dot_product_test(
            gradient,
            lambda p: -divergence(p),
            x_shape=(5, 7, 9),
            y_shape=(3, 5, 7, 9),
        )


class TestTotalVariation:
    """Isotropic and anisotropic TV on hand-computable grids."""

    def test_vertical_edge(self):
        x = torch.zeros(8, 10, dtype=torch.float64)
        x[:, 5:] = 1.0
        assert total_variation(x, "iso").item() == pytest.approx(8.0)
        assert total_variation(x, "l1").item() == pytest.approx(8.0)

    def test_single_spike(self):
        x = torch.zeros(5, 5, dtype=torch.float64)
        x[2, 2] = 1.0
        # Cells (1,2) and (2,1) see a unit jump, cell (2,2) sees (-1, -1)
        assert total_variation(x, "iso").item() == pytest.approx(2.0 + math.sqrt(2.0))
        assert total_variation(x, "l1").item() == pytest.approx(4.0)

    def test_constant_has_zero_tv(self):
        x = torch.full((4, 6, 6), 3.5, dtype=torch.float64)
        assert total_variation(x, "isotropic").item() == 0.0
        assert total_variation(x, "anisotropic").item() == 0.0

    def test_unknown_tv_type(self):
        with pytest.raises(ValueError, match="tv_type"):
            total_variation(torch.zeros(4, 4), "l2")

    def test_objective_at_observation(self):
        torch.manual_seed(3)
        b = torch.randn(12, 12, dtype=torch.float64)
        lam = 0.25
        expected = 2.0 * lam * total_variation(b, "iso").item()
        assert fgp_tv_objective(b, b, lam, "iso") == pytest.approx(expected)
