"""Tests for grid geometry and flat-buffer addressing."""

import numpy as np
import pytest
import torch

from fgptv.utils import Grid


class TestGrid:
    """Shape, index formula and validation."""

    def test_2d_grid(self):
        grid = Grid(dim_x=4, dim_y=3)
        assert grid.ndim == 2
        assert grid.shape == (3, 4)
        assert grid.size == 12
        assert grid.index(1, 2) == 9

    def test_3d_grid(self):
        grid = Grid(dim_x=5, dim_y=4, dim_z=3)
        assert grid.ndim == 3
        assert grid.shape == (3, 4, 5)
        assert grid.size == 60

    def test_index_matches_c_order(self):
        grid = Grid(dim_x=5, dim_y=4, dim_z=3)
        for k in range(3):
            for j in range(4):
                for i in range(5):
                    expected = np.ravel_multi_index((k, j, i), grid.shape)
                    assert grid.index(i, j, k) == expected

    def test_reshape_uses_index_formula(self):
        grid = Grid(dim_x=5, dim_y=4, dim_z=3)
        tensor = grid.reshape(np.arange(grid.size))
        assert tensor.shape == (3, 4, 5)
        assert tensor[2, 1, 3].item() == grid.index(3, 1, 2)
        assert torch.equal(grid.flatten(tensor), torch.arange(grid.size))

    def test_index_out_of_range(self):
        grid = Grid(dim_x=2, dim_y=2)
        with pytest.raises(IndexError):
            grid.index(2, 0)
        with pytest.raises(IndexError):
            grid.index(0, 0, 1)

    @pytest.mark.parametrize(
        "dims",
        [(0, 4, 1), (4, -1, 1), (4, 4, 0), (2.5, 4, 1), (True, 4, 1)],
    )
    def test_invalid_dimensions(self, dims):
        with pytest.raises(ValueError):
            Grid(*dims)

    def test_from_shape(self):
        assert Grid.from_shape((3, 4)) == Grid(dim_x=4, dim_y=3)
        assert Grid.from_shape((2, 3, 4)) == Grid(dim_x=4, dim_y=3, dim_z=2)
        assert Grid.from_shape((1, 3, 4)).ndim == 2
        with pytest.raises(ValueError, match="2D or 3D"):
            Grid.from_shape((8,))
        with pytest.raises(ValueError, match="positive"):
            Grid.from_shape((0, 8))

    def test_reshape_size_mismatch(self):
        with pytest.raises(ValueError, match="elements"):
            Grid(dim_x=4, dim_y=4).reshape(np.zeros(15))

    def test_flatten_shape_mismatch(self):
        with pytest.raises(ValueError, match="shape"):
            Grid(dim_x=4, dim_y=4).flatten(torch.zeros(2, 8))

    def test_reshape_rejects_transposed_buffer(self):
        grid = Grid(dim_x=6, dim_y=9)
        with pytest.raises(ValueError, match="grid shape"):
            grid.reshape(np.zeros((6, 9)))
        assert grid.reshape(np.zeros((9, 6))).shape == (9, 6)
        assert grid.reshape(np.zeros(54)).shape == (9, 6)

    def test_reshape_rejects_other_grid_shaped_buffer(self):
        grid = Grid(dim_x=4, dim_y=3, dim_z=2)
        with pytest.raises(ValueError, match="grid shape"):
            grid.reshape(torch.zeros(4, 3, 2))
        with pytest.raises(ValueError, match="grid shape"):
            grid.reshape(torch.zeros(6, 4))
