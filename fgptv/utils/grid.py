"""Grid geometry shared by every FGP-TV transform.

A grid of ``dim_x x dim_y x dim_z`` samples is stored as a C-ordered tensor
of shape ``(dim_z, dim_y, dim_x)`` (or ``(dim_y, dim_x)`` when ``dim_z == 1``),
so the flat index of cell ``(i, j, k)`` is::

    k * dim_x * dim_y + j * dim_x + i

All reads and writes of flat buffers go through this class so that the
ordering is defined in exactly one place.
"""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np
import torch

__all__ = ["Grid"]


@dataclass(frozen=True)
class Grid:
    """Shape of a 2D or 3D sample grid.

    Attributes:
        dim_x: Number of samples along X (fastest varying in memory).
        dim_y: Number of samples along Y.
        dim_z: Number of samples along Z. ``1`` selects a 2D grid.

    Example:
        >>> grid = Grid(dim_x=4, dim_y=3)
        >>> grid.shape
        (3, 4)
        >>> grid.index(1, 2)
        9
    """

    dim_x: int
    dim_y: int
    dim_z: int = 1

    def __post_init__(self) -> None:
        """Validate grid dimensions."""
        for name in ("dim_x", "dim_y", "dim_z"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @classmethod
    def from_shape(cls, shape: Tuple[int, ...]) -> "Grid":
        """Build a Grid from a tensor shape ``(H, W)`` or ``(D, H, W)``."""
        shape = tuple(int(s) for s in shape)
        if len(shape) == 2:
            return cls(dim_x=shape[1], dim_y=shape[0])
        if len(shape) == 3:
            return cls(dim_x=shape[2], dim_y=shape[1], dim_z=shape[0])
        raise ValueError(f"Grid must be 2D or 3D, got shape {shape}")

    @property
    def ndim(self) -> int:
        """Spatial dimensionality (2 when ``dim_z == 1``, else 3)."""
        return 2 if self.dim_z == 1 else 3

    @property
    def shape(self) -> Tuple[int, ...]:
        """Tensor shape of the grid, slowest axis first."""
        if self.ndim == 2:
            return (self.dim_y, self.dim_x)
        return (self.dim_z, self.dim_y, self.dim_x)

    @property
    def size(self) -> int:
        """Total number of cells."""
        return self.dim_x * self.dim_y * self.dim_z

    def index(self, i: int, j: int, k: int = 0) -> int:
        """Flat index of cell ``(i, j, k)``."""
        if not (0 <= i < self.dim_x and 0 <= j < self.dim_y and 0 <= k < self.dim_z):
            raise IndexError(
                f"Cell ({i}, {j}, {k}) outside grid "
                f"{self.dim_x}x{self.dim_y}x{self.dim_z}"
            )
        return (self.dim_x * self.dim_y) * k + j * self.dim_x + i

    def reshape(self, buffer: Union[np.ndarray, torch.Tensor]) -> torch.Tensor:
        """View a flat buffer as a grid tensor.

        NumPy buffers are wrapped without copying when possible.

        Args:
            buffer: Flat array with ``size`` elements, or an array already of
                shape ``self.shape``.

        Returns:
            Tensor of shape ``self.shape``.
        """
        tensor = torch.as_tensor(buffer)
        if tensor.numel() != self.size:
            raise ValueError(
                f"Buffer has {tensor.numel()} elements, grid "
                f"{self.dim_x}x{self.dim_y}x{self.dim_z} needs {self.size}"
            )
        if tensor.ndim != 1 and tuple(tensor.shape) != self.shape:
            raise ValueError(
                f"Buffer of shape {tuple(tensor.shape)} is neither flat nor of "
                f"grid shape {self.shape}"
            )
        return tensor.reshape(self.shape)

    def flatten(self, tensor: torch.Tensor) -> torch.Tensor:
        """Flatten a grid tensor back to the flat index order."""
        if tuple(tensor.shape) != self.shape:
            raise ValueError(
                f"Expected tensor of shape {self.shape}, got {tuple(tensor.shape)}"
            )
        return tensor.reshape(-1)
