"""Base types for denoising algorithms."""

from dataclasses import dataclass, field
from typing import List

import torch

__all__ = ["DenoisingResult"]


@dataclass
class DenoisingResult:
    """Result from a denoising algorithm.

    Attributes:
        restored: The denoised grid tensor.
        iterations: Number of iterations performed.
        loss_history: Relative change ||x_k - x_{k-1}|| / ||x_k|| at each
            iteration (``nan`` where it could not be evaluated).
        converged: Whether the tolerance-based early stop fired.
        metadata: Algorithm-specific metadata.
    """

    restored: torch.Tensor
    iterations: int
    loss_history: List[float] = field(default_factory=list)
    converged: bool = False
    metadata: dict = field(default_factory=dict)
