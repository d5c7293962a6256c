"""Total variation denoising with the Fast Gradient Projection method.

The denoising problem is formulated as:
    b = x + noise

where:
    - b: observed noisy grid (2D image or 3D volume)
    - x: unknown clean grid

and the estimate minimizes ||x - b||^2 + 2 * lam * TV(x), with isotropic or
anisotropic TV. All computation uses PyTorch tensors.

Example:
    >>> import numpy as np
    >>> from toy import piecewise_constant_2d, add_gaussian_noise
    >>> from fgptv.denoising import solve_fgp_tv
    >>>
    >>> clean = piecewise_constant_2d(n=128)
    >>> noisy = add_gaussian_noise(clean, sigma=0.1)
    >>> result = solve_fgp_tv(noisy, lam=0.08, num_iter=300, epsilon=1e-5)
    >>> denoised = result.restored.numpy()
"""

from .base import (
    DenoisingResult,
)
from .operators import (
    forward_diff,
    backward_diff,
    forward_diff_adjoint,
    gradient,
    divergence,
    total_variation,
    fgp_tv_objective,
)
from .fgp_tv import (
    FGPTVConfig,
    obj_step,
    grad_step,
    project_dual,
    next_momentum,
    momentum_update,
    solve_fgp_tv,
    fgp_tv,
)

__all__ = [
    # Base types
    "DenoisingResult",
    # Operators
    "forward_diff",
    "backward_diff",
    "forward_diff_adjoint",
    "gradient",
    "divergence",
    "total_variation",
    "fgp_tv_objective",
    # FGP-TV
    "FGPTVConfig",
    "obj_step",
    "grad_step",
    "project_dual",
    "next_momentum",
    "momentum_update",
    "solve_fgp_tv",
    "fgp_tv",
]
