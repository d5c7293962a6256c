"""fgptv - Total variation denoising by Fast Gradient Projection.

A library for denoising 2D images and 3D volumes with the FGP-TV algorithm
of Beck & Teboulle: an accelerated projected gradient method on the dual of
the TV-regularized least-squares problem.

The library is organized into two modules:

- **denoising**: PyTorch-based FGP-TV solver, its transforms and operators
- **utils**: Grid geometry and flat-buffer addressing

Example:
    >>> import numpy as np
    >>> from fgptv import solve_fgp_tv
    >>>
    >>> noisy = np.random.default_rng(0).normal(size=(64, 64)).astype(np.float32)
    >>> result = solve_fgp_tv(noisy, lam=0.1, num_iter=200, tv_type="iso")
    >>> result.restored.shape
    torch.Size([64, 64])

    Flat buffers, addressed as k*dim_x*dim_y + j*dim_x + i:
    >>> from fgptv import fgp_tv
    >>> flat = fgp_tv(noisy.ravel(), dim_x=64, dim_y=64, lam=0.1)

Reference:
    Beck, A. and Teboulle, M. (2009). "Fast Gradient-Based Algorithms for
    Constrained Total Variation Image Denoising and Deblurring Problems".
    IEEE Transactions on Image Processing 18(11): 2419-2434.
"""

__version__ = "0.1.0"

# =============================================================================
# Denoising Module
# =============================================================================
from .denoising import (
    DenoisingResult,
    FGPTVConfig,
    solve_fgp_tv,
    fgp_tv,
    total_variation,
    fgp_tv_objective,
)

# =============================================================================
# Utils Module
# =============================================================================
from .utils import (
    Grid,
)

__all__ = [
    # Version
    "__version__",
    # Denoising
    "DenoisingResult",
    "FGPTVConfig",
    "solve_fgp_tv",
    "fgp_tv",
    "total_variation",
    "fgp_tv_objective",
    # Grid geometry
    "Grid",
]
