"""Piecewise-constant test grids for TV denoising research.

Example:
    >>> from toy import noisy_pair, psnr
    >>> from fgptv import solve_fgp_tv
    >>>
    >>> clean, noisy = noisy_pair(shape=(64, 64), sigma=0.1, seed=0)
    >>> result = solve_fgp_tv(noisy, lam=0.08, num_iter=200)
    >>> psnr(result.restored.numpy(), clean) > psnr(noisy, clean)
    True
"""

from .problems import (
    piecewise_constant_2d,
    piecewise_constant_3d,
    add_gaussian_noise,
    psnr,
    noisy_pair,
)

__all__ = [
    "piecewise_constant_2d",
    "piecewise_constant_3d",
    "add_gaussian_noise",
    "psnr",
    "noisy_pair",
]
