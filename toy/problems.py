"""Piecewise-constant test grids for TV denoising.

Total variation favours piecewise-constant solutions, so the phantoms here
are built from flat regions with sharp edges: a square and a disk in 2D, a
cube and a ball in 3D. Noise is added separately so the clean grid can be
kept as ground truth.
"""

from typing import Tuple

import numpy as np


def piecewise_constant_2d(n: int = 64) -> np.ndarray:
    """Generate a 2D phantom with two flat objects on a zero background.

    The square (value 1.0) covers the upper-left quarter region and the disk
    (value 0.5) sits in the lower-right.

    Args:
        n: Image size (the phantom is n x n).

    Returns:
        (n, n) float32 array.

    Example:
        >>> img = piecewise_constant_2d(n=64)
        >>> sorted(np.unique(img))
        [0.0, 0.5, 1.0]
    """
    img = np.zeros((n, n), dtype=np.float32)

    # Square
    lo, hi = n // 8, (3 * n) // 8
    img[lo:hi, lo:hi] = 1.0

    # Disk
    y, x = np.mgrid[0:n, 0:n]
    center = (5 * n) / 8
    radius = n / 6
    img[(y - center) ** 2 + (x - center) ** 2 <= radius**2] = 0.5

    return img


def piecewise_constant_3d(n: int = 32, depth: int = None) -> np.ndarray:
    """Generate a 3D phantom with a cube and a ball on a zero background.

    Args:
        n: Lateral size (each slice is n x n).
        depth: Number of slices. Defaults to n.

    Returns:
        (depth, n, n) float32 array.
    """
    depth = n if depth is None else depth
    vol = np.zeros((depth, n, n), dtype=np.float32)

    lo, hi = n // 8, (3 * n) // 8
    zlo, zhi = depth // 8, max((3 * depth) // 8, depth // 8 + 1)
    vol[zlo:zhi, lo:hi, lo:hi] = 1.0

    z, y, x = np.mgrid[0:depth, 0:n, 0:n]
    center = (5 * n) / 8
    zcenter = (5 * depth) / 8
    radius = n / 6
    ball = (z - zcenter) ** 2 + (y - center) ** 2 + (x - center) ** 2 <= radius**2
    vol[ball] = 0.5

    return vol


def add_gaussian_noise(
    clean: np.ndarray,
    sigma: float = 0.1,
    rng: np.random.Generator = None,
) -> np.ndarray:
    """Add white Gaussian noise of standard deviation ``sigma``.

    Args:
        clean: Noise-free grid.
        sigma: Absolute noise standard deviation.
        rng: NumPy random generator. If None, uses default.

    Returns:
        Noisy float32 grid of the same shape.
    """
    if rng is None:
        rng = np.random.default_rng()

    noise = rng.normal(scale=sigma, size=clean.shape)
    return (clean + noise).astype(np.float32)


def psnr(estimate: np.ndarray, reference: np.ndarray) -> float:
    """Peak signal-to-noise ratio in dB, with the reference's range as peak."""
    mse = float(np.mean((np.asarray(estimate, dtype=np.float64) - reference) ** 2))
    peak = float(np.max(reference) - np.min(reference))
    if mse == 0.0:
        return float("inf")
    return 10.0 * np.log10(peak**2 / mse)


def noisy_pair(
    shape: Tuple[int, ...] = (64, 64),
    sigma: float = 0.1,
    seed: int = 0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Clean phantom and its noisy observation for a square 2D or cubic 3D shape.

    Returns:
        Tuple (clean, noisy).
    """
    rng = np.random.default_rng(seed)
    if len(shape) == 2:
        clean = piecewise_constant_2d(n=shape[-1])
    elif len(shape) == 3:
        clean = piecewise_constant_3d(n=shape[-1], depth=shape[0])
    else:
        raise ValueError(f"shape must be 2D or 3D, got {shape}")
    return clean, add_gaussian_noise(clean, sigma=sigma, rng=rng)
