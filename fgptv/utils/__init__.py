"""Grid and buffer utilities."""

from .grid import Grid

__all__ = [
    "Grid",
]
