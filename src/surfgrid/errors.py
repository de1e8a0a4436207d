"""Exceptions raised while building surface arrays.

All of them are raised synchronously at construction time; a failing call
never hands back a partially built :class:`~surfgrid.arrays.binned.SurfaceArray`.
"""

__all__ = [
    "SurfgridError",
    "ConfigurationError",
    "EmptyInputError",
    "PlacementCollisionError",
    "UnsupportedLayoutError",
]


class SurfgridError(Exception):
    """Base class for all surfgrid errors."""


class ConfigurationError(SurfgridError, ValueError):
    """Invalid construction parameters (bin counts, ranges, names, shapes)."""


class EmptyInputError(ConfigurationError):
    """No surfaces were given to a layout that needs at least one."""


class PlacementCollisionError(SurfgridError, ValueError):
    """Two surfaces map to the same bin and the collision policy forbids it."""

    def __init__(self, bin_triple, first, second):
        self.bin_triple = tuple(bin_triple)
        self.first = first
        self.second = second
        super().__init__(
            f"Surfaces {first!r} and {second!r} both map to bin {self.bin_triple}"
        )


class UnsupportedLayoutError(SurfgridError, NotImplementedError):
    """The requested array layout is not implemented."""
