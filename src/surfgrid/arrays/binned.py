"""
Binned object container.

:class:`BinnedArrayXD` pairs a :class:`~surfgrid.binning.utility.BinUtility`
with a numpy object grid of shape ``bin_utility.shape`` (``(n2, n1, n0)``),
indexed as ``grid[i2, i1, i0]`` for a bin triple ``(i0, i1, i2)``.

The array holds references only. It never copies, owns or mutates the stored
objects, and its grid is frozen once the array is built.
"""

from collections.abc import Iterator
from itertools import product
from typing import Any, Generic, TypeVar

import numpy as np

from surfgrid.binning.utility import BinUtility
from surfgrid.errors import ConfigurationError
from surfgrid.util._type import BinTriple, SurfaceLike, Vector3Like

__all__ = ["BinnedArrayXD", "SurfaceArray", "empty_grid"]

T = TypeVar("T")


def empty_grid(shape: tuple[int, int, int]) -> np.ndarray:
    """Object grid of ``shape`` filled with ``None``."""
    return np.full(shape, None, dtype=object)


class BinnedArrayXD(Generic[T]):
    """
    Objects stored in a 3D bin grid with position and neighbourhood lookup.

    Parameters
    ----------
    object_grid : numpy.ndarray
        Object array of shape ``bin_utility.shape``; empty cells hold ``None``.
    bin_utility : BinUtility
        Maps positions to bin triples.

    Raises
    ------
    ConfigurationError
        If the grid is not an object array of the utility's shape.
    """

    def __init__(self, object_grid: np.ndarray, bin_utility: BinUtility):
        if not isinstance(bin_utility, BinUtility):
            raise ConfigurationError(f"bin_utility must be a BinUtility, got {type(bin_utility).__name__}")
        grid = np.asarray(object_grid, dtype=object)
        if grid.shape != bin_utility.shape:
            raise ConfigurationError(
                f"grid shape {grid.shape} does not match bin utility shape {bin_utility.shape}"
            )
        # own copy of the slots, the objects themselves are shared
        self._grid = grid.copy()
        self._grid.flags.writeable = False
        self._bin_utility = bin_utility

    @property
    def bin_utility(self) -> BinUtility:
        return self._bin_utility

    @property
    def object_grid(self) -> np.ndarray:
        return self._grid

    @property
    def shape(self) -> tuple[int, int, int]:
        return self._grid.shape

    def __len__(self) -> int:
        return self._grid.size

    def object_at(self, bin_triple: BinTriple) -> T | None:
        i0, i1, i2 = bin_triple
        return self._grid[i2, i1, i0]

    def object(self, position: Vector3Like) -> T | None:
        """Object stored in the bin of a global position."""
        return self.object_at(self._bin_utility.bin_triple(position))

    def object_cluster(self, bin_triple: BinTriple) -> list[T | None]:
        """
        Contents of the box neighbourhood around ``bin_triple``.

        Every cell within one bin along every axis is visited once, in
        bin-index order (axis 0 fastest); closed axes wrap. The cell itself
        is included and empty cells appear as ``None``.
        """
        r0, r1, r2 = self._bin_utility.neighbour_ranges(bin_triple)
        return [self._grid[i2, i1, i0] for i2, i1, i0 in product(r2, r1, r0)]

    def array_objects(self) -> list[T]:
        """Unique non-empty objects in bin-index order of first appearance."""
        seen: set[int] = set()
        out: list[T] = []
        for obj in self._grid.ravel():
            if obj is not None and id(obj) not in seen:
                seen.add(id(obj))
                out.append(obj)
        return out

    def __iter__(self) -> Iterator[tuple[BinTriple, T | None]]:
        n2, n1, n0 = self._grid.shape
        for i2, i1, i0 in product(range(n2), range(n1), range(n0)):
            yield (i0, i1, i2), self._grid[i2, i1, i0]

    def __repr__(self):
        return f"<{self.__class__.__name__} shape={self.shape} objects={len(self.array_objects())}>"


class SurfaceArray(BinnedArrayXD[SurfaceLike]):
    """Binned array of surfaces, as returned by the array creator."""

    def surfaces(self) -> list[Any]:
        return self.array_objects()
