""" Some type utilities for surfgrid """

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Literal, Protocol, Self, TypeAlias, runtime_checkable

import numpy as np

from surfgrid.errors import ConfigurationError

if TYPE_CHECKING:
    from surfgrid.binning.data import BinningValue

__all__ = ["Self"]


__all__ += ["Vector3Like", "PointsArray", "BinTriple", "SurfaceGrid", "V3Matrix"]
# ---------------- General---------------------------------

Vector3Like: TypeAlias = Sequence[float] | np.ndarray
"""Anything that converts to a ``(3,)`` float array."""

PointsArray: TypeAlias = np.ndarray
"""An ``(N, 3)`` float array of global positions."""

BinTriple: TypeAlias = tuple[int, int, int]
"""Bin indices ``(i0, i1, i2)``, axis 0 varying fastest."""

SurfaceGrid: TypeAlias = np.ndarray
"""Object array of shape ``(n2, n1, n0)`` holding surface references or ``None``."""

V3Matrix: TypeAlias = np.ndarray
"""Float array of shape ``(n1, n0, 3)`` with the center position of each bin."""


__all__ += ["DetectorElementLike", "SurfaceLike"]
# ---------------- Collaborators ---------------------------


@runtime_checkable
class DetectorElementLike(Protocol):
    """A physical element that accepts its neighbour list."""
    def register_neighbours(self, elements: Sequence["DetectorElementLike"]) -> None: ...


@runtime_checkable
class SurfaceLike(Protocol):
    """A surface exposing a binning position and an optional physical element."""
    associated_detector_element: DetectorElementLike | None

    def binning_position(self, bvalue: "BinningValue") -> np.ndarray: ...


__all__ += ["CompletionFunc", "CollisionPolicy", "RegistCompletionString"]
# ---------------- Tools -----------------------------------

CompletionFunc: TypeAlias = Callable[[np.ndarray, np.ndarray], np.ndarray]
"""``(centers (M, 3), positions (S, 3)) -> index (M,)`` of the nearest surface per center."""

CollisionPolicy: TypeAlias = Literal["overwrite", "keep_first", "keep_closest", "reject"]
"""How placement treats a second surface landing in an occupied bin."""

RegistCompletionString: TypeAlias = str | Literal["brute", "kdtree"]
"""A type alias representing valid names of completion strategies."""


def as_vector3(value: Vector3Like, name: str = "vector") -> np.ndarray:
    """Convert ``value`` to a finite ``(3,)`` float array or raise ``ConfigurationError``."""
    try:
        arr = np.asarray(value, dtype=float)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a 3-vector, got {value!r}") from e
    if arr.shape != (3,):
        raise ConfigurationError(f"{name} must have shape (3,), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} must be finite, got {arr}")
    return arr


def check_count(value: Any, name: str) -> int:
    """Validate a bin count: an integer >= 1."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be >= 1, got {value}")
    return int(value)
