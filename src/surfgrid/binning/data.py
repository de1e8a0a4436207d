"""
One-dimensional binning along a single coordinate.

:class:`BinningData` describes one axis: which coordinate of a 3D position it
bins (:class:`BinningValue`), its range and bin count, and its boundary
behaviour (:class:`BinningOption`):

- ``OPEN`` axes clamp values outside ``[min, max)`` to the first or last bin;
- ``CLOSED`` axes are periodic, ``max`` is identified with ``min`` and values
  are wrapped by the range width before lookup. The azimuthal angle is the
  usual closed axis. A closed axis narrower than the full period of its
  coordinate still wraps by its own width, so a value beyond the range may
  land in an interior bin rather than an edge bin.

A *zero-dimensional* axis spans a range with a single bin and maps every
value to bin 0; it lets a layout keep a fixed number of axes when one of them
needs no discretisation (e.g. a disc with a single ring of modules).

>>> phi = BinningData(BinningValue.PHI, -np.pi, np.pi, nbins=8, option=BinningOption.CLOSED)
>>> phi.search(np.pi - 1e-3), phi.search(-np.pi + 1e-3)
(7, 0)
>>> phi.neighbour_range(0)
[0, 1, 7]
"""

import enum

import numpy as np

from surfgrid.errors import ConfigurationError
from surfgrid.util._type import check_count

__all__ = ["BinningValue", "BinningOption", "BinningData"]

# values within this fraction of a bin below an edge belong to the upper bin
_EDGE_TOL = 1e-9


class BinningValue(enum.Enum):
    """Coordinate of a global position that an axis bins."""
    X = "x"
    Y = "y"
    Z = "z"
    R = "r"
    PHI = "phi"
    RPHI = "rphi"
    H = "h"
    ETA = "eta"
    MAG = "mag"

    def value_of(self, position: np.ndarray) -> np.ndarray | float:
        """
        Extract this coordinate from a ``(3,)`` position or an ``(N, 3)`` array.

        ``PHI`` lies in ``(-pi, pi]``, ``H`` is the polar angle in ``[0, pi]``.
        """
        pos = np.asarray(position, dtype=float)
        x, y, z = pos[..., 0], pos[..., 1], pos[..., 2]
        if self is BinningValue.X:
            out = x
        elif self is BinningValue.Y:
            out = y
        elif self is BinningValue.Z:
            out = z
        elif self is BinningValue.R:
            out = np.hypot(x, y)
        elif self is BinningValue.PHI:
            out = np.arctan2(y, x)
        elif self is BinningValue.RPHI:
            out = np.hypot(x, y) * np.arctan2(y, x)
        elif self is BinningValue.H:
            out = np.arctan2(np.hypot(x, y), z)
        elif self is BinningValue.ETA:
            theta = np.arctan2(np.hypot(x, y), z)
            with np.errstate(divide="ignore"):
                out = -np.log(np.tan(0.5 * theta))
        else:
            out = np.sqrt(x * x + y * y + z * z)
        if np.ndim(out) == 0:
            return float(out)
        return out


class BinningOption(enum.Enum):
    """Boundary behaviour of an axis."""
    OPEN = "open"
    CLOSED = "closed"


class BinningData:
    """
    Equidistant binning of one coordinate.

    Parameters
    ----------
    value : BinningValue
        Coordinate being binned.
    minimum, maximum : float
        Axis range, ``minimum < maximum``.
    nbins : int, optional
        Number of bins, ``>= 1`` (default 1).
    option : BinningOption, optional
        ``OPEN`` (default) or ``CLOSED``.
    zero_dim : bool, optional
        Single-bin axis that maps every value to bin 0. Forces ``nbins = 1``.

    Raises
    ------
    ConfigurationError
        For non-integral or non-positive ``nbins``, non-finite bounds or an
        empty range.
    """

    def __init__(self, value: BinningValue, minimum: float, maximum: float, nbins: int = 1,
                 option: BinningOption = BinningOption.OPEN, zero_dim: bool = False):
        if not isinstance(value, BinningValue):
            raise ConfigurationError(f"value must be a BinningValue, got {value!r}")
        if not isinstance(option, BinningOption):
            raise ConfigurationError(f"option must be a BinningOption, got {option!r}")
        nbins = check_count(nbins, f"nbins of {value.value} axis")
        if zero_dim and nbins != 1:
            raise ConfigurationError("a zero-dimensional axis has exactly one bin")
        lo, hi = float(minimum), float(maximum)
        if not (np.isfinite(lo) and np.isfinite(hi)):
            raise ConfigurationError(f"{value.value} range must be finite, got [{minimum}, {maximum})")
        if not lo < hi:
            raise ConfigurationError(f"{value.value} range is empty: [{minimum}, {maximum})")
        self.value = value
        self.min = lo
        self.max = hi
        self.nbins = nbins
        self.option = option
        self.zero_dim = bool(zero_dim)
        self.step = (hi - lo) / nbins

    @property
    def closed(self) -> bool:
        return self.option is BinningOption.CLOSED

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.min, self.max, self.nbins + 1)

    @property
    def centers(self) -> np.ndarray:
        return self.min + (np.arange(self.nbins) + 0.5) * self.step

    def center_value(self, ibin: int) -> float:
        if not 0 <= ibin < self.nbins:
            raise IndexError(f"bin {ibin} out of range for {self.nbins} bins")
        return self.min + (ibin + 0.5) * self.step

    def search(self, value: float | np.ndarray) -> int | np.ndarray:
        """
        Bin index of a coordinate value (scalar or array).

        A value on a bin edge belongs to the bin above it, also when rounding
        (e.g. an ``arctan2`` angle shifted by a full turn) leaves it a hair
        below the edge. Closed axes wrap by ``width``, open axes clamp.
        """
        v = np.asarray(value, dtype=float)
        if self.zero_dim:
            idx = np.zeros(v.shape, dtype=int)
        elif self.closed:
            wrapped = np.mod(v - self.min, self.width)
            idx = np.floor(wrapped / self.step + _EDGE_TOL).astype(int) % self.nbins
        else:
            idx = np.clip(np.floor((v - self.min) / self.step + _EDGE_TOL), 0, self.nbins - 1).astype(int)
        if idx.ndim == 0:
            return int(idx)
        return idx

    def search_position(self, position: np.ndarray) -> int | np.ndarray:
        return self.search(self.value.value_of(position))

    def neighbour_range(self, ibin: int) -> list[int]:
        """
        Sorted, unique indices within one bin of ``ibin``.

        Closed axes wrap so that the first and last bins are adjacent; open
        axes drop indices outside the axis.
        """
        candidates = (ibin - 1, ibin, ibin + 1)
        if self.closed:
            return sorted({c % self.nbins for c in candidates})
        return [c for c in candidates if 0 <= c < self.nbins]

    def __eq__(self, other):
        if not isinstance(other, BinningData):
            return NotImplemented
        return (self.value, self.min, self.max, self.nbins, self.option, self.zero_dim) == \
            (other.value, other.min, other.max, other.nbins, other.option, other.zero_dim)

    __hash__ = None

    def __repr__(self):
        kind = "zero-dim" if self.zero_dim else self.option.value
        return (f"BinningData({self.value.value}, [{self.min:g}, {self.max:g}), "
                f"nbins={self.nbins}, {kind})")
