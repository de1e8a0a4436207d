import numpy as np

from surfgrid.errors import ConfigurationError
from surfgrid.geometry.transform import Transform3D
from surfgrid.util._type import BinTriple, Self, Vector3Like

from .data import BinningData, BinningOption, BinningValue

__all__ = ["BinUtility"]

MAX_AXES = 3


class BinUtility:
    """
    Ordered composition of up to three :class:`BinningData` axes.

    Axis 0 varies fastest. Positions are moved into the utility's local frame
    (inverse of ``transform``) before any axis sees them; the axis order set
    at construction is the order of every bin triple the utility produces.

    Examples
    --------
    >>> bu = BinUtility.equidistant(8, -np.pi, np.pi, BinningOption.CLOSED, BinningValue.PHI)
    >>> bu += BinUtility.equidistant(5, -100.0, 100.0, BinningOption.OPEN, BinningValue.Z)
    >>> bu.shape
    (1, 5, 8)
    >>> bu.bin_triple([10.0, 0.0, 95.0])
    (4, 4, 0)
    """

    def __init__(self, data: BinningData | list[BinningData] | tuple[BinningData, ...] | None = None,
                 transform: Transform3D | None = None):
        if data is None:
            axes: list[BinningData] = []
        elif isinstance(data, BinningData):
            axes = [data]
        else:
            axes = list(data)
        for ax in axes:
            if not isinstance(ax, BinningData):
                raise ConfigurationError(f"expected BinningData, got {ax!r}")
        if len(axes) > MAX_AXES:
            raise ConfigurationError(f"at most {MAX_AXES} axes are supported, got {len(axes)}")
        if transform is not None and not isinstance(transform, Transform3D):
            raise ConfigurationError(f"transform must be a Transform3D, got {type(transform).__name__}")
        self._data = axes
        self.transform = transform

    @classmethod
    def equidistant(cls, nbins: int, minimum: float, maximum: float,
                    option: BinningOption, value: BinningValue,
                    transform: Transform3D | None = None) -> Self:
        return cls(BinningData(value, minimum, maximum, nbins, option), transform)

    def __iadd__(self, other: "BinUtility") -> Self:
        if not isinstance(other, BinUtility):
            return NotImplemented
        if len(self._data) + len(other._data) > MAX_AXES:
            raise ConfigurationError(f"at most {MAX_AXES} axes are supported")
        self._data.extend(other._data)
        return self

    def __add__(self, other: "BinUtility") -> "BinUtility":
        if not isinstance(other, BinUtility):
            return NotImplemented
        out = BinUtility(list(self._data), self.transform)
        out += other
        return out

    @property
    def binning_data(self) -> tuple[BinningData, ...]:
        return tuple(self._data)

    @property
    def dimensions(self) -> int:
        return len(self._data)

    def bins(self, ba: int) -> int:
        """Bin count along axis ``ba``; 1 for axes the utility does not have."""
        return self._data[ba].nbins if ba < len(self._data) else 1

    @property
    def shape(self) -> tuple[int, int, int]:
        """Grid shape ``(n2, n1, n0)`` matching :meth:`bin_triple` order reversed."""
        return (self.bins(2), self.bins(1), self.bins(0))

    def to_local(self, position: Vector3Like | np.ndarray) -> np.ndarray:
        pos = np.asarray(position, dtype=float)
        if self.transform is None:
            return pos
        return self.transform.apply_inverse(pos)

    def to_global(self, position: np.ndarray) -> np.ndarray:
        pos = np.asarray(position, dtype=float)
        if self.transform is None:
            return pos
        return self.transform.apply(pos)

    def bin(self, position: Vector3Like, ba: int = 0) -> int:
        if ba >= len(self._data):
            return 0
        return self._data[ba].search_position(self.to_local(position))

    def bin_triple(self, position: Vector3Like) -> BinTriple:
        """Bin indices ``(i0, i1, i2)`` of a global position; missing axes give 0."""
        local = self.to_local(position)
        idx = [ax.search_position(local) for ax in self._data]
        idx += [0] * (MAX_AXES - len(idx))
        return (idx[0], idx[1], idx[2])

    def bin_triples(self, positions: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`bin_triple` for an ``(N, 3)`` array; returns ``(N, 3)`` ints."""
        local = self.to_local(np.atleast_2d(positions))
        out = np.zeros((local.shape[0], MAX_AXES), dtype=int)
        for ba, ax in enumerate(self._data):
            out[:, ba] = ax.search_position(local)
        return out

    def center_value(self, ba: int, ibin: int) -> float:
        return self._data[ba].center_value(ibin)

    def neighbour_ranges(self, bin_triple: BinTriple) -> tuple[list[int], list[int], list[int]]:
        """Per-axis neighbour indices of a bin triple, honouring closed-axis wrap."""
        ranges = []
        for ba in range(MAX_AXES):
            if ba < len(self._data):
                ranges.append(self._data[ba].neighbour_range(bin_triple[ba]))
            else:
                ranges.append([0])
        return (ranges[0], ranges[1], ranges[2])

    def __repr__(self):
        axes = ", ".join(repr(ax) for ax in self._data)
        trans = "" if self.transform is None else f", transform={self.transform!r}"
        return f"BinUtility([{axes}]{trans})"
