"""
Minimal surface and detector-element handles.

The array tools only ever ask a surface for its binning position and its
associated physical element, and only ever tell an element its neighbours.
:class:`Surface` and :class:`DetectorElement` implement exactly that; any
object following :class:`~surfgrid.util._type.SurfaceLike` /
:class:`~surfgrid.util._type.DetectorElementLike` can be used instead.
"""

from collections.abc import Sequence
from typing import Any

import numpy as np

from surfgrid.binning.data import BinningValue
from surfgrid.util._type import DetectorElementLike, Vector3Like, as_vector3

__all__ = ["DetectorElement", "Surface"]


class DetectorElement:
    """
    Physical detector component behind one or more surfaces.

    Parameters
    ----------
    identifier : Any, optional
        Free-form label, only used in ``repr``.
    """

    def __init__(self, identifier: Any = None):
        self.identifier = identifier
        self._neighbours: tuple[DetectorElementLike, ...] = ()
        self.n_registrations = 0

    @property
    def neighbours(self) -> tuple[DetectorElementLike, ...]:
        return self._neighbours

    def register_neighbours(self, elements: Sequence[DetectorElementLike]) -> None:
        """Replace the neighbour list; the last call wins."""
        self._neighbours = tuple(elements)
        self.n_registrations += 1

    def __repr__(self):
        return f"<DetectorElement {self.identifier!r}>"


class Surface:
    """
    A detector surface reduced to what spatial indexing needs.

    Parameters
    ----------
    center : array_like
        Global center of the surface.
    element : DetectorElementLike or None, optional
        Physical element represented by this surface.
    binning_offset : array_like or None, optional
        Shift applied to the center to obtain the binning position, for
        surfaces whose representative point is not their center.
    name : str or None, optional
        Label used in ``repr``.
    """

    def __init__(self, center: Vector3Like, element: DetectorElementLike | None = None,
                 binning_offset: Vector3Like | None = None, name: str | None = None):
        self.center = as_vector3(center, "center")
        self.associated_detector_element = element
        self._offset = None if binning_offset is None else as_vector3(binning_offset, "binning_offset")
        self.name = name
        self.center.flags.writeable = False

    def binning_position(self, bvalue: BinningValue) -> np.ndarray:
        """
        Representative position used to bin this surface.

        The same point is returned for every binning value; subclasses
        needing a value-dependent point (e.g. the mid-radius of a disc
        segment for ``BinningValue.R``) override this.
        """
        if self._offset is None:
            return self.center
        return self.center + self._offset

    def __repr__(self):
        label = self.name if self.name is not None else np.round(self.center, 3).tolist()
        return f"<Surface {label}>"
