"""
Surface array construction for cylindrical and disc-shaped layers.

:class:`SurfaceArrayCreator` turns the surfaces of one detector layer into a
:class:`~surfgrid.arrays.binned.SurfaceArray`, a two-dimensional bin grid
answering "which surface lies near this position" in constant time.

Every construction runs the same pipeline:

1. build the :class:`~surfgrid.binning.utility.BinUtility` of the layout and
   the global center position of every bin;
2. place each surface in the bin of its radial binning position, resolving
   collisions with the configured policy;
3. fill the remaining empty bins with the nearest surface
   (:func:`~surfgrid.tools.completion.complete_binning`);
4. wrap the grid in a :class:`SurfaceArray` and register the neighbours of
   every detector element
   (:func:`~surfgrid.tools.neighbours.register_neighbourhood`).

Any failure aborts the whole call before detector elements are touched.

Basic usage
-----------

.. code-block:: python

   from surfgrid import Surface, DetectorElement, SurfaceArrayCreator

   surfaces = [Surface([10 * np.cos(p), 10 * np.sin(p), 0.0], DetectorElement(i))
               for i, p in enumerate(phis)]
   creator = SurfaceArrayCreator(collision="keep_closest", completion="kdtree")
   array = creator.surface_array_on_cylinder(surfaces, 10.0, -np.pi, np.pi, 50.0, 8, 1)
   array.object([0.0, 10.0, 3.0])

Collision policies
------------------
``"overwrite"`` (default)
    the later surface replaces the earlier one;
``"keep_first"``
    the earlier surface stays;
``"keep_closest"``
    the surface closer to the bin center stays, the earlier one on ties;
``"reject"``
    raise :class:`~surfgrid.errors.PlacementCollisionError`.

Collisions are counted and logged as warnings for the tolerant policies.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from surfgrid.arrays.binned import SurfaceArray, empty_grid
from surfgrid.binning.data import BinningData, BinningOption, BinningValue
from surfgrid.binning.utility import BinUtility
from surfgrid.errors import ConfigurationError, EmptyInputError, PlacementCollisionError, UnsupportedLayoutError
from surfgrid.geometry.transform import Transform3D
from surfgrid.log import logger
from surfgrid.util._type import (
    CollisionPolicy,
    CompletionFunc,
    RegistCompletionString,
    Self,
    SurfaceGrid,
    SurfaceLike,
    V3Matrix,
    check_count,
)
from surfgrid.util.perf import PerfStats

from .completion import binning_positions, complete_binning, resolve_completion
from .neighbours import register_neighbourhood

__all__ = [
    "CreationReport",
    "SurfaceArrayCreator",
    "surface_array_on_cylinder",
    "surface_array_on_disc",
    "surface_array_on_plane",
]

COLLISION_POLICIES = ("overwrite", "keep_first", "keep_closest", "reject")

# closed phi axes may not span more than a full turn
_PHI_TOL = 1e-9


@dataclass(frozen=True)
class CreationReport:
    """Diagnostics of the last successful construction."""
    layout: str
    shape: tuple[int, int, int]
    n_surfaces: int
    collisions: int
    completed: int
    neighbours_set: int


class SurfaceArrayCreator:
    """
    Build surface arrays on cylinder and disc layouts.

    Parameters
    ----------
    collision : {"overwrite", "keep_first", "keep_closest", "reject"}, optional
        What placement does when a second surface maps to an occupied bin.
    completion : str or callable, optional
        Empty-bin completion strategy, a name registered with
        :func:`~surfgrid.tools.completion.register_completion` or a callable.

    Attributes
    ----------
    perf_stats : PerfStats
        Stage profiler, disabled until :meth:`enable_perf` is called.
    last_report : CreationReport or None
        Diagnostics of the last successful call.
    """

    def __init__(self, collision: CollisionPolicy = "overwrite",
                 completion: RegistCompletionString | CompletionFunc = "brute"):
        if collision not in COLLISION_POLICIES:
            raise ConfigurationError(f"Invalid collision policy: {collision!r}, expected one of {COLLISION_POLICIES}")
        resolve_completion(completion)
        self.collision = collision
        self.completion = completion
        self.perf_stats = PerfStats(time=False, memory=False)
        self.last_report: CreationReport | None = None

    def enable_perf(self, time: bool = True, memory: bool = False) -> Self:
        """
        Enable or disable timing and memory profiling of the construction stages.

        Returns
        -------
        Self
            The creator instance.
        """
        self.perf_stats.time_enabled = time
        self.perf_stats.memory_enabled = memory
        return self

    def __repr__(self):
        return f"<SurfaceArrayCreator collision={self.collision} completion={self.completion}>"

    # ------------------- layouts ------------------------------------------#

    def surface_array_on_cylinder(
        self,
        surfaces: Sequence[SurfaceLike],
        radius: float,
        min_phi: float,
        max_phi: float,
        half_z: float,
        bins_phi: int,
        bins_z: int,
        transform: Transform3D | None = None,
    ) -> SurfaceArray:
        """
        Surface array on a cylinder, binned in (phi, z).

        Axis 0 is a closed phi axis over ``[min_phi, max_phi)``, axis 1 an
        open z axis over ``[-half_z, half_z)``; the grid has shape
        ``(1, bins_z, bins_phi)``. Bin centers sit on the cylinder of
        ``radius`` in the frame of ``transform``.

        Raises
        ------
        EmptyInputError
            If ``surfaces`` is empty.
        ConfigurationError
            For invalid bin counts, radius, half length or phi range.
        PlacementCollisionError
            With the ``"reject"`` policy when two surfaces share a bin.
        """
        logger.debug("Creating a SurfaceArray on a cylinder with grid in phi x z = %s x %s", bins_phi, bins_z)
        surfaces = _check_surfaces(surfaces)
        bins_phi = check_count(bins_phi, "bins_phi")
        bins_z = check_count(bins_z, "bins_z")
        radius = _check_positive(radius, "radius")
        half_z = _check_positive(half_z, "half_z")
        _check_phi_range(min_phi, max_phi)

        with self.perf_stats as stats:
            with stats.step("binning"):
                bin_utility = BinUtility(
                    BinningData(BinningValue.PHI, min_phi, max_phi, bins_phi, BinningOption.CLOSED), transform)
                bin_utility += BinUtility(
                    BinningData(BinningValue.Z, -half_z, half_z, bins_z, BinningOption.OPEN))
                phi_data, z_data = bin_utility.binning_data
                zz, pp = np.meshgrid(z_data.centers, phi_data.centers, indexing="ij")
                local = np.stack([radius * np.cos(pp), radius * np.sin(pp), zz], axis=-1)
                v3_matrix = bin_utility.to_global(local)
                positions = _positions(surfaces)
            array = self._build("cylinder", surfaces, positions, bin_utility, v3_matrix, stats)
        self.perf_stats.report(logger, title="SurfaceArray on cylinder")
        return array

    def surface_array_on_disc(
        self,
        surfaces: Sequence[SurfaceLike],
        min_r: float,
        max_r: float,
        min_phi: float,
        max_phi: float,
        bins_r: int,
        bins_phi: int,
        transform: Transform3D | None = None,
    ) -> SurfaceArray:
        """
        Surface array on a disc, binned in (r, phi).

        Axis 0 is the radius over ``[min_r, max_r)``: a single bin that takes
        every radius when ``bins_r == 1``, an open equidistant axis otherwise.
        Axis 1 is a closed phi axis. The grid has shape ``(1, bins_phi, bins_r)``.
        The disc has no z parameter; bin centers use the mean local z of the
        surfaces' binning positions.

        Raises
        ------
        EmptyInputError
            If ``surfaces`` is empty (the disc z would be undefined).
        ConfigurationError
            For invalid bin counts or ranges.
        PlacementCollisionError
            With the ``"reject"`` policy when two surfaces share a bin.
        """
        logger.debug("Creating a SurfaceArray on a disc with grid in r x phi = %s x %s", bins_r, bins_phi)
        surfaces = _check_surfaces(surfaces)
        bins_r = check_count(bins_r, "bins_r")
        bins_phi = check_count(bins_phi, "bins_phi")
        if not np.isfinite(min_r) or min_r < 0:
            raise ConfigurationError(f"min_r must be finite and >= 0, got {min_r}")
        _check_phi_range(min_phi, max_phi)

        with self.perf_stats as stats:
            with stats.step("binning"):
                if bins_r == 1:
                    r_data = BinningData(BinningValue.R, min_r, max_r, zero_dim=True)
                else:
                    r_data = BinningData(BinningValue.R, min_r, max_r, bins_r, BinningOption.OPEN)
                bin_utility = BinUtility(r_data, transform)
                bin_utility += BinUtility(
                    BinningData(BinningValue.PHI, min_phi, max_phi, bins_phi, BinningOption.CLOSED))
                positions = _positions(surfaces)
                z = float(np.mean(bin_utility.to_local(positions)[:, 2]))
                logger.debug("- z-position of disk estimated as %g", z)
                r_data, phi_data = bin_utility.binning_data
                pp, rr = np.meshgrid(phi_data.centers, r_data.centers, indexing="ij")
                local = np.stack([rr * np.cos(pp), rr * np.sin(pp), np.full_like(rr, z)], axis=-1)
                v3_matrix = bin_utility.to_global(local)
            array = self._build("disc", surfaces, positions, bin_utility, v3_matrix, stats)
        self.perf_stats.report(logger, title="SurfaceArray on disc")
        return array

    def surface_array_on_plane(
        self,
        surfaces: Sequence[SurfaceLike],
        half_x: float,
        half_y: float,
        bins_x: int,
        bins_y: int,
        transform: Transform3D | None = None,
    ) -> SurfaceArray:
        """
        Planar layouts are not supported.

        Raises
        ------
        UnsupportedLayoutError
            Always.
        """
        logger.error("SurfaceArray on a plane is not implemented (requested %s x %s bins)", bins_x, bins_y)
        raise UnsupportedLayoutError("surface arrays on a plane are not implemented")

    # ------------------- pipeline -----------------------------------------#

    def _build(self, layout: str, surfaces: list[SurfaceLike], positions: np.ndarray,
               bin_utility: BinUtility, v3_matrix: V3Matrix, stats: PerfStats) -> SurfaceArray:
        with stats.step("place"):
            grid, collisions = self._place(layout, surfaces, positions, bin_utility, v3_matrix)
        with stats.step("complete"):
            completed = complete_binning(v3_matrix, surfaces, grid, self.completion, positions)
        array = SurfaceArray(grid, bin_utility)
        with stats.step("neighbours"):
            neighbours_set = register_neighbourhood(array)
        self.last_report = CreationReport(
            layout=layout,
            shape=array.shape,
            n_surfaces=len(surfaces),
            collisions=collisions,
            completed=completed,
            neighbours_set=neighbours_set,
        )
        logger.debug("%s", self.last_report)
        return array

    def _place(self, layout: str, surfaces: list[SurfaceLike], positions: np.ndarray,
               bin_utility: BinUtility, v3_matrix: V3Matrix) -> tuple[SurfaceGrid, int]:
        """Put each surface in the bin of its binning position; returns the grid and collision count."""
        grid = empty_grid(bin_utility.shape)
        owner = np.full(bin_utility.shape, -1, dtype=int)
        collisions = 0
        for k, (i0, i1, i2) in enumerate(bin_utility.bin_triples(positions)):
            current = owner[i2, i1, i0]
            if current < 0:
                grid[i2, i1, i0] = surfaces[k]
                owner[i2, i1, i0] = k
                continue
            collisions += 1
            if self.collision == "reject":
                raise PlacementCollisionError((int(i0), int(i1), int(i2)), surfaces[current], surfaces[k])
            if self.collision == "overwrite":
                replace = True
            elif self.collision == "keep_closest":
                center = v3_matrix[i1, i0]
                replace = np.linalg.norm(positions[k] - center) < np.linalg.norm(positions[current] - center)
            else:
                replace = False
            if replace:
                grid[i2, i1, i0] = surfaces[k]
                owner[i2, i1, i0] = k
        if collisions:
            logger.warning("%s %s: %d surface(s) mapped to an already occupied bin (policy: %s)",
                           layout, bin_utility.shape, collisions, self.collision)
        return grid, collisions


# ------------------- helpers ----------------------------------------------#

def _check_surfaces(surfaces: Sequence[SurfaceLike]) -> list[SurfaceLike]:
    surfaces = list(surfaces)
    if not surfaces:
        raise EmptyInputError("At least one surface is required to build a surface array")
    for sf in surfaces:
        if sf is None:
            raise ConfigurationError("surfaces must not contain None")
    return surfaces


def _positions(surfaces: list[SurfaceLike]) -> np.ndarray:
    positions = binning_positions(surfaces, BinningValue.R)
    if positions.shape != (len(surfaces), 3) or not np.all(np.isfinite(positions)):
        raise ConfigurationError("every surface must provide a finite 3D binning position")
    return positions


def _check_positive(value: float, name: str) -> float:
    value = float(value)
    if not np.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be finite and > 0, got {value}")
    return value


def _check_phi_range(min_phi: float, max_phi: float) -> None:
    if not (np.isfinite(min_phi) and np.isfinite(max_phi)) or not min_phi < max_phi:
        raise ConfigurationError(f"phi range is empty or not finite: [{min_phi}, {max_phi})")
    if max_phi - min_phi > 2 * np.pi + _PHI_TOL:
        raise ConfigurationError(f"phi range [{min_phi}, {max_phi}) spans more than 2 pi")


def surface_array_on_cylinder(surfaces, radius, min_phi, max_phi, half_z, bins_phi, bins_z, transform=None):
    """Shortcut for :meth:`SurfaceArrayCreator.surface_array_on_cylinder` with default settings."""
    return SurfaceArrayCreator().surface_array_on_cylinder(
        surfaces, radius, min_phi, max_phi, half_z, bins_phi, bins_z, transform)


def surface_array_on_disc(surfaces, min_r, max_r, min_phi, max_phi, bins_r, bins_phi, transform=None):
    """Shortcut for :meth:`SurfaceArrayCreator.surface_array_on_disc` with default settings."""
    return SurfaceArrayCreator().surface_array_on_disc(
        surfaces, min_r, max_r, min_phi, max_phi, bins_r, bins_phi, transform)


def surface_array_on_plane(surfaces, half_x, half_y, bins_x, bins_y, transform=None):
    """Always raises :class:`~surfgrid.errors.UnsupportedLayoutError`."""
    return SurfaceArrayCreator().surface_array_on_plane(surfaces, half_x, half_y, bins_x, bins_y, transform)
