"""
Empty-bin completion.

After placement a surface grid usually has empty cells (fewer surfaces than
bins, or collisions). :func:`complete_binning` gives every empty cell the
surface whose binning position is closest to the cell center. Ties go to the
surface that comes first in the input list, whatever strategy is used.

Strategies
----------
Nearest-surface search is pluggable. A strategy is a callable
``(centers (M, 3), positions (S, 3)) -> indices (M,)`` registered under a
name with :func:`register_completion`:

>>> @register_completion(name="first")
... def always_first(centers, positions):
...     return np.zeros(len(centers), dtype=int)

Built-in strategies:

- ``"brute"``: full distance matrix, O(bins x surfaces). Fine at
  construction time for layer-sized inputs.
- ``"kdtree"``: :class:`scipy.spatial.cKDTree` query, then an exact re-check
  of every candidate at the nearest distance so the input-order tie-break
  matches ``"brute"``.
"""

from collections.abc import Callable, Sequence
from typing import overload

import numpy as np
from scipy.spatial import cKDTree

from surfgrid.binning.data import BinningValue
from surfgrid.errors import ConfigurationError, EmptyInputError
from surfgrid.log import logger
from surfgrid.util._type import CompletionFunc, RegistCompletionString, SurfaceGrid, SurfaceLike, V3Matrix

__all__ = ["complete_binning", "register_completion", "available_completions", "binning_positions"]

_completion_registry: dict[str, CompletionFunc] = {}

# rows of centers handled per distance-matrix block
_BRUTE_CHUNK = 4096


@overload
def register_completion(fn: CompletionFunc, name: str | None = None) -> CompletionFunc: ...
@overload
def register_completion(fn: None = None, name: str | None = None) -> Callable[[CompletionFunc], CompletionFunc]: ...

def register_completion(
    fn: CompletionFunc | None = None,
    name: str | None = None,
) -> CompletionFunc | Callable[[CompletionFunc], CompletionFunc]:
    """
    Register a nearest-surface strategy.

    Parameters
    ----------
    fn : callable, optional
        Strategy to register. If omitted, used as a decorator factory.
    name : str, optional
        Registry key. Defaults to ``fn.__name__``.

    Returns
    -------
    callable
        The function itself (when called directly) or a decorator.
    """
    def decorator(func: CompletionFunc) -> CompletionFunc:
        _completion_registry[name or func.__name__] = func
        return func
    if fn is None:
        return decorator
    return decorator(fn)


def available_completions() -> list[str]:
    return list(_completion_registry)


def resolve_completion(method: RegistCompletionString | CompletionFunc) -> CompletionFunc:
    if callable(method):
        return method
    try:
        return _completion_registry[method]
    except (KeyError, TypeError):
        raise ConfigurationError(
            f"Invalid completion method: {method!r}, required callable or registry keys: {available_completions()}"
        ) from None


def empty_mask(cells: np.ndarray) -> np.ndarray:
    """Boolean mask of the cells holding ``None`` (identity test, no ``__eq__``)."""
    flat = [obj is None for obj in cells.ravel()]
    return np.array(flat, dtype=bool).reshape(cells.shape)


def binning_positions(surfaces: Sequence[SurfaceLike], bvalue: BinningValue = BinningValue.R) -> np.ndarray:
    """``(S, 3)`` array of the surfaces' binning positions."""
    if len(surfaces) == 0:
        return np.empty((0, 3))
    return np.array([np.asarray(sf.binning_position(bvalue), dtype=float) for sf in surfaces])


def complete_binning(
    v3_matrix: V3Matrix,
    surfaces: Sequence[SurfaceLike],
    grid: SurfaceGrid,
    method: RegistCompletionString | CompletionFunc = "brute",
    positions: np.ndarray | None = None,
) -> int:
    """
    Fill every empty cell of ``grid`` with the nearest surface, in place.

    Parameters
    ----------
    v3_matrix : numpy.ndarray
        ``(n1, n0, 3)`` global center positions of the bins.
    surfaces : sequence of SurfaceLike
        All input surfaces, in input order.
    grid : numpy.ndarray
        Object grid of shape ``(1, n1, n0)``. Occupied cells are left as they are.
    method : str or callable, optional
        Registered strategy name or a strategy callable (default ``"brute"``).
    positions : numpy.ndarray, optional
        Precomputed ``(S, 3)`` binning positions of ``surfaces``.

    Returns
    -------
    int
        Number of cells filled.

    Raises
    ------
    ConfigurationError
        On shape mismatches or an unknown ``method``.
    EmptyInputError
        If empty cells exist but ``surfaces`` is empty.
    """
    logger.debug("Complete binning by filling closest neighbour surfaces into empty bins.")
    v3 = np.asarray(v3_matrix, dtype=float)
    if v3.ndim != 3 or v3.shape[2] != 3 or grid.shape != (1, *v3.shape[:2]):
        raise ConfigurationError(f"center matrix {v3.shape} does not match grid {grid.shape}")
    func = resolve_completion(method)

    n_surfaces = len(surfaces)
    n_cells = v3.shape[0] * v3.shape[1]
    empty = empty_mask(grid[0])
    n_empty = int(np.count_nonzero(empty))

    if n_empty == 0:
        if n_cells == n_surfaces:
            logger.debug(" - Nothing to do, no empty bins present.")
        return 0
    if n_cells == n_surfaces:
        logger.warning("%d bins empty although surfaces and bins are equal in number (placement collisions)",
                       n_empty)
    if n_surfaces == 0:
        raise EmptyInputError("Cannot complete binning without surfaces")

    logger.debug("- Object count : %d number of surfaces", n_surfaces)
    logger.debug("- Surface grid : %d number of bins", n_cells)
    logger.debug("       to fill : %d", n_empty)

    if positions is None:
        positions = binning_positions(surfaces)
    else:
        positions = np.asarray(positions, dtype=float)
        if positions.shape != (n_surfaces, 3):
            raise ConfigurationError(f"positions must have shape ({n_surfaces}, 3), got {positions.shape}")

    targets = np.argwhere(empty)
    nearest = np.asarray(func(v3[empty], positions), dtype=int)
    if nearest.shape != (n_empty,):
        raise ConfigurationError(f"completion strategy returned shape {nearest.shape}, expected ({n_empty},)")
    for (i1, i0), k in zip(targets, nearest):
        grid[0, i1, i0] = surfaces[k]

    logger.debug("       filled  : %d", n_empty)
    return n_empty


@register_completion(name="brute")
def brute_force_nearest(centers: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Index of the nearest position for each center; first index wins ties."""
    out = np.empty(len(centers), dtype=int)
    for start in range(0, len(centers), _BRUTE_CHUNK):
        block = centers[start:start + _BRUTE_CHUNK]
        dist = np.linalg.norm(block[:, None, :] - positions[None, :, :], axis=-1)
        out[start:start + _BRUTE_CHUNK] = np.argmin(dist, axis=1)
    return out


@register_completion(name="kdtree")
def kdtree_nearest(centers: np.ndarray, positions: np.ndarray, rtol: float = 1e-9) -> np.ndarray:
    """
    Nearest position per center through a k-d tree.

    The tree distance only selects candidates: every position within the
    nearest distance (plus a relative tolerance) is re-measured exactly and the
    lowest input index among the exact minima is returned, which reproduces the
    tie-break of :func:`brute_force_nearest`.
    """
    tree = cKDTree(positions)
    dist, _ = tree.query(centers, k=1)
    radii = dist * (1.0 + rtol) + rtol
    out = np.empty(len(centers), dtype=int)
    for i, cand in enumerate(tree.query_ball_point(centers, radii)):
        cand = np.sort(np.asarray(cand, dtype=int))
        exact = np.linalg.norm(positions[cand] - centers[i], axis=-1)
        out[i] = cand[np.argmin(exact)]
    return out
