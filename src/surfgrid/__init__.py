"""
surfgrid: binned surface arrays for tracking-detector layers.

Builds a two-dimensional bin grid over the surfaces of a cylindrical or disc
layer so that "which surface is near this position" is a constant-time
lookup, fills empty bins with the nearest surface and tells every detector
element which elements surround it.

Main entry points:
- SurfaceArrayCreator: cylinder / disc construction with collision and
  completion settings
- SurfaceArray: the resulting grid with position and neighbourhood queries
- Surface, DetectorElement: minimal collaborators

Usage:
    from surfgrid import Surface, DetectorElement, SurfaceArrayCreator

    array = SurfaceArrayCreator().surface_array_on_cylinder(
        surfaces, 10.0, -np.pi, np.pi, 50.0, bins_phi=8, bins_z=1)
"""

from .arrays import BinnedArrayXD, SurfaceArray
from .binning import BinningData, BinningOption, BinningValue, BinUtility
from .errors import (
    ConfigurationError,
    EmptyInputError,
    PlacementCollisionError,
    SurfgridError,
    UnsupportedLayoutError,
)
from .geometry import DetectorElement, Surface, Transform3D
from .tools import (
    SurfaceArrayCreator,
    surface_array_on_cylinder,
    surface_array_on_disc,
    surface_array_on_plane,
)

__version__ = "0.1.0"

__all__ = [
    "BinnedArrayXD",
    "SurfaceArray",
    "BinningData",
    "BinningOption",
    "BinningValue",
    "BinUtility",
    "ConfigurationError",
    "EmptyInputError",
    "PlacementCollisionError",
    "SurfgridError",
    "UnsupportedLayoutError",
    "DetectorElement",
    "Surface",
    "Transform3D",
    "SurfaceArrayCreator",
    "surface_array_on_cylinder",
    "surface_array_on_disc",
    "surface_array_on_plane",
]
