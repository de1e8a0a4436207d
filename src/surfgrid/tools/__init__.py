"""
Surface array tools
===================

Construction of surface arrays on cylinder and disc layouts, empty-bin
completion and neighbour registration.
"""
from .completion import available_completions, complete_binning, register_completion
from .creator import (
    CreationReport,
    SurfaceArrayCreator,
    surface_array_on_cylinder,
    surface_array_on_disc,
    surface_array_on_plane,
)
from .neighbours import register_neighbourhood

__all__ = [
    "CreationReport",
    "SurfaceArrayCreator",
    "available_completions",
    "complete_binning",
    "register_completion",
    "register_neighbourhood",
    "surface_array_on_cylinder",
    "surface_array_on_disc",
    "surface_array_on_plane",
]
