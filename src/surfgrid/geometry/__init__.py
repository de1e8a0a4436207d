"""
Geometry collaborators
======================

Rigid transforms and the minimal surface / detector-element handles that
surface arrays index.
"""
from .surface import DetectorElement, Surface
from .transform import Transform3D

__all__ = ["DetectorElement", "Surface", "Transform3D"]
