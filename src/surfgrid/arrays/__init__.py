from .binned import BinnedArrayXD, SurfaceArray

__all__ = ["BinnedArrayXD", "SurfaceArray"]
