import numpy as np
import pytest

from surfgrid import DetectorElement, Surface


def ring(n, radius=10.0, z=0.0, phase=0.5, with_elements=True):
    """``n`` surfaces evenly spaced in phi, centered in their phi bins when ``phase=0.5``."""
    out = []
    for i in range(n):
        phi = (i + phase) * 2 * np.pi / n
        element = DetectorElement(f"e{i}") if with_elements else None
        out.append(Surface([radius * np.cos(phi), radius * np.sin(phi), z], element, name=f"s{i}"))
    return out


@pytest.fixture
def make_ring():
    return ring


@pytest.fixture
def ring8():
    """8 surfaces at R=10 in the middle of 8 phi bins over [0, 2 pi)."""
    return ring(8)


@pytest.fixture
def barrel():
    """4 z-rings of 12 surfaces at R=30, z in {-75, -25, 25, 75}."""
    surfaces = []
    for iz, z in enumerate((-75.0, -25.0, 25.0, 75.0)):
        for sf in ring(12, radius=30.0, z=z):
            sf.name = f"{sf.name}z{iz}"
            surfaces.append(sf)
    return surfaces
