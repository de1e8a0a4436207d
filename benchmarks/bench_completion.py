import time

import numpy as np

from surfgrid import DetectorElement, Surface, SurfaceArrayCreator
from surfgrid.tools.completion import brute_force_nearest, kdtree_nearest


def _barrel(n_phi, n_z, radius=30.0, half_z=100.0, seed=0):
    """Sparse barrel layer: roughly one surface every fourth bin, jittered."""
    rng = np.random.default_rng(seed)
    n = max(1, n_phi * n_z // 4)
    phi = rng.uniform(0, 2 * np.pi, n)
    z = rng.uniform(-half_z, half_z, n)
    return [
        Surface([radius * np.cos(p), radius * np.sin(p), zz], DetectorElement(i))
        for i, (p, zz) in enumerate(zip(phi, z))
    ]


# -----------------------
# ASV benchmark entrypoint
# -----------------------
class TimeCylinderConstruct:
    """
    benchmark SurfaceArrayCreator.surface_array_on_cylinder() on a sparse barrel layer.
    """
    params = [
              [(32, 8), (128, 32), (512, 64)],  # bins (phi, z)
              ["brute", "kdtree"],               # completion
    ]
    param_names = ["bins", "completion"]

    def setup(self, bins, completion):
        self.surfaces = _barrel(*bins)
        self.creator = SurfaceArrayCreator(completion=completion)

    def time_surface_array_on_cylinder(self, bins, completion):
        self.creator.surface_array_on_cylinder(self.surfaces, 30.0, 0.0, 2 * np.pi, 100.0, *bins)


class TimeNearest:
    """
    benchmark the nearest-surface strategies on random centers.
    """
    params = [
              [1_000, 20_000],  # empty bins
              [100, 2_000],     # surfaces
    ]
    param_names = ["n_centers", "n_surfaces"]

    def setup(self, n_centers, n_surfaces):
        rng = np.random.default_rng(1)
        self.centers = rng.uniform(-100, 100, size=(n_centers, 3))
        self.positions = rng.uniform(-100, 100, size=(n_surfaces, 3))

    def time_brute_force(self, n_centers, n_surfaces):
        brute_force_nearest(self.centers, self.positions)

    def time_kdtree(self, n_centers, n_surfaces):
        kdtree_nearest(self.centers, self.positions)


def main():
    surfaces = _barrel(512, 64)
    n_repeat = 5
    for completion in ("brute", "kdtree"):
        creator = SurfaceArrayCreator(completion=completion)
        t0 = time.perf_counter()
        for _ in range(n_repeat):
            creator.surface_array_on_cylinder(surfaces, 30.0, 0.0, 2 * np.pi, 100.0, 512, 64)
        t1 = time.perf_counter()
        print(f"completion={completion} N={len(surfaces)} repeat={n_repeat} avg={(t1 - t0) / n_repeat:.6f}s")


if __name__ == "__main__":
    main()
