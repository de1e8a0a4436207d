import numpy as np
import numpy.testing as npt
import pytest

from surfgrid import (
    BinningValue,
    ConfigurationError,
    DetectorElement,
    EmptyInputError,
    PlacementCollisionError,
    Surface,
    SurfaceArrayCreator,
    Transform3D,
    UnsupportedLayoutError,
    surface_array_on_cylinder,
    surface_array_on_disc,
    surface_array_on_plane,
)


def on_circle(phi_deg, radius=10.0, z=0.0, name=None):
    phi = np.deg2rad(phi_deg)
    return Surface([radius * np.cos(phi), radius * np.sin(phi), z], DetectorElement(name), name=name)


def element(sf):
    return sf.associated_detector_element


def assert_fully_covered(array):
    assert all(obj is not None for obj in array.object_grid.ravel())


# ------------------- cylinder ---------------------------------------------#

def test_cylinder_eight_surfaces_ring(ring8):
    array = surface_array_on_cylinder(ring8, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert array.shape == (1, 1, 8)
    assert_fully_covered(array)
    assert [array.object_at((i, 0, 0)) for i in range(8)] == ring8
    assert len(array.array_objects()) == 8

    for i, sf in enumerate(ring8):
        neighbours = element(sf).neighbours
        assert len(neighbours) == 2
        assert element(ring8[(i - 1) % 8]) in neighbours
        assert element(ring8[(i + 1) % 8]) in neighbours
        assert element(sf) not in neighbours
    # wrap between the last and the first bin
    assert element(ring8[0]) in element(ring8[7]).neighbours
    assert element(ring8[7]) in element(ring8[0]).neighbours


@pytest.mark.parametrize("min_phi, first_bin", [(0.0, 0), (-np.pi, 4)])
def test_cylinder_ring_on_bin_edges(make_ring, min_phi, first_bin):
    surfaces = make_ring(8, phase=0.0)
    creator = SurfaceArrayCreator()
    array = creator.surface_array_on_cylinder(surfaces, 10.0, min_phi, min_phi + 2 * np.pi, 50.0, 8, 1)
    assert creator.last_report.collisions == 0
    assert creator.last_report.completed == 0
    assert len(array.array_objects()) == 8
    for i, sf in enumerate(surfaces):
        assert array.object_at(((i + first_bin) % 8, 0, 0)) is sf
        neighbours = element(sf).neighbours
        assert len(neighbours) == 2
        assert element(surfaces[(i - 1) % 8]) in neighbours
        assert element(surfaces[(i + 1) % 8]) in neighbours
    last, first = array.object_at((7, 0, 0)), array.object_at((0, 0, 0))
    assert element(first) in element(last).neighbours
    assert element(last) in element(first).neighbours


def test_cylinder_placement_matches_bin_utility(barrel):
    creator = SurfaceArrayCreator()
    array = creator.surface_array_on_cylinder(barrel, 30.0, 0.0, 2 * np.pi, 100.0, 12, 4)
    assert array.shape == (1, 4, 12)
    for sf in barrel:
        triple = array.bin_utility.bin_triple(sf.binning_position(BinningValue.R))
        assert array.object_at(triple) is sf

    report = creator.last_report
    assert report.layout == "cylinder"
    assert report.n_surfaces == 48
    assert report.collisions == 0
    assert report.completed == 0
    # edge z rows see 5 neighbours, inner rows 8
    assert report.neighbours_set == 24 * 5 + 24 * 8
    assert len(element(barrel[0]).neighbours) == 5
    assert len(element(barrel[12]).neighbours) == 8


def test_cylinder_completion_fills_nearest():
    surfaces = [on_circle(phi, name=f"s{i}") for i, phi in enumerate((10.0, 100.0, 200.0, 290.0))]
    s0, s1, s2, s3 = surfaces
    creator = SurfaceArrayCreator()
    array = creator.surface_array_on_cylinder(surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert_fully_covered(array)
    assert [array.object_at((i, 0, 0)) for i in range(8)] == [s0, s1, s1, s2, s2, s3, s3, s0]
    assert creator.last_report.completed == 4

    # s0 covers bins 7 and 0: neighbours collected from both cells
    assert element(s0).neighbours == (element(s1), element(s3))
    assert element(s0).n_registrations == 1


def test_completed_cells_hold_nearest_surface():
    rng = np.random.default_rng(3)
    phis = rng.uniform(0, 360, size=7)
    zs = rng.uniform(-40, 40, size=7)
    surfaces = [on_circle(p, radius=20.0, z=z) for p, z in zip(phis, zs)]
    array = surface_array_on_cylinder(surfaces, 20.0, 0.0, 2 * np.pi, 50.0, 10, 5)
    assert_fully_covered(array)

    positions = np.array([sf.center for sf in surfaces])
    phi_data, z_data = array.bin_utility.binning_data
    placed = {array.bin_utility.bin_triple(p) for p in positions}
    for (i0, i1, i2), obj in array:
        if (i0, i1, i2) in placed:
            continue
        phi, z = phi_data.center_value(i0), z_data.center_value(i1)
        center = np.array([20.0 * np.cos(phi), 20.0 * np.sin(phi), z])
        dist = np.linalg.norm(positions - center, axis=1)
        assert obj is surfaces[int(np.argmin(dist))]


@pytest.mark.parametrize("method", ["brute", "kdtree"])
def test_completion_methods_agree(method, barrel):
    sparse = barrel[::3]
    reference = surface_array_on_cylinder(sparse, 30.0, 0.0, 2 * np.pi, 100.0, 24, 8)
    array = SurfaceArrayCreator(completion=method).surface_array_on_cylinder(
        sparse, 30.0, 0.0, 2 * np.pi, 100.0, 24, 8)
    assert all(a is b for a, b in zip(array.object_grid.ravel(), reference.object_grid.ravel()))


def test_cylinder_with_transform(ring8):
    shifted = [Surface(sf.center + [0.0, 0.0, 525.0], DetectorElement(i)) for i, sf in enumerate(ring8)]
    trans = Transform3D.from_translation([0.0, 0.0, 500.0])
    array = surface_array_on_cylinder(shifted, 10.0, 0.0, 2 * np.pi, 50.0, 8, 2, transform=trans)
    assert array.shape == (1, 2, 8)
    for i, sf in enumerate(shifted):
        assert array.object_at((i, 1, 0)) is sf
        # lower row is completed with the surface straight above
        assert array.object_at((i, 0, 0)) is sf
        assert array.object(sf.center - [0.0, 0.0, 45.0]) is sf


# ------------------- disc -------------------------------------------------#

def disc_ring(n, radii, z=100.0):
    width = 360.0 / n
    return [on_circle(-180.0 + (i + 0.5) * width, radius=r, z=z, name=f"d{i}") for i, r in enumerate(radii)]


def test_disc_single_ring_ignores_radius():
    surfaces = disc_ring(6, [21.0, 29.0, 38.0, 20.5, 39.9, 30.0])
    array = surface_array_on_disc(surfaces, 20.0, 40.0, -np.pi, np.pi, 1, 6)
    assert array.shape == (1, 6, 1)
    r_data = array.bin_utility.binning_data[0]
    assert r_data.zero_dim
    for i, sf in enumerate(surfaces):
        assert array.bin_utility.bin_triple(sf.center) == (0, i, 0)
        assert array.object_at((0, i, 0)) is sf
        assert len(element(sf).neighbours) == 2


def test_disc_two_rings_uses_mean_z():
    inner = disc_ring(4, [25.0] * 4, z=100.0)
    outer = [on_circle(-135.0, radius=35.0, z=104.0), on_circle(45.0, radius=35.0, z=104.0)]
    seen = {}

    def capture(centers, positions):
        seen["centers"] = centers.copy()
        return np.argmin(np.linalg.norm(centers[:, None, :] - positions[None, :, :], axis=-1), axis=1)

    creator = SurfaceArrayCreator(completion=capture)
    array = creator.surface_array_on_disc(inner + outer, 20.0, 40.0, -np.pi, np.pi, 2, 4)
    assert array.shape == (1, 4, 2)
    assert_fully_covered(array)
    assert creator.last_report.completed == 2

    npt.assert_allclose(seen["centers"][:, 2], (4 * 100.0 + 2 * 104.0) / 6)
    # empty outer cells sit at r=35 and take the inner surface of their phi bin
    npt.assert_allclose(np.hypot(seen["centers"][:, 0], seen["centers"][:, 1]), 35.0)
    assert array.object_at((1, 1, 0)) is inner[1]
    assert array.object_at((1, 3, 0)) is inner[3]
    assert array.object_at((1, 0, 0)) is outer[0]
    assert array.object_at((0, 2, 0)) is inner[2]


def test_disc_rejects_empty_input():
    with pytest.raises(EmptyInputError):
        surface_array_on_disc([], 20.0, 40.0, -np.pi, np.pi, 1, 6)


# ------------------- plane ------------------------------------------------#

def test_plane_is_unsupported(ring8):
    with pytest.raises(UnsupportedLayoutError):
        surface_array_on_plane(ring8, 10.0, 10.0, 4, 4)
    with pytest.raises(NotImplementedError):
        SurfaceArrayCreator().surface_array_on_plane(ring8, 10.0, 10.0, 4, 4)


# ------------------- collisions -------------------------------------------#

@pytest.fixture
def crowded(ring8):
    """ring8 plus an extra surface sharing bin 3 with ring8[3]."""
    extra = on_circle(150.0, name="extra")
    return ring8 + [extra], extra


def test_collision_overwrite_is_default(crowded, ring8):
    surfaces, extra = crowded
    creator = SurfaceArrayCreator()
    array = creator.surface_array_on_cylinder(surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert array.object_at((3, 0, 0)) is extra
    assert creator.last_report.collisions == 1
    assert_fully_covered(array)
    # the overwritten surface is no longer in the array
    assert element(ring8[3]).n_registrations == 0
    assert element(extra) in element(ring8[2]).neighbours


def test_collision_keep_first(crowded, ring8):
    surfaces, extra = crowded
    array = SurfaceArrayCreator(collision="keep_first").surface_array_on_cylinder(
        surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert array.object_at((3, 0, 0)) is ring8[3]
    assert element(extra).n_registrations == 0


def test_collision_keep_closest(crowded, ring8):
    surfaces, extra = crowded
    creator = SurfaceArrayCreator(collision="keep_closest")
    for ordered in (surfaces, [extra] + ring8):
        array = creator.surface_array_on_cylinder(ordered, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
        assert array.object_at((3, 0, 0)) is ring8[3]


def test_collision_reject_leaves_elements_untouched(crowded, ring8):
    surfaces, _ = crowded
    with pytest.raises(PlacementCollisionError) as info:
        SurfaceArrayCreator(collision="reject").surface_array_on_cylinder(
            surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert info.value.bin_triple == (3, 0, 0)
    assert all(element(sf).n_registrations == 0 for sf in surfaces)


def test_collisions_are_logged(crowded, caplog):
    surfaces, _ = crowded
    with caplog.at_level("WARNING", logger="sgrid"):
        surface_array_on_cylinder(surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    assert any("already occupied" in rec.getMessage() for rec in caplog.records)


def test_repeated_collision_warnings_are_kept(crowded, caplog):
    surfaces, _ = crowded
    with caplog.at_level("WARNING", logger="sgrid"):
        for _ in range(2):
            surface_array_on_cylinder(surfaces, 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    warnings = [rec.getMessage() for rec in caplog.records if "already occupied" in rec.getMessage()]
    assert len(warnings) == 2
    assert all(msg.startswith("cylinder (1, 1, 8)") for msg in warnings)


# ------------------- configuration errors ---------------------------------#

@pytest.mark.parametrize("args", [
    (10.0, 0.0, 2 * np.pi, 50.0, 0, 1),
    (10.0, 0.0, 2 * np.pi, 50.0, 8, 0),
    (10.0, 0.0, 2 * np.pi, 50.0, 8.0, 1),
    (0.0, 0.0, 2 * np.pi, 50.0, 8, 1),
    (-5.0, 0.0, 2 * np.pi, 50.0, 8, 1),
    (10.0, 0.0, 2 * np.pi, 0.0, 8, 1),
    (10.0, 1.0, 1.0, 50.0, 8, 1),
    (10.0, -np.pi, 2 * np.pi, 50.0, 8, 1),
    (10.0, 0.0, np.nan, 50.0, 8, 1),
])
def test_cylinder_invalid_configuration(ring8, args):
    with pytest.raises(ConfigurationError):
        surface_array_on_cylinder(ring8, *args)
    assert all(element(sf).n_registrations == 0 for sf in ring8)


@pytest.mark.parametrize("args", [
    (-1.0, 40.0, -np.pi, np.pi, 1, 6),
    (40.0, 20.0, -np.pi, np.pi, 1, 6),
    (20.0, 20.0, -np.pi, np.pi, 2, 6),
    (20.0, 40.0, -np.pi, np.pi, 0, 6),
    (20.0, 40.0, -np.pi, np.pi, 1, 0),
])
def test_disc_invalid_configuration(args):
    with pytest.raises(ConfigurationError):
        surface_array_on_disc(disc_ring(6, [30.0] * 6), *args)


def test_cylinder_rejects_empty_or_bad_surfaces(ring8):
    with pytest.raises(EmptyInputError):
        surface_array_on_cylinder([], 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    with pytest.raises(ConfigurationError):
        surface_array_on_cylinder(ring8 + [None], 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)


def test_unknown_creator_settings():
    with pytest.raises(ConfigurationError):
        SurfaceArrayCreator(collision="merge")
    with pytest.raises(ConfigurationError):
        SurfaceArrayCreator(completion="octree")


# ------------------- profiling --------------------------------------------#

def test_enable_perf_records_stages(ring8):
    creator = SurfaceArrayCreator().enable_perf(time=True, memory=False)
    creator.surface_array_on_cylinder(ring8[::2], 10.0, 0.0, 2 * np.pi, 50.0, 8, 1)
    names = [name for name, _ in creator.perf_stats.steps]
    assert names == ["binning", "place", "complete", "neighbours"]
    assert all(info.time is not None for _, info in creator.perf_stats.steps)
    assert "complete" in creator.perf_stats.report()


def test_repeated_construction_is_deterministic(barrel):
    sparse = barrel[::5]
    first = surface_array_on_cylinder(sparse, 30.0, 0.0, 2 * np.pi, 100.0, 16, 6)
    second = surface_array_on_cylinder(sparse, 30.0, 0.0, 2 * np.pi, 100.0, 16, 6)
    assert all(a is b for a, b in zip(first.object_grid.ravel(), second.object_grid.ravel()))
