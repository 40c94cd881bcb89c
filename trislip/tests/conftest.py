import numpy as np
import pytest

from trislip.core.data import StationSet
from trislip.core.fault import TriangularFaultMesh


def dipping_mesh_arrays():
    """
    A 2 x 1 strip of four triangles dipping to +y.

    Up-dip vertices sit at 1 km depth, down-dip vertices at 6 km.
    Elements 0 and 2 touch the up-dip edge, 1 and 3 the down-dip edge,
    and the elements form the chain 0-1-2-3.
    """
    vertices = np.array([
        [0.0, 0.0, -1.0],    # 0
        [10.0, 0.0, -1.0],   # 1
        [20.0, 0.0, -1.0],   # 2
        [0.0, 10.0, -6.0],   # 3
        [10.0, 10.0, -6.0],  # 4
        [20.0, 10.0, -6.0],  # 5
    ])
    faces = np.array([
        [0, 1, 3],
        [1, 4, 3],
        [1, 2, 4],
        [2, 5, 4],
    ])
    return vertices, faces


@pytest.fixture
def dipping_mesh():
    return TriangularFaultMesh(dipping_mesh_arrays())


@pytest.fixture
def two_region_mesh():
    return TriangularFaultMesh(
        dipping_mesh_arrays(), n_elements=[2, 2], region_names=["west", "east"]
    )


def make_stations(n_stations, east=None, north=None, up=None, sigma=1.0, up_sigma=None, seed=0):
    rng = np.random.default_rng(seed)
    coords = np.column_stack((
        rng.uniform(-20, 40, n_stations),
        rng.uniform(-20, 30, n_stations),
        np.zeros(n_stations),
    ))
    return StationSet(
        coords=coords,
        east=np.zeros(n_stations) if east is None else east,
        north=np.zeros(n_stations) if north is None else north,
        east_sigma=np.full(n_stations, sigma),
        north_sigma=np.full(n_stations, sigma),
        up=up,
        up_sigma=up_sigma,
        name="synthetic",
    )


@pytest.fixture
def station_factory():
    return make_stations
