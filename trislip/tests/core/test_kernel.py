import h5py
import numpy as np
import pytest
from trislip.core.errors import DimensionMismatchError
from trislip.core.kernel import (
    CachedKernel,
    InlineKernel,
    load_kernel,
    resolve_kernel,
    save_kernel,
    validate_kernel,
)
from trislip.core.physics import GreenFunctionBuilder


class CountingEngine(GreenFunctionBuilder):
    """Returns a fixed kernel and counts how often it was asked for one."""

    def __init__(self, kernel):
        self.kernel = kernel
        self.calls = 0

    def build_kernel(self, fault, stations):
        self.calls += 1
        return self.kernel


@pytest.fixture
def full_kernel():
    return np.random.default_rng(7).normal(size=(9, 12))


def test_inline_kernel(full_kernel, dipping_mesh, station_factory):
    kernel = resolve_kernel(InlineKernel(full_kernel), station_factory(3), dipping_mesh)
    np.testing.assert_array_equal(kernel, full_kernel)


def test_inline_kernel_wrong_shape(dipping_mesh, station_factory):
    with pytest.raises(DimensionMismatchError, match=r"require \(9, 12\)"):
        resolve_kernel(InlineKernel(np.zeros((9, 8))), station_factory(3), dipping_mesh)


def test_validate_kernel_accepts_lists(dipping_mesh, station_factory):
    kernel = validate_kernel(np.zeros((3, 12)).tolist(), station_factory(1), dipping_mesh)
    assert isinstance(kernel, np.ndarray)


def test_cached_kernel_coerces_path(tmp_path):
    assert CachedKernel(str(tmp_path / "k.h5")).path == tmp_path / "k.h5"


def test_save_and_load_kernel(tmp_path, full_kernel):
    path = tmp_path / "nested" / "kernel.h5"
    save_kernel(path, full_kernel, 3, 4)
    np.testing.assert_array_equal(load_kernel(path), full_kernel)
    with h5py.File(path, "r") as hdf5_file:
        assert hdf5_file.attrs["n_stations"] == 3
        assert hdf5_file.attrs["n_elements"] == 4


def test_load_kernel_missing_dataset(tmp_path):
    path = tmp_path / "empty.h5"
    with h5py.File(path, "w") as hdf5_file:
        hdf5_file.create_dataset("other", data=np.zeros(2))
    with pytest.raises(KeyError):
        load_kernel(path)


def test_cached_kernel_computed_once(tmp_path, full_kernel, dipping_mesh, station_factory):
    stations = station_factory(3)
    engine = CountingEngine(full_kernel)
    source = CachedKernel(tmp_path / "kernel.h5")

    first = resolve_kernel(source, stations, dipping_mesh, engine)
    assert source.path.exists()
    second = resolve_kernel(source, stations, dipping_mesh, engine)

    assert engine.calls == 1
    np.testing.assert_array_equal(first, full_kernel)
    np.testing.assert_array_equal(second, full_kernel)


def test_cached_kernel_shape_checked_on_load(tmp_path, dipping_mesh, station_factory):
    path = tmp_path / "kernel.h5"
    save_kernel(path, np.zeros((6, 12)), 2, 4)
    with pytest.raises(DimensionMismatchError):
        resolve_kernel(CachedKernel(path), station_factory(3), dipping_mesh)


def test_cached_kernel_missing_without_engine(tmp_path, dipping_mesh, station_factory):
    with pytest.raises(ValueError, match="does not exist"):
        resolve_kernel(CachedKernel(tmp_path / "absent.h5"), station_factory(3), dipping_mesh)


def test_unsupported_source(dipping_mesh, station_factory):
    with pytest.raises(TypeError):
        resolve_kernel(np.zeros((9, 12)), station_factory(3), dipping_mesh)
