"""
Kernel sources and the adapter that turns one into a validated kernel matrix.

A kernel is either supplied in memory (``InlineKernel``) or identified by an
HDF5 cache file (``CachedKernel``). A cached kernel is loaded when the file
exists and computed and written there otherwise. The only check made on a
reused kernel is its shape; making sure it belongs to the current geometry is
the caller's responsibility.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import h5py
import numpy as np
from loguru import logger

from trislip.core.data import StationSet
from trislip.core.errors import DimensionMismatchError
from trislip.core.fault import TriangularFaultMesh
from trislip.core.physics import GreenFunctionBuilder

KERNEL_DATASET = "kernel"


@dataclass(frozen=True)
class InlineKernel:
    """A kernel matrix supplied directly by the caller."""
    matrix: np.ndarray


@dataclass(frozen=True)
class CachedKernel:
    """A kernel identified by the HDF5 file it is (or will be) cached in."""
    path: Path

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))


KernelSource = Union[InlineKernel, CachedKernel]


def expected_kernel_shape(stations: StationSet, mesh: TriangularFaultMesh) -> tuple:
    return 3 * len(stations), 3 * mesh.num_patches()


def validate_kernel(kernel: np.ndarray, stations: StationSet, mesh: TriangularFaultMesh) -> np.ndarray:
    """Raises DimensionMismatchError unless kernel is (3N, 3M)."""
    kernel = np.asarray(kernel, dtype=float)
    expected = expected_kernel_shape(stations, mesh)
    if kernel.shape != expected:
        raise DimensionMismatchError(
            f"Kernel has shape {kernel.shape}, but {len(stations)} stations and "
            f"{mesh.num_patches()} elements require {expected}."
        )
    return kernel


def load_kernel(path: Union[str, Path]) -> np.ndarray:
    with h5py.File(path, "r") as hdf5_file:
        if KERNEL_DATASET not in hdf5_file:
            raise KeyError(f"No '{KERNEL_DATASET}' dataset in {path}")
        return np.array(hdf5_file[KERNEL_DATASET])


def save_kernel(path: Union[str, Path], kernel: np.ndarray, n_stations: int, n_elements: int):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(path, "w") as hdf5_file:
        hdf5_file.create_dataset(KERNEL_DATASET, data=kernel)
        hdf5_file.attrs["n_stations"] = n_stations
        hdf5_file.attrs["n_elements"] = n_elements


def resolve_kernel(
    source: KernelSource,
    stations: StationSet,
    mesh: TriangularFaultMesh,
    engine: Optional[GreenFunctionBuilder] = None,
) -> np.ndarray:
    """
    Returns the full (3N, 3M) kernel described by ``source``.

    Args:
        source: InlineKernel or CachedKernel.
        stations: The station set the kernel must match.
        mesh: The mesh the kernel must match.
        engine: Used to compute the kernel when a cache file does not exist yet.

    Raises:
        DimensionMismatchError: If the supplied or loaded kernel has the wrong shape.
        ValueError: If a kernel has to be computed but no engine was given.
    """
    if isinstance(source, InlineKernel):
        return validate_kernel(source.matrix, stations, mesh)

    if not isinstance(source, CachedKernel):
        raise TypeError(f"Unsupported kernel source: {type(source).__name__}")

    if source.path.exists():
        logger.info(f"Loading existing elastic kernel from {source.path}")
        kernel = validate_kernel(load_kernel(source.path), stations, mesh)
        logger.success("Loaded elastic kernel")
        return kernel

    if engine is None:
        raise ValueError(
            f"Kernel file {source.path} does not exist and no GreenFunctionBuilder engine has been set."
        )
    logger.info(f"Kernel file {source.path} not found. Calculating elastic partials")
    kernel = validate_kernel(engine.build_kernel(mesh, stations), stations, mesh)
    save_kernel(source.path, kernel, len(stations), mesh.num_patches())
    logger.success(f"Saved elastic kernel to {source.path}")
    return kernel
