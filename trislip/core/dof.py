"""
Selection of the kernel rows and columns taking part in the inversion.

The tensile column of every element is always dropped. The vertical row of
every station is dropped when the station set is two-dimensional.
"""

from dataclasses import dataclass
import numpy as np

from trislip.core.data import ObservationMode, StationSet
from trislip.core.errors import DimensionMismatchError
from trislip.core.fault import TriangularFaultMesh


def column_keep_index(n_elements: int) -> np.ndarray:
    """Indices of the strike- and dip-slip columns of a 3-component layout."""
    idx = 3 * np.arange(n_elements)
    return np.column_stack((idx, idx + 1)).ravel()


def row_keep_index(n_stations: int, mode: ObservationMode) -> np.ndarray:
    """Indices of the retained rows of a 3-component station layout."""
    if mode is ObservationMode.THREE_D:
        return np.arange(3 * n_stations)
    idx = 3 * np.arange(n_stations)
    return np.column_stack((idx, idx + 1)).ravel()


def trim_columns(matrix: np.ndarray, n_elements: int) -> np.ndarray:
    """
    Drops the tensile columns. A matrix that is already trimmed is returned unchanged.
    """
    n_cols = matrix.shape[1]
    if n_cols == 2 * n_elements:
        return matrix
    if n_cols != 3 * n_elements:
        raise DimensionMismatchError(
            f"Matrix has {n_cols} columns; expected {3 * n_elements} or {2 * n_elements} "
            f"for {n_elements} elements."
        )
    return matrix[:, column_keep_index(n_elements)]


def trim_rows(matrix: np.ndarray, n_stations: int, mode: ObservationMode) -> np.ndarray:
    """
    Drops the vertical rows in 2-D mode. A matrix that is already trimmed is returned unchanged.
    """
    n_rows = matrix.shape[0]
    n_kept = mode.n_components * n_stations
    if n_rows == n_kept:
        return matrix
    if n_rows != 3 * n_stations:
        raise DimensionMismatchError(
            f"Matrix has {n_rows} rows; expected {3 * n_stations} or {n_kept} "
            f"for {n_stations} stations."
        )
    return matrix[row_keep_index(n_stations, mode), :]


@dataclass
class DofSelection:
    kernel: np.ndarray
    mode: ObservationMode
    row_keep: np.ndarray
    col_keep: np.ndarray


def select_dofs(
    kernel: np.ndarray, stations: StationSet, mesh: TriangularFaultMesh
) -> DofSelection:
    """
    Reduces a full (3N, 3M) kernel to the rows and columns used by the inversion.

    Returns:
        A DofSelection holding the reduced kernel, the observation mode and
        the kept row and column indices into the full kernel.
    """
    mode = stations.observation_mode
    n_stations = len(stations)
    n_elements = mesh.num_patches()
    reduced = trim_columns(trim_rows(kernel, n_stations, mode), n_elements)
    return DofSelection(
        kernel=reduced,
        mode=mode,
        row_keep=row_keep_index(n_stations, mode),
        col_keep=column_keep_index(n_elements),
    )
