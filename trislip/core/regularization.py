from abc import ABC, abstractmethod
from typing import Sequence, Tuple, Union
import numpy as np
from loguru import logger
from scipy.sparse import csr_matrix

from trislip.core.dof import column_keep_index
from trislip.core.errors import DegenerateRegionError
from trislip.core.fault import TriangularFaultMesh

Beta = Union[float, Sequence[float], np.ndarray]


def normalize_beta(beta: Beta, n_regions: int) -> np.ndarray:
    """
    Returns one regularization strength per sub-region.

    A scalar is repeated for every sub-region.
    """
    beta = np.atleast_1d(np.asarray(beta, dtype=float))
    if beta.size == 1:
        return np.full(n_regions, beta[0])
    if beta.size != n_regions:
        raise ValueError(
            f"beta must be a scalar or have one value per sub-region ({n_regions}), got {beta.size}."
        )
    return beta


def region_distance_scales(mesh: TriangularFaultMesh, beta: np.ndarray) -> np.ndarray:
    """
    Mean nonzero neighbour distance of each sub-region.

    Raises DegenerateRegionError for a region with a nonzero beta and no
    side-sharing elements. Regions with a zero beta get a scale of 0.
    """
    distances = mesh.get_shared_side_distances()
    scales = np.zeros(mesh.num_regions())
    for i, region in enumerate(mesh.region_slices()):
        if beta[i] == 0:
            continue
        region_distances = distances[region]
        nonzero = region_distances[region_distances != 0]
        if nonzero.size == 0:
            raise DegenerateRegionError(i, mesh.region_names[i])
        scales[i] = nonzero.mean()
    return scales


class RegularizationManager(ABC):
    """
    Abstract base class for constructing regularization operators.
    """

    @abstractmethod
    def build(
        self, mesh: TriangularFaultMesh, beta: Beta
    ) -> Tuple[csr_matrix, np.ndarray]:
        """
        Builds the smoothing operator and its row weights over strike and dip slip.
        """
        pass


class DistanceWeightedSmoothing(RegularizationManager):
    """
    Smoothing scaled per sub-region by its element spacing and strength.

    The row weight of every slip component in sub-region i is
    (mean neighbour distance in i)^2 * beta_i, so the same beta gives a
    comparable amount of smoothing on coarse and fine meshes.
    """

    def __init__(self, type: str = 'umbrella'):
        self.type = type

    def build(
        self, mesh: TriangularFaultMesh, beta: Beta
    ) -> Tuple[csr_matrix, np.ndarray]:
        """
        Constructs the trimmed smoothing operator and its weights.

        Args:
            mesh: The triangular mesh.
            beta: Scalar or per-region regularization strength.

        Returns:
            A (2M, 2M) sparse operator and a (2M,) weight vector, both ordered
            (strike, dip) per element. When every beta is zero the operator and
            the weights are all zero.
        """
        n_patches = mesh.num_patches()
        beta = normalize_beta(beta, mesh.num_regions())
        keep = column_keep_index(n_patches)

        if not np.any(beta):
            return csr_matrix((2 * n_patches, 2 * n_patches)), np.zeros(2 * n_patches)

        logger.info("Making the smoothing matrix")
        smoothing = mesh.get_smoothing_matrix(type=self.type)

        scales = region_distance_scales(mesh, beta)
        element_weights = (scales ** 2 * beta)[mesh.region_index()]
        weights = np.repeat(element_weights, 2)

        operator = smoothing[keep, :][:, keep].tocsr()
        return operator, weights
