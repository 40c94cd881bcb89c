from abc import ABC, abstractmethod
import numpy as np
from loguru import logger
from trislip.core.fault import AbstractFaultModel, TriangularFaultMesh
from trislip.core.data import StationSet
import cutde.halfspace as HS


class GreenFunctionBuilder(ABC):
    """
    Abstract base class for calculating the elastic kernel.

    The kernel has shape (3N, 3M): rows interleaved per station as
    (east, north, vertical), columns interleaved per element as
    (strike-slip, dip-slip, tensile). ``-kernel @ slip`` gives the
    displacement as (east, north, down).
    """

    @abstractmethod
    def build_kernel(
        self, fault: AbstractFaultModel, stations: StationSet
    ) -> np.ndarray:
        """
        Returns the full (3N, 3M) kernel.
        """
        pass


class CutdeCpuEngine(GreenFunctionBuilder):
    """
    Green's function engine using the `cutde` library on the CPU.
    """

    def __init__(self, poisson_ratio: float = 0.25):
        """
        Initializes the CutdeCpuEngine.

        Args:
            poisson_ratio: Poisson's ratio for the elastic medium.
        """
        self.nu = poisson_ratio

    def build_kernel(
        self, fault: TriangularFaultMesh, stations: StationSet
    ) -> np.ndarray:
        """
        Builds the kernel using cutde's half-space triangular dislocations.

        Args:
            fault: A TriangularFaultMesh object.
            stations: A StationSet object.

        Returns:
            A numpy array of shape (3 * N_stations, 3 * M_elements).
        """
        obs_pts = stations.coords

        # cutde expects triangles as (M, 3, 3) array of vertex coordinates
        verts, faces = fault.get_mesh_geometry()
        tris = verts[faces]

        logger.info(
            f"Computing cutde partials for {len(stations)} stations "
            f"and {fault.num_patches()} elements"
        )
        # (obs_idx, disp_dim, tri_idx, slip_dim); disp_dim is (east, north, up)
        disp_mat = HS.disp_matrix(obs_pts=obs_pts, tris=tris, nu=self.nu)

        n_obs = obs_pts.shape[0]
        n_patches = fault.num_patches()
        kernel = np.array(disp_mat, dtype=float).reshape(3 * n_obs, 3 * n_patches)

        # Negate the horizontal rows so that -kernel maps slip to (east, north, down)
        kernel[0::3, :] *= -1.0
        kernel[1::3, :] *= -1.0
        return kernel
