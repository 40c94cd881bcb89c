import numpy as np
from scipy.io import loadmat
from typing import Optional, Sequence, Union
from pathlib import Path

from trislip.core.fault import TriangularFaultMesh


class MeshParser:
    """
    Reader for the triangular mesh encodings accepted by the inversion.

    Supports MATLAB ``.mat`` files holding a coordinate array ``c``, a
    1-based vertex index array ``v`` and the per-region counts ``nEl``, and
    any triangle mesh readable by meshio (.msh, .stl, .vtk, ...).
    """

    @staticmethod
    def from_arrays(
        c: np.ndarray,
        v: np.ndarray,
        n_elements: Optional[Sequence[int]] = None,
        one_based: bool = False,
        region_names: Optional[Sequence[str]] = None,
    ) -> TriangularFaultMesh:
        """
        Builds a mesh from coordinate and vertex-index arrays.

        Args:
            c: (P, 3) vertex coordinates.
            v: (M, 3) vertex indices of each element.
            n_elements: Elements per sub-region; one region if omitted.
            one_based: True when ``v`` counts vertices from 1.
            region_names: Optional sub-region names.
        """
        faces = np.asarray(v, dtype=int)
        if one_based:
            faces = faces - 1
        if faces.min() < 0 or faces.max() >= len(c):
            raise ValueError("Vertex indices fall outside the coordinate array.")
        return TriangularFaultMesh(
            (np.asarray(c, dtype=float), faces),
            n_elements=n_elements,
            region_names=region_names,
        )

    @staticmethod
    def read_mat(filepath: Union[str, Path]) -> TriangularFaultMesh:
        """Reads a ``.mat`` file holding ``c``, ``v`` and optionally ``nEl``."""
        contents = loadmat(str(filepath), squeeze_me=False)
        if 'c' not in contents or 'v' not in contents:
            raise ValueError(f"{filepath} must contain the arrays 'c' and 'v'.")
        n_elements = None
        if 'nEl' in contents:
            n_elements = np.asarray(contents['nEl'], dtype=int).ravel()
        return MeshParser.from_arrays(
            contents['c'], contents['v'], n_elements=n_elements, one_based=True
        )

    @staticmethod
    def read(
        filepath: Union[str, Path],
        n_elements: Optional[Sequence[int]] = None,
    ) -> TriangularFaultMesh:
        """
        Reads a mesh file, choosing the reader from its extension.

        Args:
            filepath: Path to a .mat file or a meshio-readable mesh.
            n_elements: Elements per sub-region; overrides ``nEl`` of a .mat file.
        """
        if Path(filepath).suffix.lower() == '.mat':
            mesh = MeshParser.read_mat(filepath)
            if n_elements is None:
                return mesh
            return TriangularFaultMesh(mesh.get_mesh_geometry(), n_elements=n_elements)
        return TriangularFaultMesh(str(filepath), n_elements=n_elements)
