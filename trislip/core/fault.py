from abc import ABC, abstractmethod
import numpy as np
from typing import Tuple, Union, Dict, List, Optional, Sequence
import meshio
from scipy.sparse import coo_matrix, csr_matrix

MeshInput = Union[str, Tuple[np.ndarray, np.ndarray]]


class AbstractFaultModel(ABC):
    """
    Abstract Base Class for any fault geometry.
    """

    @abstractmethod
    def num_patches(self) -> int:
        """
        Returns the total number of elements (M).
        """
        pass

    @abstractmethod
    def get_mesh_geometry(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns vertices and faces (or equivalent geometric description).
        """
        pass

    @abstractmethod
    def get_centroids(self) -> np.ndarray:
        """
        Returns (M, 3) coordinates of element centroids.
        """
        pass

    @abstractmethod
    def get_smoothing_matrix(self, type: str = 'umbrella') -> csr_matrix:
        """
        Returns the sparse (3M, 3M) smoothing operator over all slip components.
        """
        pass


def _read_triangles(mesh_input: MeshInput) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(mesh_input, str):
        mesh = meshio.read(mesh_input)
        # Find the triangle cells
        triangle_cells = None
        for cell_block in mesh.cells:
            if cell_block.type == "triangle":
                triangle_cells = cell_block.data
                break
        if triangle_cells is None:
            raise ValueError("No triangular faces found in the mesh file.")
        return np.asarray(mesh.points, dtype=float), np.asarray(triangle_cells, dtype=int)
    if isinstance(mesh_input, tuple) and len(mesh_input) == 2:
        vertices = np.asarray(mesh_input[0], dtype=float)
        faces = np.asarray(mesh_input[1], dtype=int)
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError("Faces array must represent triangles (N, 3).")
        return vertices, faces
    raise ValueError(
        "mesh_input must be a file path (str) or a tuple of (vertices, faces) arrays."
    )


class TriangularFaultMesh(AbstractFaultModel):
    """
    Unstructured triangular mesh partitioned into contiguous sub-regions.

    Elements are ordered region by region; sub-region ``i`` holds the next
    ``n_elements[i]`` faces. Coordinates are local Cartesian kilometres with
    z negative below the surface.
    """

    def __init__(
        self,
        mesh_input: Union[MeshInput, List[MeshInput]],
        n_elements: Optional[Sequence[int]] = None,
        region_names: Optional[Sequence[str]] = None,
    ):
        """
        Initializes the TriangularFaultMesh from files or raw arrays.

        Args:
            mesh_input: Path to a mesh file (e.g., .msh, .stl), a tuple of
                        (vertices, faces) numpy arrays, or a list of either
                        with one entry per sub-region.
            n_elements: Number of elements in each sub-region. Inferred from
                        the list form of ``mesh_input``, otherwise defaults to
                        a single region holding every element.
            region_names: Optional names for the sub-regions.
        """
        if isinstance(mesh_input, list):
            if not mesh_input:
                raise ValueError("mesh_input list must contain at least one region.")
            vertex_blocks, face_blocks, counts = [], [], []
            offset = 0
            for region_input in mesh_input:
                vertices, faces = _read_triangles(region_input)
                vertex_blocks.append(vertices)
                face_blocks.append(faces + offset)
                counts.append(faces.shape[0])
                offset += vertices.shape[0]
            self.vertices: np.ndarray = np.vstack(vertex_blocks)
            self.faces: np.ndarray = np.vstack(face_blocks)
            if n_elements is None:
                n_elements = counts
        else:
            self.vertices, self.faces = _read_triangles(mesh_input)

        if n_elements is None:
            n_elements = [self.faces.shape[0]]
        self.n_elements = np.asarray(n_elements, dtype=int).ravel()
        if np.any(self.n_elements <= 0):
            raise ValueError("Every sub-region must contain at least one element.")
        if self.n_elements.sum() != self.faces.shape[0]:
            raise ValueError(
                f"Sub-region element counts sum to {self.n_elements.sum()}, "
                f"but the mesh has {self.faces.shape[0]} elements."
            )

        if region_names is None:
            region_names = [f"region_{i}" for i in range(len(self.n_elements))]
        if len(region_names) != len(self.n_elements):
            raise ValueError("region_names must have one entry per sub-region.")
        self.region_names: List[str] = list(region_names)

        self._build_adjacency()

    def _build_adjacency(self):
        """Builds the side-sharing table of the mesh triangles."""
        self.shared_sides = -np.ones((self.num_patches(), 3), dtype=int)
        edge_to_faces: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}

        for i, face in enumerate(self.faces):
            edges = [
                tuple(sorted((face[0], face[1]))),
                tuple(sorted((face[1], face[2]))),
                tuple(sorted((face[2], face[0]))),
            ]
            for side, edge in enumerate(edges):
                edge_to_faces.setdefault(edge, []).append((i, side))

        for edge, owners in edge_to_faces.items():
            if len(owners) == 2:
                (f1, s1), (f2, s2) = owners
                self.shared_sides[f1, s1] = f2
                self.shared_sides[f2, s2] = f1

        self.adjacency: Dict[int, List[int]] = {
            i: [int(j) for j in row if j != -1]
            for i, row in enumerate(self.shared_sides)
        }

    def num_patches(self) -> int:
        """Returns the total number of elements (M)."""
        return self.faces.shape[0]

    def num_regions(self) -> int:
        """Returns the number of sub-regions (N)."""
        return len(self.n_elements)

    def region_slices(self) -> List[slice]:
        """Returns the element slice of each sub-region."""
        bounds = np.concatenate(([0], np.cumsum(self.n_elements)))
        return [slice(int(bounds[i]), int(bounds[i + 1])) for i in range(self.num_regions())]

    def region_index(self) -> np.ndarray:
        """Returns the sub-region index of every element."""
        return np.repeat(np.arange(self.num_regions()), self.n_elements)

    def get_mesh_geometry(self) -> Tuple[np.ndarray, np.ndarray]:
        """Returns vertices and faces."""
        return self.vertices, self.faces

    def get_centroids(self) -> np.ndarray:
        """Calculates and returns the centroids of each triangular element."""
        return self.vertices[self.faces].mean(axis=1)

    def get_shared_sides(self) -> np.ndarray:
        """
        Returns the (M, 3) table of elements sharing each side.

        Column ``j`` refers to side ``j`` of the element (vertices j, j+1);
        -1 marks a free side on the mesh boundary.
        """
        return self.shared_sides.copy()

    def get_shared_side_distances(self) -> np.ndarray:
        """
        Returns the (M, 3) centroid distances to each side-sharing neighbour.

        A distance of 0 marks a free side, not collocated elements.
        """
        centroids = self.get_centroids()
        share = self.shared_sides
        neighbours = centroids[np.where(share == -1, 0, share)]
        distances = np.linalg.norm(centroids[:, np.newaxis, :] - neighbours, axis=2)
        distances[share == -1] = 0.0
        return distances

    def get_smoothing_matrix(self, type: str = 'umbrella') -> csr_matrix:
        """
        Constructs the sparse smoothing operator over all three slip components.

        The 'umbrella' operator is the scale-dependent discrete Laplacian
        (Desbrun et al., 1999). For element i with neighbours j at centroid
        distances d_ij and L_i = 2 / sum_j d_ij:

            S_ii = -L_i * sum_j 1 / d_ij
            S_ij =  L_i / d_ij

        The 'simple' operator uses 3 on the diagonal and -1 per neighbour.
        Both act on each slip component independently; rows of elements with
        no neighbours are zero.

        Returns:
            A sparse (3M, 3M) CSR matrix ordered (strike, dip, tensile) per element.
        """
        share = self.shared_sides
        has_neighbour = share != -1
        n_patches = self.num_patches()

        if type == 'umbrella':
            distances = self.get_shared_side_distances()
            inverse = np.zeros_like(distances)
            inverse[has_neighbour] = 1.0 / distances[has_neighbour]
            total = distances.sum(axis=1)
            leading = np.zeros(n_patches)
            leading[total > 0] = 2.0 / total[total > 0]
            diagonal = -leading * inverse.sum(axis=1)
            off_diagonal = leading[:, np.newaxis] * inverse
        elif type == 'simple':
            diagonal = np.where(has_neighbour.any(axis=1), 3.0, 0.0)
            off_diagonal = np.where(has_neighbour, -1.0, 0.0)
        else:
            raise NotImplementedError(f"Smoothing type '{type}' is not supported.")

        rows, cols = np.nonzero(has_neighbour)
        element_rows = np.concatenate((np.arange(n_patches), rows))
        element_cols = np.concatenate((np.arange(n_patches), share[rows, cols]))
        values = np.concatenate((diagonal, off_diagonal[rows, cols]))

        all_rows = (3 * element_rows[:, np.newaxis] + np.arange(3)).ravel()
        all_cols = (3 * element_cols[:, np.newaxis] + np.arange(3)).ravel()
        all_values = np.repeat(values, 3)

        smoothing = coo_matrix(
            (all_values, (all_rows, all_cols)), shape=(3 * n_patches, 3 * n_patches)
        )
        return smoothing.tocsr()

    def get_edge_elements(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Finds the elements lining the up-dip and down-dip mesh boundary.

        A free side is up-dip when the element's opposite vertex lies deeper
        than the side midpoint by more than the depth difference between the
        side's own vertices, and down-dip when it lies shallower by more than
        that difference. Side edges satisfy neither test.

        Returns:
            Boolean masks (top, bottom), each of length M.
        """
        depths = np.abs(self.vertices[:, 2])
        top = np.zeros(self.num_patches(), dtype=bool)
        bottom = np.zeros(self.num_patches(), dtype=bool)

        for side in range(3):
            free = self.shared_sides[:, side] == -1
            if not np.any(free):
                continue
            faces = self.faces[free]
            d0 = depths[faces[:, side]]
            d1 = depths[faces[:, (side + 1) % 3]]
            opposite = depths[faces[:, (side + 2) % 3]]
            relief = opposite - 0.5 * (d0 + d1)
            spread = np.abs(d0 - d1)
            indices = np.flatnonzero(free)
            top[indices[relief > spread]] = True
            bottom[indices[relief < -spread]] = True

        return top, bottom
