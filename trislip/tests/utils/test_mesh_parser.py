import meshio
import numpy as np
import pytest
from scipy.io import savemat
from trislip.utils.parsers.mesh_parser import MeshParser


@pytest.fixture
def mesh_arrays(dipping_mesh):
    return dipping_mesh.get_mesh_geometry()


def test_from_arrays_one_based(mesh_arrays):
    vertices, faces = mesh_arrays
    mesh = MeshParser.from_arrays(vertices, faces + 1, one_based=True)
    np.testing.assert_array_equal(mesh.faces, faces)
    assert mesh.num_regions() == 1


def test_from_arrays_index_out_of_range(mesh_arrays):
    vertices, faces = mesh_arrays
    with pytest.raises(ValueError, match="outside the coordinate array"):
        MeshParser.from_arrays(vertices, faces + 1)


def test_read_mat(tmp_path, mesh_arrays):
    vertices, faces = mesh_arrays
    path = tmp_path / "mesh.mat"
    savemat(str(path), {"c": vertices, "v": faces + 1, "nEl": np.array([[2], [2]])})

    mesh = MeshParser.read(path)
    np.testing.assert_array_equal(mesh.faces, faces)
    np.testing.assert_allclose(mesh.vertices, vertices)
    np.testing.assert_array_equal(mesh.n_elements, [2, 2])


def test_read_mat_override_regions(tmp_path, mesh_arrays):
    vertices, faces = mesh_arrays
    path = tmp_path / "mesh.mat"
    savemat(str(path), {"c": vertices, "v": faces + 1})

    assert MeshParser.read(path).num_regions() == 1
    mesh = MeshParser.read(path, n_elements=[1, 3])
    np.testing.assert_array_equal(mesh.n_elements, [1, 3])


def test_read_mat_missing_arrays(tmp_path):
    path = tmp_path / "mesh.mat"
    savemat(str(path), {"c": np.zeros((3, 3))})
    with pytest.raises(ValueError, match="'c' and 'v'"):
        MeshParser.read_mat(path)


def test_read_meshio_file(tmp_path, mesh_arrays):
    vertices, faces = mesh_arrays
    path = tmp_path / "mesh.vtk"
    meshio.Mesh(vertices, [("triangle", faces)]).write(path)

    mesh = MeshParser.read(path, n_elements=[2, 2])
    assert mesh.num_patches() == 4
    top, bottom = mesh.get_edge_elements()
    np.testing.assert_array_equal(np.flatnonzero(top), [0, 2])
