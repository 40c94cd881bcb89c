import numpy as np
import pytest
from scipy.sparse import issparse
from trislip.core.errors import DegenerateRegionError
from trislip.core.fault import TriangularFaultMesh
from trislip.core.regularization import (
    DistanceWeightedSmoothing,
    RegularizationManager,
    normalize_beta,
    region_distance_scales,
)

# Neighbour distances of the dipping test mesh
A = 5.0
B = np.sqrt(525.0) / 3.0


@pytest.fixture
def isolated_pair():
    """Two triangles that share no side, one per sub-region."""
    vertices = np.array([
        [0.0, 0.0, -1.0], [1.0, 0.0, -1.0], [0.0, 1.0, -2.0],
        [5.0, 0.0, -1.0], [6.0, 0.0, -1.0], [5.0, 1.0, -2.0],
    ])
    faces = np.array([[0, 1, 2], [3, 4, 5]])
    return TriangularFaultMesh((vertices, faces), n_elements=[1, 1])


def test_regularization_manager_is_abstract():
    with pytest.raises(TypeError):
        RegularizationManager()


def test_normalize_beta_broadcasts_scalar():
    np.testing.assert_array_equal(normalize_beta(2.0, 3), [2.0, 2.0, 2.0])
    np.testing.assert_array_equal(normalize_beta([0.5], 2), [0.5, 0.5])


def test_normalize_beta_wrong_length():
    with pytest.raises(ValueError, match="one value per sub-region"):
        normalize_beta([1.0, 2.0], 3)


def test_region_distance_scales_single_region(dipping_mesh):
    scales = region_distance_scales(dipping_mesh, np.array([1.0]))
    np.testing.assert_allclose(scales, [(4 * A + 2 * B) / 6])


def test_region_distance_scales_two_regions(two_region_mesh):
    scales = region_distance_scales(two_region_mesh, np.array([1.0, 1.0]))
    np.testing.assert_allclose(scales, [(2 * A + B) / 3, (2 * A + B) / 3])


def test_operator_shape_and_weights(dipping_mesh):
    operator, weights = DistanceWeightedSmoothing().build(dipping_mesh, 2.0)
    assert issparse(operator)
    assert operator.shape == (8, 8)
    assert weights.shape == (8,)
    expected = ((4 * A + 2 * B) / 6) ** 2 * 2.0
    np.testing.assert_allclose(weights, np.full(8, expected))


def test_operator_is_trimmed_smoothing_matrix(dipping_mesh):
    operator, _ = DistanceWeightedSmoothing().build(dipping_mesh, 1.0)
    full = dipping_mesh.get_smoothing_matrix().toarray()
    keep = [0, 1, 3, 4, 6, 7, 9, 10]
    np.testing.assert_allclose(operator.toarray(), full[np.ix_(keep, keep)])


def test_per_region_weights(two_region_mesh):
    _, weights = DistanceWeightedSmoothing().build(two_region_mesh, [1.0, 4.0])
    scale_sq = ((2 * A + B) / 3) ** 2
    np.testing.assert_allclose(weights[:4], scale_sq * 1.0)
    np.testing.assert_allclose(weights[4:], scale_sq * 4.0)


def test_zero_beta_gives_zero_block(dipping_mesh):
    operator, weights = DistanceWeightedSmoothing().build(dipping_mesh, 0.0)
    assert operator.shape == (8, 8)
    assert operator.nnz == 0
    np.testing.assert_array_equal(weights, np.zeros(8))


def test_degenerate_region_raises(isolated_pair):
    with pytest.raises(DegenerateRegionError) as excinfo:
        DistanceWeightedSmoothing().build(isolated_pair, 1.0)
    assert excinfo.value.region == 0


def test_degenerate_region_ignored_with_zero_beta(isolated_pair):
    operator, weights = DistanceWeightedSmoothing().build(isolated_pair, 0.0)
    assert operator.nnz == 0
    np.testing.assert_array_equal(weights, np.zeros(4))


def test_simple_smoothing_type(dipping_mesh):
    operator, _ = DistanceWeightedSmoothing(type='simple').build(dipping_mesh, 1.0)
    dense = operator.toarray()
    # Element 1 strike slip couples to elements 0 and 2
    assert dense[2, 2] == 3.0
    assert dense[2, 0] == -1.0
    assert dense[2, 4] == -1.0
