import numpy as np
import pytest
from trislip.core.data import ObservationMode
from trislip.core.forward import predict_displacements, predict_stations


def test_predict_displacements_negates_kernel():
    kernel = np.array([[1.0, 2.0], [3.0, 4.0]])
    np.testing.assert_allclose(predict_displacements(kernel, np.array([1.0, 1.0])), [-3.0, -7.0])


def test_predict_stations_two_d(station_factory):
    stations = station_factory(3)
    kernel = np.random.default_rng(0).normal(size=(6, 8))
    slip = np.linspace(-1, 1, 8)
    predicted = predict_stations(kernel, slip, stations, ObservationMode.TWO_D)

    flat = -kernel @ slip
    np.testing.assert_allclose(predicted.east, flat[0::2])
    np.testing.assert_allclose(predicted.north, flat[1::2])
    assert predicted.up is None
    assert predicted.name == "synthetic_predicted"
    np.testing.assert_array_equal(predicted.coords, stations.coords)
    # Observations are left untouched
    np.testing.assert_array_equal(stations.east, np.zeros(3))


def test_predict_stations_three_d_is_positive_up(station_factory):
    stations = station_factory(2, up=np.array([1.0, 1.0]), up_sigma=np.ones(2))
    kernel = np.zeros((6, 2))
    kernel[2, 0] = 1.0  # -kernel @ slip gives down = -1 for the first station
    predicted = predict_stations(kernel, np.array([1.0, 0.0]), stations, ObservationMode.THREE_D)
    np.testing.assert_allclose(predicted.up, [1.0, 0.0])


def test_predict_stations_row_mismatch(station_factory):
    stations = station_factory(3)
    with pytest.raises(ValueError, match="needs 6"):
        predict_stations(np.zeros((9, 8)), np.zeros(8), stations, ObservationMode.TWO_D)
