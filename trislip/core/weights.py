from typing import Optional
import numpy as np
from loguru import logger
from scipy.sparse import diags, dia_matrix

from trislip.core.data import ObservationMode, StationSet
from trislip.core.dof import row_keep_index

DEFAULT_CONSTRAINT_WEIGHT = 1e5


def observation_weights(stations: StationSet, mode: Optional[ObservationMode] = None) -> np.ndarray:
    """
    Inverse-variance weights interleaved per station as (east, north[, up]).

    A vertical without uncertainties gets zero weight.
    """
    if mode is None:
        mode = stations.observation_mode
    n_stations = len(stations)
    weights = np.zeros(3 * n_stations)
    weights[0::3] = 1.0 / stations.east_sigma ** 2
    weights[1::3] = 1.0 / stations.north_sigma ** 2
    if stations.up_sigma is not None:
        weights[2::3] = 1.0 / stations.up_sigma ** 2
    elif mode is ObservationMode.THREE_D:
        logger.warning(
            f"Station set '{stations.name}' has vertical data but no vertical "
            "uncertainties; vertical rows get zero weight."
        )
    weights = weights[row_keep_index(n_stations, mode)]
    if not np.all(np.isfinite(weights)):
        raise ValueError("Station uncertainties must be nonzero and finite.")
    return weights


def constraint_weights(n_rows: int, weight: float = DEFAULT_CONSTRAINT_WEIGHT) -> np.ndarray:
    """A constant weight for every constraint row."""
    return np.full(n_rows, float(weight))


def assemble_weights(
    observation: np.ndarray, regularization: np.ndarray, constraint: np.ndarray
) -> np.ndarray:
    """Concatenates the weights in row order [observation, regularization, constraint]."""
    return np.concatenate([observation, regularization, constraint])


def weight_operator(weights: np.ndarray) -> dia_matrix:
    """The sparse diagonal weight matrix W."""
    return diags(weights, 0, shape=(weights.size, weights.size))
