import numpy as np

from trislip.core.data import ObservationMode, StationSet


def predict_displacements(kernel: np.ndarray, slip: np.ndarray) -> np.ndarray:
    """Flat predicted displacement -kernel @ slip, interleaved (east, north[, down])."""
    return -kernel @ slip


def predict_stations(
    kernel: np.ndarray,
    slip: np.ndarray,
    stations: StationSet,
    mode: ObservationMode,
) -> StationSet:
    """
    Forward-predicts the station displacements implied by ``slip``.

    Args:
        kernel: The trimmed kernel used in the inversion.
        slip: Slip vector ordered (strike, dip) per element.
        stations: The observed station set; it is not modified.
        mode: The observation mode the kernel rows were trimmed for.

    Returns:
        A new StationSet whose east, north (and, in 3-D mode, up) fields hold
        the predicted values. The vertical is returned positive up.
    """
    n_comp = mode.n_components
    if kernel.shape[0] != n_comp * len(stations):
        raise ValueError(
            f"Kernel has {kernel.shape[0]} rows; {mode} mode with "
            f"{len(stations)} stations needs {n_comp * len(stations)}."
        )
    predicted = predict_displacements(kernel, slip)
    up = -predicted[2::3] if mode is ObservationMode.THREE_D else None
    return stations.with_displacements(
        east=predicted[0::n_comp],
        north=predicted[1::n_comp],
        up=up,
        name=f"{stations.name}_predicted",
    )
