import enum
import numpy as np
import pandas as pd
from typing import Optional


class ObservationMode(enum.Enum):
    """
    Dimensionality of the station observations, decided once per inversion.
    """
    TWO_D = 2
    THREE_D = 3

    @property
    def n_components(self) -> int:
        return self.value

    def __str__(self):
        return self.name


class StationSet:
    """
    A container for station displacements (or velocities) and their uncertainties.

    Components are stored per station as east, north and optionally up. The
    vertical is either present for the whole set or absent; mixed 2-D/3-D
    stations are not supported.
    """

    def __init__(
        self,
        coords: np.ndarray,
        east: np.ndarray,
        north: np.ndarray,
        east_sigma: np.ndarray,
        north_sigma: np.ndarray,
        up: Optional[np.ndarray] = None,
        up_sigma: Optional[np.ndarray] = None,
        names: Optional[np.ndarray] = None,
        name: str = "stations",
    ):
        """
        Initializes the StationSet.

        Args:
            coords: (N, 3) np.ndarray of station locations (x, y, z) in local kilometres.
            east: (N,) np.ndarray of east displacement values.
            north: (N,) np.ndarray of north displacement values.
            east_sigma: (N,) np.ndarray of east uncertainties.
            north_sigma: (N,) np.ndarray of north uncertainties.
            up: Optional (N,) np.ndarray of vertical displacement values.
            up_sigma: Optional (N,) np.ndarray of vertical uncertainties.
            names: Optional (N,) array of station names.
            name: str identifier for the station set.
        """
        coords = np.asarray(coords, dtype=float)
        if coords.ndim != 2 or coords.shape[1] != 3:
            raise ValueError("Coordinates array must have shape (N, 3).")

        n_stations = coords.shape[0]
        fields = {
            "east": east,
            "north": north,
            "east_sigma": east_sigma,
            "north_sigma": north_sigma,
            "up": up,
            "up_sigma": up_sigma,
            "names": names,
        }
        for key, values in fields.items():
            if values is not None and len(values) != n_stations:
                raise ValueError(
                    f"All input arrays must have the same length (N); "
                    f"'{key}' has {len(values)}, expected {n_stations}."
                )

        self.coords = coords
        self.east = np.asarray(east, dtype=float)
        self.north = np.asarray(north, dtype=float)
        self.east_sigma = np.asarray(east_sigma, dtype=float)
        self.north_sigma = np.asarray(north_sigma, dtype=float)
        self.up = None if up is None else np.asarray(up, dtype=float)
        self.up_sigma = None if up_sigma is None else np.asarray(up_sigma, dtype=float)
        self.names = None if names is None else np.asarray(names)
        self.name = name

    @property
    def observation_mode(self) -> ObservationMode:
        """
        TWO_D when no vertical is carried or every vertical value is exactly zero.
        """
        if self.up is None or not np.any(self.up != 0):
            return ObservationMode.TWO_D
        return ObservationMode.THREE_D

    def with_displacements(
        self,
        east: np.ndarray,
        north: np.ndarray,
        up: Optional[np.ndarray] = None,
        name: Optional[str] = None,
    ) -> "StationSet":
        """Returns a copy of the set with its displacement fields replaced."""
        return StationSet(
            coords=self.coords,
            east=east,
            north=north,
            east_sigma=self.east_sigma,
            north_sigma=self.north_sigma,
            up=up,
            up_sigma=self.up_sigma,
            names=self.names,
            name=self.name if name is None else name,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Returns one row per station."""
        columns = {
            "x": self.coords[:, 0],
            "y": self.coords[:, 1],
            "z": self.coords[:, 2],
            "east": self.east,
            "north": self.north,
        }
        if self.up is not None:
            columns["up"] = self.up
        columns["east_sigma"] = self.east_sigma
        columns["north_sigma"] = self.north_sigma
        if self.up_sigma is not None:
            columns["up_sigma"] = self.up_sigma
        df = pd.DataFrame(columns)
        if self.names is not None:
            df.insert(0, "name", self.names)
        return df

    def __len__(self) -> int:
        """Returns the number of stations (N)."""
        return self.coords.shape[0]
