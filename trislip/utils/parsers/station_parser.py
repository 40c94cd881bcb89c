import pandas as pd
import numpy as np
from pyproj import CRS, Transformer
from typing import Union, Optional, Tuple
from pathlib import Path

from trislip.core.data import StationSet

# Column layout of the whitespace-delimited .sta.data station files
STA_DATA_COLUMNS = [
    'lon', 'lat', 'east_vel', 'north_vel', 'east_sig', 'north_sig',
    'corr', 'other1', 'tog', 'name',
]


def project_to_local(
    lons: np.ndarray, lats: np.ndarray, origin_lon: float, origin_lat: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Projects WGS84 longitudes and latitudes to local UTM kilometres about an origin.
    """
    utm_zone = int((origin_lon + 180) / 6) + 1
    hemisphere = 'south' if origin_lat < 0 else 'north'

    source_crs = CRS.from_epsg(4326)
    target_crs = CRS.from_proj4(
        f"+proj=utm +zone={utm_zone} +{hemisphere} +datum=WGS84 +units=m +no_defs"
    )

    transformer = Transformer.from_crs(source_crs, target_crs, always_xy=True)

    # Transform points
    easting, northing = transformer.transform(lons, lats)
    # Transform Origin
    origin_e, origin_n = transformer.transform(origin_lon, origin_lat)

    local_x = (np.asarray(easting) - origin_e) * 1e-3
    local_y = (np.asarray(northing) - origin_n) * 1e-3
    return local_x, local_y


class StationParser:
    """
    Parser for station displacement/velocity tables.

    Handles reading CSV and .sta.data files and projecting station positions
    (WGS84 -> local UTM kilometres) into a StationSet.
    """

    @staticmethod
    def read_csv(
        filepath: Union[str, Path],
        origin_lon: float,
        origin_lat: float,
        name: str = "stations",
        column_mapping: Optional[dict] = None
    ) -> StationSet:
        """
        Reads a station CSV and converts it to a StationSet.

        Default CSV columns: (Station, Lat, Lon, E, N, U, SigE, SigN, SigU).
        The vertical columns are optional.

        Args:
            filepath: Path to the station CSV file.
            origin_lon: Longitude of the local coordinate system origin.
            origin_lat: Latitude of the local coordinate system origin.
            name: Identifier for the station set.
            column_mapping: Dictionary to map expected columns to CSV columns.

        Returns:
            StationSet: Populated station container with local coordinates.
        """
        df = pd.read_csv(filepath)

        # Default mapping
        mapping = {
            'Station': 'Station', 'Lat': 'Lat', 'Lon': 'Lon',
            'E': 'E', 'N': 'N', 'U': 'U',
            'SigE': 'SigE', 'SigN': 'SigN', 'SigU': 'SigU'
        }
        if column_mapping:
            mapping.update(column_mapping)

        for key in ('Lat', 'Lon', 'E', 'N', 'SigE', 'SigN'):
            if mapping[key] not in df.columns:
                raise ValueError(f"Missing required column '{mapping[key]}' in {filepath}")

        local_x, local_y = project_to_local(
            df[mapping['Lon']].values, df[mapping['Lat']].values, origin_lon, origin_lat
        )
        coords = np.column_stack((local_x, local_y, np.zeros_like(local_x)))

        def optional(key):
            column = mapping[key]
            return df[column].values if column in df.columns else None

        return StationSet(
            coords=coords,
            east=df[mapping['E']].values,
            north=df[mapping['N']].values,
            east_sigma=df[mapping['SigE']].values,
            north_sigma=df[mapping['SigN']].values,
            up=optional('U'),
            up_sigma=optional('SigU'),
            names=optional('Station'),
            name=name,
        )

    @staticmethod
    def read_sta_data(
        filepath: Union[str, Path],
        origin_lon: float,
        origin_lat: float,
        name: str = "stations",
    ) -> StationSet:
        """
        Reads a whitespace-delimited .sta.data file.

        Columns are lon, lat, east velocity, north velocity, east sigma,
        north sigma, correlation, other, toggle and station name. These files
        carry horizontal components only.
        """
        df = pd.read_csv(
            filepath, sep=r"\s+", header=None, names=STA_DATA_COLUMNS, comment='#'
        )
        local_x, local_y = project_to_local(
            df['lon'].values, df['lat'].values, origin_lon, origin_lat
        )
        coords = np.column_stack((local_x, local_y, np.zeros_like(local_x)))
        return StationSet(
            coords=coords,
            east=df['east_vel'].values,
            north=df['north_vel'].values,
            east_sigma=df['east_sig'].values,
            north_sigma=df['north_sig'].values,
            names=df['name'].astype(str).values,
            name=name,
        )

    @staticmethod
    def read(
        filepath: Union[str, Path],
        origin_lon: float,
        origin_lat: float,
        name: str = "stations",
    ) -> StationSet:
        """Dispatches on the file name: ``.sta.data``/``.data`` or CSV."""
        if str(filepath).endswith('.data'):
            return StationParser.read_sta_data(filepath, origin_lon, origin_lat, name=name)
        return StationParser.read_csv(filepath, origin_lon, origin_lat, name=name)
