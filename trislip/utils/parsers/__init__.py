from .station_parser import StationParser
from .mesh_parser import MeshParser
