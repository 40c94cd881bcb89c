from . import parsers

# Re-export the readers for direct access
from .parsers import StationParser
from .parsers import MeshParser
