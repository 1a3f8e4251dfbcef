"""Top-level module of the calorimeter reconstruction source code."""

from .version import __version__

# Import commonly used data structures
from .data import CaloCluster, CaloHit

# Import the geometry entry points
from .geo import GeoManager, Geometry, geo_factory

# Import the reconstruction tools
from .reco import CaloTowerTool, ClusterSplitter, LayeredCaloTowerTool
