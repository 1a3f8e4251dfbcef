"""Data structures used throughout the reconstruction.

- `CaloHit`: a single calorimeter cell (ID, energy, type)
- `CaloCluster`: a collection of cells with an energy and a position
"""

from .cluster import *
from .hit import *
