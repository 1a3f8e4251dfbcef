"""Calorimeter geometry: cell ID decoding, segmentations and lookup tools.

- `BitFieldCoder` decodes bit-packed cell IDs
- `PhiEtaSegmentation`, `MultiSegmentation` and `CartesianXYSegmentation`
  map cell IDs onto positions
- `Geometry` holds the readouts of a detector, `GeoManager` holds the
  geometry used by the reconstruction tools
- `GridNeighbours`/`MapNeighbours` and `PhiEtaCellPositions`/`CellPositions`
  provide neighbour and position lookups
"""

from .base import Geometry, Readout
from .bitfield import BitField, BitFieldCoder
from .factories import geo_factory, geo_from_file
from .manager import GeoManager
from .neighbours import GridNeighbours, MapNeighbours, neighbours_factory
from .positions import CellPositions, PhiEtaCellPositions, positions_factory
from .segmentation import (
    CartesianXYSegmentation,
    MultiSegmentation,
    PhiEtaSegmentation,
    segmentation_factory,
)
