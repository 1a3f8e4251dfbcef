"""Calorimeter reconstruction tools.

- `CaloTowerTool` and `LayeredCaloTowerTool` re-bin cells into towers and
  attach the cells of a tower window to a cluster
- `ClusterSplitter` splits clusters around their local energy maxima
"""

from .factories import splitter_factory, tower_tool_factory
from .layered import LayeredCaloTowerTool
from .split import ClusterSplitter, SplitResult
from .tower import CaloTowerTool
