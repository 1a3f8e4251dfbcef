"""Defines global constants shared across the package."""

# Cell pre-classification types (set upstream by the topo-clustering step)
SEED_CELL = 1  # Cell above the seed threshold, local maximum candidate
NEIGH_CELL = 2  # Cell above the neighbour threshold
LAST_CELL = 3  # Cell above the last threshold
LEFT_CELL = 4  # Cell left over after sub-cluster building

# Cluster types assigned by the cluster splitting procedure
UNSPLIT_CLUST = 1  # Cluster returned unchanged
SPLIT_CLUST = 2  # Sub-cluster grown from one confirmed seed
LEFT_CLUST = 3  # Cluster of cells no sub-cluster could reach

# Small number subtracted from edges to avoid spurious boundary bins
TOWER_EPS = 1e-4

# Default tower size in both angular coordinates
TOWER_SIZE = 0.01

# Name of the bit field which encodes the radial layer of a cell
LAYER_FIELD = "layer"

# Name of the bit field which encodes the calorimeter system of a cell
SYSTEM_FIELD = "system"

# Minimum number of supporting neighbours for a seed to start a sub-cluster
MIN_SPLIT_NEIGHBOURS = 5

# Maximum number of growth rounds when building sub-clusters
MAX_SPLIT_ITERATIONS = 1000
