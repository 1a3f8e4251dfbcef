"""Module with fast, Numba-accelerated, compiled math routines.

This includes multiple submodules:
- `tower.py` includes tower-grid indexing and fractional area apportionment
- `distance.py` includes angular coordinates and distances between vectors
"""

# Expose submodules
from . import distance, tower
