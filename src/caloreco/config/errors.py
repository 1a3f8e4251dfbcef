"""Typed exceptions for configuration and geometry errors.

Configuration-time problems (bad YAML, missing readouts, unsupported
segmentations) are fatal and raised as one of these exceptions. Problems
found while processing an event are raised as :class:`NeighbourError`,
which callers may catch to skip the offending object.
"""

from typing import List


class ConfigError(Exception):
    """Base exception for all configuration errors."""


class ConfigIncludeError(ConfigError):
    """Raised when an included file cannot be found or loaded."""


class ConfigCycleError(ConfigError):
    """Raised when a circular include dependency is detected."""

    def __init__(self, cycle_path: List[str]):
        """Initialize with the cycle path.

        Parameters
        ----------
        cycle_path : List[str]
            List of file paths showing the include cycle
        """
        self.cycle_path = cycle_path
        cycle_str = " -> ".join(cycle_path)
        super().__init__(f"Circular include detected: {cycle_str}")


class GeometryError(ConfigError):
    """Raised when a geometry, a readout or a bit field cannot be found."""


class SegmentationError(ConfigError):
    """Raised when a readout segmentation cannot be used to build towers."""


class NeighbourError(RuntimeError):
    """Raised when the neighbour lookup returns nothing for a cell."""

    def __init__(self, cell_id: int, system: int = -1):
        """Initialize with the offending cell.

        Parameters
        ----------
        cell_id : int
            Cell ID for which no neighbour was found
        system : int, default -1
            Calorimeter system the cell belongs to, if known
        """
        self.cell_id = cell_id
        self.system = system
        super().__init__(
            f"No neighbours found for cell ID {cell_id} (system {system})."
        )
