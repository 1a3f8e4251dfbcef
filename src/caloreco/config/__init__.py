"""Configuration loading system.

Main Entry Points
-----------------
load_config : Load a configuration from a YAML string
load_config_file : Load a configuration from a YAML file
"""

from .errors import (
    ConfigCycleError,
    ConfigError,
    ConfigIncludeError,
    GeometryError,
    NeighbourError,
    SegmentationError,
)
from .load import deep_merge, load_config, load_config_file

__all__ = [
    "load_config",
    "load_config_file",
    "deep_merge",
    "ConfigError",
    "ConfigIncludeError",
    "ConfigCycleError",
    "GeometryError",
    "SegmentationError",
    "NeighbourError",
]
