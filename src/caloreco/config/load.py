"""Main configuration loading functions.

This module provides the entry points used to load tool and geometry
configurations:
- load_config(): Load from a YAML string
- load_config_file(): Load from a file path

A configuration may pull in other files through a top-level `include` key
(a path or a list of paths, relative to the including file). Included
files are merged in order and the including file is merged on top.
"""

import os
from copy import deepcopy
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigCycleError, ConfigIncludeError

__all__ = ["load_config", "load_config_file", "deep_merge"]

INCLUDE_KEY = "include"


def deep_merge(
    base_dict: Dict[str, Any], override_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Recursively merge override_dict into base_dict.

    Parameters
    ----------
    base_dict : Dict[str, Any]
        Base dictionary
    override_dict : Dict[str, Any]
        Override dictionary

    Returns
    -------
    Dict[str, Any]
        Merged dictionary (new copy)
    """
    result = deepcopy(base_dict)
    for key, value in override_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _load_recursive(
    cfg_path: Optional[str] = None,
    config_string: Optional[str] = None,
    root_dir: Optional[str] = None,
    include_stack: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Recursively load a configuration with cycle detection.

    Parameters
    ----------
    cfg_path : str, optional
        Path to configuration file (mutually exclusive with config_string)
    config_string : str, optional
        YAML configuration string (mutually exclusive with cfg_path)
    root_dir : str, optional
        Root directory used to resolve relative include paths
    include_stack : List[str], optional
        Stack of currently-loading files (for cycle detection)

    Returns
    -------
    Dict[str, Any]
        Fully resolved configuration dictionary
    """
    if (cfg_path is None) == (config_string is None):
        raise ValueError("Must provide exactly one of cfg_path or config_string")

    # Determine the identifier for cycle detection and the root directory
    if cfg_path is not None:
        cfg_path = os.path.abspath(cfg_path)
        identifier = cfg_path
        root_dir = root_dir or os.path.dirname(cfg_path)
    else:
        identifier = "<string>"
        root_dir = root_dir or os.getcwd()

    include_stack = include_stack or []
    if identifier in include_stack:
        raise ConfigCycleError(include_stack + [identifier])
    include_stack = include_stack + [identifier]

    # Load YAML
    try:
        if cfg_path is not None:
            with open(cfg_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        else:
            config = yaml.safe_load(config_string)
    except FileNotFoundError as exc:
        raise ConfigIncludeError(f"Configuration file not found: {cfg_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigIncludeError(f"Error loading {identifier}: {exc}") from exc

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigIncludeError(
            f"Configuration {identifier} must be a mapping, got {type(config)}."
        )

    # Resolve the included files, in order
    includes = config.pop(INCLUDE_KEY, [])
    if isinstance(includes, str):
        includes = [includes]

    merged = {}
    for include in includes:
        path = include
        if not os.path.isabs(path):
            path = os.path.join(root_dir, path)
        if not os.path.isfile(path):
            raise ConfigIncludeError(
                f"Included file not found: {include} (from {identifier})"
            )
        included = _load_recursive(cfg_path=path, include_stack=include_stack)
        merged = deep_merge(merged, included)

    return deep_merge(merged, config)


def load_config(config_string: str, root_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load a configuration from a YAML string.

    Parameters
    ----------
    config_string : str
        YAML configuration string
    root_dir : str, optional
        Directory used to resolve relative include paths

    Returns
    -------
    Dict[str, Any]
        Configuration dictionary
    """
    return _load_recursive(config_string=config_string, root_dir=root_dir)


def load_config_file(cfg_path: str) -> Dict[str, Any]:
    """Load a configuration from a YAML file.

    Parameters
    ----------
    cfg_path : str
        Path to the configuration file

    Returns
    -------
    Dict[str, Any]
        Configuration dictionary
    """
    return _load_recursive(cfg_path=cfg_path)
