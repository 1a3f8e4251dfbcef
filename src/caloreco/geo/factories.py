"""Construct a geometry object from a detector name or a file."""

from pathlib import Path
from typing import Dict, Optional, Union

from caloreco.config.errors import GeometryError
from caloreco.config.load import load_config_file

from .base import Geometry

# Get config directory relative to this module
GEO_CONFIG_DIR = Path(__file__).parent / "config"

__all__ = ["geo_factory", "geo_from_file"]


def geo_dict() -> Dict[Path, Dict[str, str]]:
    """Builds a dictionary of available geometry files.

    Returns
    -------
    dict
        Dictionary which maps each geometry file onto its name, tag and version
    """
    options = {}
    for path in sorted(GEO_CONFIG_DIR.glob("*/*_geometry.yaml")):
        cfg = load_config_file(str(path))
        options[path] = {k: cfg[k] for k in ("name", "tag", "version")}
        options[path]["version"] = str(float(options[path]["version"]))

    return options


def geo_from_file(path: Union[str, Path]) -> Geometry:
    """Instantiates a geometry from a YAML file.

    Parameters
    ----------
    path : Union[str, Path]
        Path to the geometry configuration file

    Returns
    -------
    Geometry
        Initialized geometry object
    """
    cfg = load_config_file(str(path))

    return Geometry(**cfg)


def geo_factory(
    detector: str,
    tag: Optional[str] = None,
    version: Optional[Union[str, int, float]] = None,
) -> Geometry:
    """Instantiates a geometry from a detector name.

    Parameters
    ----------
    detector : str
        Name of the detector (e.g. "demo")
    tag : str, optional
        Geometry tag. If specified, must match exactly
    version : str, optional
        Geometry version. Matches the major version only if no minor
        version is provided

    Returns
    -------
    Geometry
         Initialized geometry object
    """
    # Find the geometry files which match the detector name
    options = {
        path: cfg
        for path, cfg in geo_dict().items()
        if cfg["name"].lower() == detector.lower()
    }
    if len(options) == 0:
        raise GeometryError(f"No geometry found for detector '{detector}'.")

    # If a tag is specified, must find the exact tag or throw
    if tag is not None:
        options = {p: c for p, c in options.items() if c["tag"] == tag}
        if len(options) == 0:
            raise GeometryError(
                f"No geometry found for detector '{detector}' with tag '{tag}'."
            )

    # If a version is specified, must match the major revision if it is the
    # only one specified or both if major and minor are specified
    if version is not None:
        parts = str(version).split(".")
        selected = {}
        for path, cfg in options.items():
            ver_parts = cfg["version"].split(".")
            if ver_parts[: len(parts)] == parts:
                selected[path] = cfg
        if len(selected) == 0:
            raise GeometryError(
                f"No geometry found for detector '{detector}' with version "
                f"'{version}'. Available versions are: "
                f"{set(c['version'] for c in options.values())}"
            )
        options = selected

    # Return the most recent version among the remaining options
    path = max(options, key=lambda p: float(options[p]["version"]))

    return geo_from_file(path)
