"""Tools which return the 3D position of the center of a calorimeter cell.

- :class:`PhiEtaCellPositions` places a cell of an eta-phi readout at the
  transverse radius of its layer
- :class:`CellPositions` dispatches to one such tool per calorimeter
  system, decoded from the cell ID, and caches the result
"""

from typing import Any, Dict, Optional, Union

import numpy as np

from caloreco.config.errors import GeometryError
from caloreco.math.distance import to_cartesian
from caloreco.utils.factory import instantiate
from caloreco.utils.globals import LAYER_FIELD, SYSTEM_FIELD
from caloreco.utils.logger import logger

from .base import Geometry
from .manager import GeoManager
from .segmentation import MultiSegmentation, PhiEtaSegmentation

__all__ = ["PhiEtaCellPositions", "CellPositions", "positions_factory"]


class PhiEtaCellPositions:
    """Positions of the cells of a readout segmented in eta and phi.

    Attributes
    ----------
    segmentation : Union[PhiEtaSegmentation, MultiSegmentation]
        Segmentation of the readout
    decoder : BitFieldCoder
        Decoder of the cell IDs of the readout
    layer_radii : np.ndarray, optional
        (N_layer) Transverse radius of the center of each layer
    radius : float, optional
        Transverse radius used for all cells if no layer radii are known
    """

    name = "phi_eta"

    def __init__(
        self,
        readout: str,
        radius: Optional[float] = None,
        layer_field: str = LAYER_FIELD,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the position tool.

        Parameters
        ----------
        readout : str
            Name of the readout the cells belong to
        radius : float, optional
            Transverse radius used for all cells. If not specified, the
            readout must provide per-layer radii
        layer_field : str, default 'layer'
            Bit field which stores the layer index
        geometry : Geometry, optional
            Geometry to fetch the readout from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        geometry = geometry or GeoManager.get_instance()
        readout = geometry.readout(readout)
        self.segmentation = readout.segmentation
        self.decoder = readout.decoder
        self.layer_field = layer_field
        self.layer_radii = readout.layer_radii
        self.radius = radius

        if not isinstance(self.segmentation, (PhiEtaSegmentation, MultiSegmentation)):
            raise GeometryError(
                f"Readout `{readout.name}` does not have an eta-phi segmentation."
            )
        if self.radius is None:
            if self.layer_radii is None or not self.decoder.has_field(layer_field):
                raise GeometryError(
                    f"Readout `{readout.name}` needs either a fixed radius or "
                    f"per-layer radii and a `{layer_field}` bit field."
                )

    def cell_radius(self, cell_id: int) -> float:
        """Transverse radius of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        float
            Transverse radius of the cell center
        """
        if self.radius is not None:
            return self.radius

        layer = self.decoder.get(cell_id, self.layer_field)
        if layer < 0 or layer >= len(self.layer_radii):
            raise GeometryError(f"No radius known for layer {layer}.")

        return float(self.layer_radii[layer])

    def xyz(self, cell_id: int) -> np.ndarray:
        """Cartesian position of the center of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        np.ndarray
            (3) Cell center coordinates
        """
        segmentation = self.segmentation
        if isinstance(segmentation, MultiSegmentation):
            segmentation = segmentation.subsegmentation(cell_id)

        return to_cartesian(
            self.cell_radius(cell_id),
            segmentation.eta(cell_id),
            segmentation.phi(cell_id),
        )


class CellPositions:
    """Positions of cells which may belong to several calorimeter systems.

    Attributes
    ----------
    decoder : BitFieldCoder
        Decoder used to extract the system of a cell
    tools : Dict[int, PhiEtaCellPositions]
        Position tool of each system
    """

    name = "system"

    def __init__(
        self,
        readout: str,
        systems: Dict[int, Union[Dict[str, Any], PhiEtaCellPositions]],
        system_field: str = SYSTEM_FIELD,
        cache: bool = True,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the per-system position tools.

        Parameters
        ----------
        readout : str
            Readout whose decoder is used to extract the system field
        systems : Dict[int, Union[dict, PhiEtaCellPositions]]
            Position tool (or its configuration) of each system
        system_field : str, default 'system'
            Name of the bit field which stores the system
        cache : bool, default True
            Whether to cache the position of each cell ID
        geometry : Geometry, optional
            Geometry to fetch the readouts from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        geometry = geometry or GeoManager.get_instance()
        self.decoder = geometry.decoder(readout)
        self.system_field = system_field
        if not self.decoder.has_field(system_field):
            raise GeometryError(
                f"Readout `{readout}` has no `{system_field}` bit field."
            )

        tool_dict = {PhiEtaCellPositions.name: PhiEtaCellPositions}
        self.tools = {}
        for system, tool in systems.items():
            if isinstance(tool, dict):
                tool = instantiate(tool_dict, tool, geometry=geometry)
            self.tools[int(system)] = tool

        self.cache = {} if cache else None

    def system(self, cell_id: int) -> int:
        """Calorimeter system of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        int
            System identifier
        """
        return self.decoder.get(cell_id, self.system_field)

    def xyz(self, cell_id: int) -> np.ndarray:
        """Cartesian position of the center of a cell.

        Cells from a system without a position tool are placed at the origin.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        np.ndarray
            (3) Cell center coordinates
        """
        if self.cache is not None and cell_id in self.cache:
            return self.cache[cell_id]

        system = self.system(cell_id)
        if system in self.tools:
            pos = self.tools[system].xyz(cell_id)
        else:
            logger.warning(f"No cell positions tool found for system id {system}.")
            pos = np.zeros(3, dtype=np.float64)

        if self.cache is not None:
            self.cache[cell_id] = pos

        return pos


def positions_factory(cfg, **kwargs):
    """Instantiates a cell position tool from a configuration block.

    Parameters
    ----------
    cfg : dict
        Position tool configuration, with its type under `name`
    **kwargs : dict, optional
        Additional parameters to pass to the tool

    Returns
    -------
    Union[PhiEtaCellPositions, CellPositions]
        Initialized position tool
    """
    tools = {cls.name: cls for cls in (PhiEtaCellPositions, CellPositions)}

    return instantiate(tools, cfg, **kwargs)
