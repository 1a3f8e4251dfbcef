"""Module with a general-purpose calorimeter geometry class.

This class supports the storage of:
- Readouts, each with a cell ID layout and a segmentation
- Per-layer radii used to turn angular cell positions into 3D points
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from caloreco.config.errors import GeometryError

from .bitfield import BitFieldCoder
from .segmentation import SegmentationBase, segmentation_factory

__all__ = ["Readout", "Geometry"]


@dataclass
class Readout:
    """Readout of one calorimeter partition.

    Attributes
    ----------
    name : str
        Name of the readout
    decoder : BitFieldCoder
        Decoder of the cell IDs of the readout
    segmentation : SegmentationBase
        Segmentation which maps cell IDs onto positions
    system : int, optional
        Value of the `system` bit field shared by all cells of the readout
    layer_radii : np.ndarray, optional
        (N_layer) Transverse radius of the center of each layer
    """

    name: str
    decoder: BitFieldCoder
    segmentation: SegmentationBase
    system: Optional[int] = None
    layer_radii: Optional[np.ndarray] = None

    @classmethod
    def from_config(
        cls,
        name: str,
        id_spec: str,
        segmentation: Dict[str, Any],
        system: Optional[int] = None,
        layer_radii: Optional[List[float]] = None,
    ) -> "Readout":
        """Builds a readout from its configuration block.

        Parameters
        ----------
        name : str
            Name of the readout
        id_spec : str
            Bit field descriptor of the cell IDs
        segmentation : dict
            Segmentation configuration
        system : int, optional
            Value of the `system` bit field shared by all cells
        layer_radii : List[float], optional
            Transverse radius of the center of each layer

        Returns
        -------
        Readout
            Initialized readout
        """
        decoder = BitFieldCoder(id_spec)
        if layer_radii is not None:
            layer_radii = np.asarray(layer_radii, dtype=np.float64)

        return cls(
            name=name,
            decoder=decoder,
            segmentation=segmentation_factory(segmentation, decoder),
            system=system,
            layer_radii=layer_radii,
        )


@dataclass
class Geometry:
    """Handles the readouts of a set of calorimeter partitions.

    Attributes
    ----------
    name : str
        Name of the detector
    tag : str
        Tag or label for the geometry instance
    version : str
        Version number of the geometry
    readouts : Dict[str, Readout]
        Readouts, by name
    """

    name: str
    tag: str
    version: str
    readouts: Dict[str, Readout]

    def __init__(
        self,
        name: str,
        tag: str,
        version: str,
        readouts: Dict[str, Dict[str, Any]],
    ):
        """Initialize the detector geometry.

        Parameters
        ----------
        name : str
            Name of the detector
        tag : str
            Tag or label for the geometry instance
        version : str
            Version number of the geometry
        readouts : Dict[str, dict]
            Configuration of each readout, by name
        """
        self.name = name
        self.tag = tag
        self.version = str(version)
        self.readouts = {}
        for readout_name, cfg in readouts.items():
            self.readouts[readout_name] = Readout.from_config(readout_name, **cfg)

    @property
    def readout_names(self) -> List[str]:
        """Names of the readouts known to the geometry."""
        return list(self.readouts.keys())

    def has_readout(self, name: str) -> bool:
        """Checks whether a readout is registered.

        Parameters
        ----------
        name : str
            Name of the readout

        Returns
        -------
        bool
            `True` if the readout exists
        """
        return name in self.readouts

    def readout(self, name: str) -> Readout:
        """Fetches a readout by name.

        Parameters
        ----------
        name : str
            Name of the readout

        Returns
        -------
        Readout
            Readout object
        """
        if name not in self.readouts:
            raise GeometryError(
                f"Readout `{name}` not found in geometry `{self.name}`. "
                f"Available readouts: {self.readout_names}"
            )

        return self.readouts[name]

    def segmentation(self, name: str) -> SegmentationBase:
        """Fetches the segmentation of a readout.

        Parameters
        ----------
        name : str
            Name of the readout

        Returns
        -------
        SegmentationBase
            Segmentation of the readout
        """
        return self.readout(name).segmentation

    def decoder(self, name: str) -> BitFieldCoder:
        """Fetches the cell ID decoder of a readout.

        Parameters
        ----------
        name : str
            Name of the readout

        Returns
        -------
        BitFieldCoder
            Decoder of the readout cell IDs
        """
        return self.readout(name).decoder
