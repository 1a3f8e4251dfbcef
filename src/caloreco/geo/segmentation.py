"""Readout segmentations which map cell IDs onto positions.

This currently handles:
- :class:`PhiEtaSegmentation`, a uniform grid in pseudorapidity and azimuth
- :class:`MultiSegmentation`, a set of sub-segmentations selected by the
  value of one bit field (typically the layer)
- :class:`CartesianXYSegmentation`, a uniform grid in x and y
"""

from typing import Any, Dict, List, Tuple

import numpy as np

from caloreco.config.errors import GeometryError, SegmentationError
from caloreco.utils.factory import instantiate
from caloreco.utils.globals import LAYER_FIELD

from .bitfield import BitFieldCoder

__all__ = [
    "PhiEtaSegmentation",
    "MultiSegmentation",
    "CartesianXYSegmentation",
    "segmentation_factory",
]


class SegmentationBase:
    """Parent class of all segmentations.

    Attributes
    ----------
    decoder : BitFieldCoder
        Decoder of the cell IDs of the readout
    """

    # Name of the segmentation (as specified in the configuration)
    name = ""

    # Bit fields which must be present in the readout ID specification
    _required_fields = ()

    def __init__(self, decoder: BitFieldCoder):
        """Stores the decoder and checks that it has the required fields.

        Parameters
        ----------
        decoder : BitFieldCoder
            Decoder of the cell IDs of the readout
        """
        self.decoder = decoder
        for field in self.required_fields:
            if not decoder.has_field(field):
                raise GeometryError(
                    f"The `{self.name}` segmentation requires a `{field}` bit "
                    f"field, not found in `{decoder.descriptor}`."
                )

    @property
    def required_fields(self) -> Tuple[str, ...]:
        """Bit fields the segmentation needs to decode positions."""
        return self._required_fields


class PhiEtaSegmentation(SegmentationBase):
    """Uniform segmentation in pseudorapidity and azimuthal angle.

    The center of a cell with eta index `i` sits at
    `i * grid_size_eta + offset_eta`, the center of a cell with phi index `j`
    sits at `j * 2 * pi / phi_bins + offset_phi`.

    Attributes
    ----------
    grid_size_eta : float
        Cell size in pseudorapidity
    phi_bins : int
        Number of cells in azimuth
    offset_eta : float
        Pseudorapidity of the center of the cell with index 0
    offset_phi : float
        Azimuth of the center of the cell with index 0
    """

    name = "phi_eta"

    def __init__(
        self,
        decoder: BitFieldCoder,
        grid_size_eta: float,
        phi_bins: int,
        offset_eta: float = 0.0,
        offset_phi: float = 0.0,
        eta_field: str = "eta",
        phi_field: str = "phi",
    ):
        """Initialize the segmentation parameters.

        Parameters
        ----------
        decoder : BitFieldCoder
            Decoder of the cell IDs of the readout
        grid_size_eta : float
            Cell size in pseudorapidity
        phi_bins : int
            Number of cells in azimuth
        offset_eta : float, default 0.
            Pseudorapidity of the center of the cell with index 0
        offset_phi : float, default 0.
            Azimuth of the center of the cell with index 0
        eta_field : str, default 'eta'
            Name of the bit field which stores the eta index
        phi_field : str, default 'phi'
            Name of the bit field which stores the phi index
        """
        self.eta_field = eta_field
        self.phi_field = phi_field
        super().__init__(decoder)

        if grid_size_eta <= 0.0 or phi_bins < 1:
            raise SegmentationError(
                "The eta grid size must be positive and the number of phi "
                f"bins at least 1, got {grid_size_eta} and {phi_bins}."
            )

        self.grid_size_eta = float(grid_size_eta)
        self.phi_bins = int(phi_bins)
        self.offset_eta = float(offset_eta)
        self.offset_phi = float(offset_phi)

    @property
    def required_fields(self):
        """Bit fields the segmentation needs to decode positions."""
        return (self.eta_field, self.phi_field)

    @property
    def grid_size_phi(self) -> float:
        """Cell size in azimuth."""
        return 2 * np.pi / self.phi_bins

    def eta(self, cell_id: int) -> float:
        """Pseudorapidity of the center of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        float
            Cell center pseudorapidity
        """
        index = self.decoder.get(cell_id, self.eta_field)
        return index * self.grid_size_eta + self.offset_eta

    def phi(self, cell_id: int) -> float:
        """Azimuth of the center of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        float
            Cell center azimuth
        """
        index = self.decoder.get(cell_id, self.phi_field)
        return index * self.grid_size_phi + self.offset_phi

    def cell_dimensions(self, cell_id: int) -> Tuple[float, float, float, float]:
        """Center and half-width of a cell along both angular coordinates.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        float
            Cell center pseudorapidity
        float
            Cell center azimuth
        float
            Half-width of the cell in pseudorapidity
        float
            Half-width of the cell in azimuth
        """
        return (
            self.eta(cell_id),
            self.phi(cell_id),
            0.5 * self.grid_size_eta,
            np.pi / self.phi_bins,
        )

    def extrema(self) -> Tuple[float, float]:
        """Maximum absolute extent of the segmentation in phi and eta.

        Returns
        -------
        float
            Largest absolute azimuth reached by a cell edge
        float
            Largest absolute pseudorapidity reached by a cell edge
        """
        phi_max = abs(self.offset_phi) + np.pi / self.phi_bins
        eta_max = abs(self.offset_eta) + 0.5 * self.grid_size_eta

        return phi_max, eta_max

    def cell_id(self, eta: float, phi: float, **fields: int) -> int:
        """Builds the ID of the cell which contains an (eta, phi) point.

        Parameters
        ----------
        eta : float
            Pseudorapidity of the point
        phi : float
            Azimuth of the point
        **fields : int
            Values of the other bit fields (system, layer, etc.)

        Returns
        -------
        int
            Bit-packed cell ID
        """
        i_eta = int(np.floor((eta - self.offset_eta) / self.grid_size_eta + 0.5))
        i_phi = int(np.floor((phi - self.offset_phi) / self.grid_size_phi + 0.5))
        i_phi %= self.phi_bins
        fields = dict(fields, **{self.eta_field: i_eta, self.phi_field: i_phi})

        return self.decoder.encode(**fields)


class CartesianXYSegmentation(SegmentationBase):
    """Uniform segmentation in x and y.

    Attributes
    ----------
    grid_size_x : float
        Cell size along x
    grid_size_y : float
        Cell size along y
    offset_x : float
        Position of the center of the cell with x index 0
    offset_y : float
        Position of the center of the cell with y index 0
    """

    name = "cartesian_xy"

    _required_fields = ("x", "y")

    def __init__(
        self,
        decoder: BitFieldCoder,
        grid_size_x: float,
        grid_size_y: float,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
    ):
        """Initialize the segmentation parameters.

        Parameters
        ----------
        decoder : BitFieldCoder
            Decoder of the cell IDs of the readout
        grid_size_x : float
            Cell size along x
        grid_size_y : float
            Cell size along y
        offset_x : float, default 0.
            Position of the center of the cell with x index 0
        offset_y : float, default 0.
            Position of the center of the cell with y index 0
        """
        super().__init__(decoder)
        self.grid_size_x = float(grid_size_x)
        self.grid_size_y = float(grid_size_y)
        self.offset_x = float(offset_x)
        self.offset_y = float(offset_y)

    def position(self, cell_id: int) -> np.ndarray:
        """Local (x, y) position of the center of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        np.ndarray
            (2) Cell center coordinates
        """
        x = self.decoder.get(cell_id, "x") * self.grid_size_x + self.offset_x
        y = self.decoder.get(cell_id, "y") * self.grid_size_y + self.offset_y

        return np.array([x, y])


class MultiSegmentation(SegmentationBase):
    """Segmentation which delegates to one of several sub-segmentations.

    The sub-segmentation used for a cell is picked according to the value
    of one bit field of its ID, each sub-segmentation covering an inclusive
    range of values.

    Attributes
    ----------
    key : str
        Name of the bit field used to pick the sub-segmentation
    sub_segmentations : List[Tuple[int, int, SegmentationBase]]
        List of (key_min, key_max, segmentation) entries
    """

    name = "multi"

    def __init__(
        self,
        decoder: BitFieldCoder,
        segmentations: List[Dict[str, Any]],
        key: str = LAYER_FIELD,
    ):
        """Initialize the sub-segmentations.

        Parameters
        ----------
        decoder : BitFieldCoder
            Decoder of the cell IDs of the readout
        segmentations : List[dict]
            List of sub-segmentation blocks, each with a `key_min`, a
            `key_max` and a `segmentation` configuration
        key : str, default 'layer'
            Name of the bit field used to pick the sub-segmentation
        """
        self.key = key
        super().__init__(decoder)

        if len(segmentations) == 0:
            raise SegmentationError("A multi-segmentation needs at least one entry.")

        self.sub_segmentations = []
        for cfg in segmentations:
            key_min, key_max = int(cfg["key_min"]), int(cfg["key_max"])
            if key_min > key_max:
                raise SegmentationError(
                    f"Sub-segmentation range [{key_min}, {key_max}] is empty."
                )
            segmentation = segmentation_factory(cfg["segmentation"], decoder)
            self.sub_segmentations.append((key_min, key_max, segmentation))

    @property
    def required_fields(self):
        """Bit fields the segmentation needs to decode positions."""
        return (self.key,)

    @property
    def segmentations(self) -> List[SegmentationBase]:
        """Ordered list of sub-segmentations."""
        return [seg for _, _, seg in self.sub_segmentations]

    def subsegmentation(self, cell_id: int) -> SegmentationBase:
        """Sub-segmentation in charge of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        SegmentationBase
            Sub-segmentation which covers the cell
        """
        value = self.decoder.get(cell_id, self.key)
        for key_min, key_max, segmentation in self.sub_segmentations:
            if key_min <= value <= key_max:
                return segmentation

        raise GeometryError(
            f"No sub-segmentation covers `{self.key}` = {value} (cell {cell_id})."
        )

    def cell_dimensions(self, cell_id: int) -> Tuple[float, float, float, float]:
        """Center and half-width of a cell, from its sub-segmentation.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        Tuple[float, float, float, float]
            Cell center eta and phi, half-widths in eta and phi
        """
        return self.subsegmentation(cell_id).cell_dimensions(cell_id)

    def extrema(self) -> Tuple[float, float]:
        """Largest extent in phi and eta over all sub-segmentations.

        Returns
        -------
        float
            Largest absolute azimuth reached by a cell edge
        float
            Largest absolute pseudorapidity reached by a cell edge
        """
        phi_max, eta_max = -1.0, -1.0
        for segmentation in self.segmentations:
            phi, eta = segmentation.extrema()
            phi_max = max(phi_max, phi)
            eta_max = max(eta_max, eta)

        return phi_max, eta_max


def segmentation_factory(
    cfg: Dict[str, Any], decoder: BitFieldCoder
) -> SegmentationBase:
    """Instantiates a segmentation from a configuration block.

    Parameters
    ----------
    cfg : dict
        Segmentation configuration, with its type under `name`
    decoder : BitFieldCoder
        Decoder of the cell IDs of the readout

    Returns
    -------
    SegmentationBase
        Initialized segmentation
    """
    seg_dict = {
        cls.name: cls
        for cls in (PhiEtaSegmentation, MultiSegmentation, CartesianXYSegmentation)
    }
    try:
        return instantiate(seg_dict, cfg, decoder=decoder)
    except ValueError as err:
        raise SegmentationError(str(err)) from err
