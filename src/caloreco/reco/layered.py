"""Tower tool restricted to a range of layers of a single readout."""

from typing import List, Optional, Sequence

from caloreco.config.errors import GeometryError, SegmentationError
from caloreco.data import CaloCluster, CaloHit
from caloreco.geo import Geometry
from caloreco.utils.enums import SegmentationType
from caloreco.utils.globals import LAYER_FIELD, TOWER_SIZE
from caloreco.utils.logger import logger

from .tower import LayerRange, Partition, TowerToolBase

__all__ = ["LayeredCaloTowerTool"]


class LayeredCaloTowerTool(TowerToolBase):
    """Builds towers from the cells of one readout within a layer range.

    Unlike :class:`CaloTowerTool`, the readout is required: a missing
    readout or a readout which is not segmented in eta and phi is fatal.
    Cells are attached to clusters by scanning the last cell collection
    used to build the towers, rather than through a tower-to-cells map.

    .. code-block:: yaml

        tower_tool:
          name: layered_towers
          readout: ECalBarrelPhiEta
          minimum_layer: 0
          maximum_layer: 3
    """

    name = "layered_towers"

    def __init__(
        self,
        readout: str,
        minimum_layer: int = 0,
        maximum_layer: int = 130,
        add_layer_restriction: bool = True,
        layer_field: str = LAYER_FIELD,
        delta_eta_tower: float = TOWER_SIZE,
        delta_phi_tower: float = TOWER_SIZE,
        radius_for_position: float = 1.0,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the readout and its layer restriction.

        Parameters
        ----------
        readout : str
            Name of the readout
        minimum_layer : int, default 0
            Lowest layer allowed to contribute to the towers
        maximum_layer : int, default 130
            Highest layer allowed to contribute to the towers
        add_layer_restriction : bool, default True
            Whether to apply the layer restriction at all
        layer_field : str, default 'layer'
            Name of the bit field which stores the layer index
        delta_eta_tower : float, default 0.01
            Size of a tower in eta
        delta_phi_tower : float, default 0.01
            Size of a tower in phi
        radius_for_position : float, default 1.
            Radius used to compute cluster positions from eta and phi (mm)
        geometry : Geometry, optional
            Geometry to fetch the readout from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        super().__init__(
            delta_eta_tower, delta_phi_tower, radius_for_position, geometry
        )

        if not self.geometry.has_readout(readout):
            raise GeometryError(f"Readout `{readout}` does not exist.")

        segmentation, seg_type = self.retrieve_segmentation(readout)
        if seg_type != SegmentationType.PHI_ETA:
            raise SegmentationError(
                f"There is no phi-eta segmentation for readout `{readout}`."
            )

        self.partition = Partition(
            readout, readout, segmentation, seg_type, self.geometry.decoder(readout)
        )
        if add_layer_restriction:
            if not self.partition.decoder.has_field(layer_field):
                logger.error(f"Readout does not contain field: `{layer_field}`")
            else:
                self.partition.layers = LayerRange(
                    minimum_layer, maximum_layer, layer_field
                )

        logger.info(f"Minimum layer: {minimum_layer}")
        logger.info(f"Maximum layer: {maximum_layer}")

        self._cells = []

    @property
    def segmentation(self):
        """Phi-eta segmentation of the readout."""
        return self.partition.segmentation

    @property
    def add_layer_restriction(self) -> bool:
        """Whether the layer restriction is applied."""
        return self.partition.layers is not None

    def towers_number(self):
        """Computes the number of towers from the extent of the readout.

        Returns
        -------
        int
            Number of towers in eta
        int
            Number of towers in phi
        """
        phi_max, eta_max = self.segmentation.extrema()

        return self.set_grid(phi_max, eta_max)

    def build_towers(
        self, cells: Sequence[CaloHit], fill_towers_cells: bool = True
    ) -> int:
        """Builds the calorimeter towers of one event.

        Parameters
        ----------
        cells : Sequence[CaloHit]
            Cells of the readout
        fill_towers_cells : bool, default True
            Whether to record which cells contributed to which tower

        Returns
        -------
        int
            Number of input cells (before the layer restriction)
        """
        self.reset()
        self._cells = list(cells)
        logger.debug(f"Input cell collection size: {len(self._cells)}")
        self.cells_into_towers(self._cells, self.partition, fill_towers_cells)

        return len(self._cells)

    def attach_cells(
        self,
        eta: float,
        phi: float,
        half_eta: int,
        half_phi: int,
        cluster: CaloCluster,
        cluster_cells: Optional[List[CaloHit]] = None,
        ellipse: bool = False,
    ) -> List[CaloHit]:
        """Attaches the cells whose own tower falls in a rectangular window.

        Every cell of the last collection used to build the towers is
        considered, regardless of the layer restriction. The window is
        always rectangular, the distance in phi accounts for the cyclic
        phi axis.

        Parameters
        ----------
        eta : float
            Position of the middle tower of the cluster in eta
        phi : float
            Position of the middle tower of the cluster in phi
        half_eta : int
            Half-size of the cluster in eta (in number of towers)
        half_phi : int
            Half-size of the cluster in phi (in number of towers)
        cluster : CaloCluster
            Cluster to which the cells are attached
        cluster_cells : List[CaloHit], optional
            Output cell collection to which the attached cells are appended
        ellipse : bool, default False
            Ignored, the window of this tool is always rectangular

        Returns
        -------
        List[CaloHit]
            Cells attached to the cluster
        """
        eta_id, phi_id = self.id_eta(eta), self.id_phi(phi)
        attached = []
        for cell in self._cells:
            d_eta = abs(self.id_eta(self.segmentation.eta(cell.cell_id)) - eta_id)
            d_phi = abs(self.id_phi(self.segmentation.phi(cell.cell_id)) - phi_id)
            d_phi = min(d_phi, self.n_phi_tower - d_phi)
            if d_eta <= half_eta and d_phi <= half_phi:
                clone = cell.clone()
                if cluster_cells is not None:
                    cluster_cells.append(clone)
                cluster.add_hit(clone)
                attached.append(clone)

        return attached
