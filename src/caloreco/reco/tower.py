"""Tools which re-bin calorimeter cells into a uniform grid of towers.

A tower is a bin of a uniform grid in pseudorapidity (eta) and azimuth
(phi) which sums the transverse energy of all the cells it contains, over
all radial layers. Cells which are larger than a tower, or which do not
line up with the tower boundaries, share their transverse energy between
the towers they overlap in proportion of the overlapping area.

The tower grid spans `[-eta_max, eta_max]` and `[-phi_max, phi_max]`,
where the maxima are the largest angular extent reached by any of the
readouts used to fill it. The phi axis is cyclic: the first and the last
phi towers are neighbours.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from caloreco.config.errors import SegmentationError
from caloreco.data import CaloCluster, CaloHit
from caloreco.geo import GeoManager, Geometry, MultiSegmentation, PhiEtaSegmentation
from caloreco.geo.bitfield import BitFieldCoder
from caloreco.math.tower import (
    fill_towers,
    tower_bounds,
    tower_center,
    tower_index,
    wrap_index,
)
from caloreco.utils.enums import SegmentationType
from caloreco.utils.globals import LAYER_FIELD, TOWER_EPS, TOWER_SIZE
from caloreco.utils.logger import logger

__all__ = ["CaloTowerTool"]

# Segmentations which can be mapped onto a tower grid
SegmentationVariant = Union[PhiEtaSegmentation, MultiSegmentation]


@dataclass
class LayerRange:
    """Inclusive range of radial layers allowed to contribute to towers.

    Attributes
    ----------
    minimum : int, optional
        Lowest layer allowed (no lower bound if not specified)
    maximum : int, optional
        Highest layer allowed (no upper bound if not specified)
    field : str
        Name of the bit field which stores the layer index
    """

    minimum: Optional[int] = None
    maximum: Optional[int] = None
    field: str = LAYER_FIELD

    def contains(self, layer: int) -> bool:
        """Checks whether a layer falls within the range.

        Parameters
        ----------
        layer : int
            Layer index

        Returns
        -------
        bool
            `True` if the layer is allowed
        """
        if self.minimum is not None and layer < self.minimum:
            return False
        if self.maximum is not None and layer > self.maximum:
            return False

        return True


@dataclass
class Partition:
    """Calorimeter partition which feeds cells into the tower grid.

    Attributes
    ----------
    name : str
        Name of the partition (key of its cell collection)
    readout : str
        Name of the readout of the partition
    segmentation : Union[PhiEtaSegmentation, MultiSegmentation], optional
        Segmentation of the readout (`None` if the readout is not available)
    seg_type : SegmentationType
        Kind of segmentation
    decoder : BitFieldCoder, optional
        Decoder of the cell IDs of the readout
    layers : LayerRange, optional
        Range of layers allowed to contribute, if restricted
    """

    name: str
    readout: str
    segmentation: Optional[SegmentationVariant] = None
    seg_type: SegmentationType = SegmentationType.WRONG
    decoder: Optional[BitFieldCoder] = None
    layers: Optional[LayerRange] = None

    @property
    def available(self) -> bool:
        """Whether the partition has a usable segmentation."""
        return self.segmentation is not None


class TowerToolBase:
    """Shared tower grid logic: sizing, indexing, filling and cell lookup.

    Attributes
    ----------
    delta_eta_tower : float
        Size of a tower in eta
    delta_phi_tower : float
        Size of a tower in phi
    eta_max : float
        Half-extent of the tower grid in eta
    phi_max : float
        Half-extent of the tower grid in phi
    n_eta_tower : int
        Number of towers in eta
    n_phi_tower : int
        Number of towers in phi
    towers : np.ndarray
        (n_eta_tower, n_phi_tower) Transverse energy of each tower
    cells_in_towers : Dict[Tuple[int, int], List[CaloHit]]
        Cells which contributed to each tower (if requested)
    """

    # Name of the tower tool (as specified in the configuration)
    name = ""

    def __init__(
        self,
        delta_eta_tower: float = TOWER_SIZE,
        delta_phi_tower: float = TOWER_SIZE,
        radius_for_position: float = 1.0,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the tower grid parameters.

        Parameters
        ----------
        delta_eta_tower : float, default 0.01
            Size of a tower in eta
        delta_phi_tower : float, default 0.01
            Size of a tower in phi
        radius_for_position : float, default 1.
            Radius used to compute cluster positions from eta and phi (mm)
        geometry : Geometry, optional
            Geometry to fetch the readouts from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        if delta_eta_tower <= 0.0 or delta_phi_tower <= 0.0:
            raise ValueError(
                "Tower sizes must be positive, got "
                f"{delta_eta_tower} (eta) and {delta_phi_tower} (phi)."
            )

        self.geometry = geometry or GeoManager.get_instance()
        self.delta_eta_tower = float(delta_eta_tower)
        self.delta_phi_tower = float(delta_phi_tower)
        self._radius = float(radius_for_position)

        # Grid dimensions, set by `towers_number`
        self.eta_max = None
        self.phi_max = None
        self.n_eta_tower = 0
        self.n_phi_tower = 0

        # Per-event state
        self.towers = np.zeros((0, 0), dtype=np.float64)
        self.cells_in_towers = defaultdict(list)

    @property
    def radius_for_position(self) -> float:
        """Radius used to compute cluster positions from eta and phi."""
        return self._radius

    @property
    def initialized(self) -> bool:
        """Whether the tower grid dimensions have been computed."""
        return self.eta_max is not None

    def retrieve_segmentation(
        self, readout: str
    ) -> Tuple[Optional[SegmentationVariant], SegmentationType]:
        """Fetches the segmentation of a readout and classifies it.

        A readout which is not registered in the geometry yields no
        segmentation. A multi-segmentation is only usable if all of its
        sub-segmentations are eta-phi grids.

        Parameters
        ----------
        readout : str
            Name of the readout

        Returns
        -------
        Union[PhiEtaSegmentation, MultiSegmentation], optional
            Segmentation of the readout, `None` if the readout does not exist
        SegmentationType
            Kind of segmentation
        """
        if not readout or not self.geometry.has_readout(readout):
            logger.info(
                f"Readout `{readout}` does not exist! Please check if it is "
                "correct. Processing without it."
            )
            return None, SegmentationType.WRONG

        logger.info(f"Readout `{readout}` found.")
        segmentation = self.geometry.segmentation(readout)
        if isinstance(segmentation, PhiEtaSegmentation):
            return segmentation, SegmentationType.PHI_ETA

        if isinstance(segmentation, MultiSegmentation):
            for sub in segmentation.segmentations:
                if not isinstance(sub, PhiEtaSegmentation):
                    logger.error(
                        "At least one of the sub-segmentations in the "
                        f"multi-segmentation of `{readout}` is not a phi-eta grid."
                    )
                    return segmentation, SegmentationType.WRONG

            return segmentation, SegmentationType.MULTI

        logger.error(
            f"There is no phi-eta or multi-segmentation for the readout `{readout}`."
        )
        return segmentation, SegmentationType.WRONG

    @staticmethod
    def segmentation_extrema(
        segmentation: Optional[SegmentationVariant],
        seg_type: SegmentationType,
    ) -> Tuple[float, float]:
        """Maximum absolute phi and eta reached by the cells of a segmentation.

        Parameters
        ----------
        segmentation : Union[PhiEtaSegmentation, MultiSegmentation], optional
            Segmentation of the readout
        seg_type : SegmentationType
            Kind of segmentation

        Returns
        -------
        float
            Maximum absolute phi (-1 if the segmentation is not usable)
        float
            Maximum absolute eta (-1 if the segmentation is not usable)
        """
        if segmentation is None or seg_type == SegmentationType.WRONG:
            return -1.0, -1.0

        return segmentation.extrema()

    def set_grid(self, phi_max: float, eta_max: float) -> Tuple[int, int]:
        """Sets the tower grid dimensions from the detector angular extent.

        A small epsilon is subtracted from the extent so that a detector edge
        sitting exactly on a tower boundary does not produce an extra tower.

        Parameters
        ----------
        phi_max : float
            Half-extent of the detector in phi
        eta_max : float
            Half-extent of the detector in eta

        Returns
        -------
        int
            Number of towers in eta
        int
            Number of towers in phi
        """
        self.phi_max = float(phi_max)
        self.eta_max = float(eta_max)
        logger.debug(f"Detector limits: phi_max {phi_max}, eta_max {eta_max}")

        self.n_phi_tower = max(
            0, int(np.ceil(2 * (self.phi_max - TOWER_EPS) / self.delta_phi_tower))
        )
        self.n_eta_tower = max(
            0, int(np.ceil(2 * (self.eta_max - TOWER_EPS) / self.delta_eta_tower))
        )
        if self.n_phi_tower == 0 or self.n_eta_tower == 0:
            logger.warning("No usable segmentation found, the tower grid is empty.")

        logger.debug(
            f"Towers: eta_max {self.eta_max}, delta_eta_tower "
            f"{self.delta_eta_tower}, n_eta_tower {self.n_eta_tower}"
        )
        logger.debug(
            f"Towers: phi_max {self.phi_max}, delta_phi_tower "
            f"{self.delta_phi_tower}, n_phi_tower {self.n_phi_tower}"
        )

        self.towers = np.zeros((self.n_eta_tower, self.n_phi_tower), dtype=np.float64)
        self.cells_in_towers.clear()

        return self.n_eta_tower, self.n_phi_tower

    def towers_number(self) -> Tuple[int, int]:
        """Computes the number of towers in eta and phi.

        Returns
        -------
        int
            Number of towers in eta
        int
            Number of towers in phi
        """
        raise NotImplementedError("Must define the grid extent in the tower tool.")

    def id_eta(self, eta: float) -> int:
        """Index of the eta tower which contains a pseudorapidity value.

        Parameters
        ----------
        eta : float
            Pseudorapidity

        Returns
        -------
        int
            Tower index in eta
        """
        return int(tower_index(eta, self.eta_max, self.delta_eta_tower))

    def id_phi(self, phi: float) -> int:
        """Index of the phi tower which contains an azimuth value.

        Parameters
        ----------
        phi : float
            Azimuthal angle

        Returns
        -------
        int
            Tower index in phi
        """
        return int(tower_index(phi, self.phi_max, self.delta_phi_tower))

    def eta(self, id_eta: int) -> float:
        """Pseudorapidity of the center of an eta tower.

        Parameters
        ----------
        id_eta : int
            Tower index in eta

        Returns
        -------
        float
            Center of the tower in eta
        """
        return float(tower_center(id_eta, self.eta_max, self.delta_eta_tower))

    def phi(self, id_phi: int) -> float:
        """Azimuth of the center of a phi tower.

        Parameters
        ----------
        id_phi : int
            Tower index in phi

        Returns
        -------
        float
            Center of the tower in phi
        """
        return float(tower_center(id_phi, self.phi_max, self.delta_phi_tower))

    def phi_neighbour(self, i_phi: int) -> int:
        """Phi tower index corrected for the full azimuthal coverage.

        Parameters
        ----------
        i_phi : int
            Requested phi tower index, may be < 0 or >= n_phi_tower

        Returns
        -------
        int
            Phi tower index in the `[0, n_phi_tower)` range
        """
        return int(wrap_index(i_phi, self.n_phi_tower))

    def reset(self):
        """Clears the per-event tower energies and cell lists."""
        if not self.initialized:
            self.towers_number()

        self.towers[:] = 0.0
        self.cells_in_towers.clear()

    def cells_in_tower(self, i_eta: int, i_phi: int) -> List[CaloHit]:
        """Cells which contributed to a tower during the last build.

        Parameters
        ----------
        i_eta : int
            Tower index in eta
        i_phi : int
            Tower index in phi (wrapped around if needed)

        Returns
        -------
        List[CaloHit]
            Contributing cells, in the order they were recorded
        """
        return list(self.cells_in_towers.get((i_eta, self.phi_neighbour(i_phi)), []))

    def cells_into_towers(
        self,
        cells: Sequence[CaloHit],
        partition: Partition,
        fill_towers_cells: bool = True,
    ) -> int:
        """Adds the transverse energy of a cell collection to the towers.

        Parameters
        ----------
        cells : Sequence[CaloHit]
            Cells of one calorimeter partition
        partition : Partition
            Partition the cells belong to
        fill_towers_cells : bool, default True
            Whether to record which cells contributed to which tower

        Returns
        -------
        int
            Number of cells which passed the layer restriction
        """
        # Fetch the position and size of each cell which passes the filter
        kept, dims = [], []
        for cell in cells:
            if partition.layers is not None:
                layer = partition.decoder.get(cell.cell_id, partition.layers.field)
                if not partition.layers.contains(layer):
                    continue

            kept.append(cell)
            dims.append(partition.segmentation.cell_dimensions(cell.cell_id))

        if len(kept) == 0:
            return 0

        dims = np.array(dims, dtype=np.float64)
        eta, phi, eta_half, phi_half = dims.T.copy()
        energy = np.array([cell.energy for cell in kept], dtype=np.float64)

        # Accumulate the transverse energy of the cells into the towers
        dropped = fill_towers(
            self.towers,
            eta,
            phi,
            eta_half,
            phi_half,
            energy,
            self.eta_max,
            self.phi_max,
            self.delta_eta_tower,
            self.delta_phi_tower,
            TOWER_EPS,
        )
        if dropped > 0:
            logger.debug(
                f"{dropped} cell fractions of `{partition.name}` fall outside "
                "of the eta range of the tower grid."
            )

        # Record which cells contributed to which tower, if requested
        if fill_towers_cells:
            eta_min, eta_max = tower_bounds(
                eta, eta_half, self.eta_max, self.delta_eta_tower, TOWER_EPS
            )
            phi_min, phi_max = tower_bounds(
                phi, phi_half, self.phi_max, self.delta_phi_tower, TOWER_EPS
            )
            for i, cell in enumerate(kept):
                clone = cell.clone()
                for i_eta in range(eta_min[i], eta_max[i] + 1):
                    if i_eta < 0 or i_eta >= self.n_eta_tower:
                        continue
                    for i_phi in range(phi_min[i], phi_max[i] + 1):
                        key = (int(i_eta), self.phi_neighbour(i_phi))
                        self.cells_in_towers[key].append(clone)

        return len(kept)

    def in_window(
        self,
        d_eta: int,
        d_phi: int,
        half_eta: int,
        half_phi: int,
        ellipse: bool = False,
    ) -> bool:
        """Checks whether a tower offset falls inside a cluster window.

        Parameters
        ----------
        d_eta : int
            Tower offset from the window center in eta
        d_phi : int
            Tower offset from the window center in phi
        half_eta : int
            Half-size of the window in eta (in number of towers)
        half_phi : int
            Half-size of the window in phi (in number of towers)
        ellipse : bool, default False
            If `True`, the window is the ellipse inscribed in the rectangle

        Returns
        -------
        bool
            `True` if the tower belongs to the window
        """
        if abs(d_eta) > half_eta or abs(d_phi) > half_phi:
            return False
        if not ellipse:
            return True

        return (d_eta / (half_eta + 0.5)) ** 2 + (d_phi / (half_phi + 0.5)) ** 2 < 1

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
        """Attaches the cells of the towers around a position to a cluster.

        Cells are looked up in the tower-to-cells map filled by the last
        call to `build_towers`. A cell which contributed to several towers
        of the window is only attached once.

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
            If `True`, use an elliptic window instead of a rectangular one

        Returns
        -------
        List[CaloHit]
            Cells attached to the cluster
        """
        if self.n_eta_tower == 0 or self.n_phi_tower == 0:
            return []

        eta_id, phi_id = self.id_eta(eta), self.id_phi(phi)
        attached, seen = [], set()
        for i_eta in range(eta_id - half_eta, eta_id + half_eta + 1):
            for i_phi in range(phi_id - half_phi, phi_id + half_phi + 1):
                if not self.in_window(
                    eta_id - i_eta, phi_id - i_phi, half_eta, half_phi, ellipse
                ):
                    continue

                key = (i_eta, self.phi_neighbour(i_phi))
                for cell in self.cells_in_towers.get(key, ()):
                    # Towers can be smaller than cells, skip duplicates
                    if cell.cell_id in seen:
                        continue
                    seen.add(cell.cell_id)

                    clone = cell.clone()
                    if cluster_cells is not None:
                        cluster_cells.append(clone)
                    cluster.add_hit(clone)
                    attached.append(clone)

        return attached


class CaloTowerTool(TowerToolBase):
    """Builds calorimeter towers from any number of calorimeter partitions.

    Each partition (e.g. ECal barrel, HCal barrel, endcaps, forward
    calorimeters) is identified by the key of its cell collection and the
    name of its readout. Partitions whose readout is not registered in the
    geometry are skipped. To keep a partition in the grid sizing without
    any cells, provide an empty cell collection for it.

    .. code-block:: yaml

        tower_tool:
          name: calo_towers
          delta_eta_tower: 0.01
          delta_phi_tower: 0.01
          partitions:
            ecal_barrel:
              readout: ECalBarrelPhiEta
              max_layer: 6
            hcal_barrel: HCalBarrelReadout
    """

    name = "calo_towers"

    def __init__(
        self,
        partitions: Dict[str, Union[str, Dict[str, Union[str, int, List[int]]]]],
        delta_eta_tower: float = TOWER_SIZE,
        delta_phi_tower: float = TOWER_SIZE,
        radius_for_position: float = 1.0,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the partitions and their segmentations.

        Parameters
        ----------
        partitions : Dict[str, Union[str, dict]]
            Readout of each partition, by cell collection key. Each value
            is either a readout name or a block with a `readout` name and an
            optional layer restriction (`max_layer` or `layer_range`)
        delta_eta_tower : float, default 0.01
            Size of a tower in eta
        delta_phi_tower : float, default 0.01
            Size of a tower in phi
        radius_for_position : float, default 1.
            Radius used to compute cluster positions from eta and phi (mm)
        geometry : Geometry, optional
            Geometry to fetch the readouts from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        super().__init__(
            delta_eta_tower, delta_phi_tower, radius_for_position, geometry
        )

        self.partitions = []
        for key, cfg in partitions.items():
            if isinstance(cfg, str):
                cfg = {"readout": cfg}
            self.partitions.append(self.parse_partition(key, **cfg))

    def parse_partition(
        self,
        name: str,
        readout: str,
        max_layer: Optional[int] = None,
        layer_range: Optional[Sequence[int]] = None,
        layer_field: str = LAYER_FIELD,
    ) -> Partition:
        """Retrieves the segmentation of one partition and checks it.

        Parameters
        ----------
        name : str
            Name of the partition (key of its cell collection)
        readout : str
            Name of the readout of the partition
        max_layer : int, optional
            Only keep cells at or below this layer
        layer_range : List[int], optional
            Only keep cells within this inclusive `[min, max]` layer range
        layer_field : str, default 'layer'
            Name of the bit field which stores the layer index

        Returns
        -------
        Partition
            Partition description
        """
        logger.info(f"Retrieving `{name}` segmentation")
        segmentation, seg_type = self.retrieve_segmentation(readout)
        if segmentation is None:
            return Partition(name, readout)

        if seg_type == SegmentationType.WRONG:
            raise SegmentationError(
                f"Wrong type of segmentation for readout `{readout}` of `{name}`."
            )

        partition = Partition(
            name, readout, segmentation, seg_type, self.geometry.decoder(readout)
        )

        # Parse the layer restriction, if any
        if max_layer is not None and layer_range is not None:
            raise ValueError(
                f"Specify at most one of `max_layer` or `layer_range` for `{name}`."
            )
        if max_layer is not None or layer_range is not None:
            if not partition.decoder.has_field(layer_field):
                logger.warning(
                    f"Readout `{readout}` does not contain field `{layer_field}`, "
                    "the layer restriction is disabled."
                )
            elif max_layer is not None:
                partition.layers = LayerRange(maximum=max_layer, field=layer_field)
            else:
                low, high = layer_range
                partition.layers = LayerRange(low, high, layer_field)

            if partition.layers is not None:
                logger.info(
                    f"Layers used for `{name}`: [{partition.layers.minimum}, "
                    f"{partition.layers.maximum}]"
                )

        return partition

    def towers_number(self) -> Tuple[int, int]:
        """Computes the number of towers from the extent of all partitions.

        The number of towers in phi is computed from the largest azimuthal
        extent of the partitions and the size of a tower in phi, the number
        of towers in eta from the largest pseudorapidity extent.

        Returns
        -------
        int
            Number of towers in eta
        int
            Number of towers in phi
        """
        phi_max, eta_max = -1.0, -1.0
        for partition in self.partitions:
            phi, eta = self.segmentation_extrema(
                partition.segmentation, partition.seg_type
            )
            phi_max = max(phi_max, phi)
            eta_max = max(eta_max, eta)

        return self.set_grid(phi_max, eta_max)

    def build_towers(
        self, cells: Dict[str, Sequence[CaloHit]], fill_towers_cells: bool = True
    ) -> int:
        """Builds the calorimeter towers of one event.

        The tower energies and the tower-to-cells map are cleared first.

        Parameters
        ----------
        cells : Dict[str, Sequence[CaloHit]]
            Cell collection of each partition, by partition name
        fill_towers_cells : bool, default True
            Whether to record which cells contributed to which tower, for
            later use in `attach_cells`

        Returns
        -------
        int
            Total number of cells in the collections of available partitions
        """
        self.reset()
        total = 0
        for partition in self.partitions:
            collection = cells.get(partition.name, ())
            logger.debug(
                f"Input `{partition.name}` cell collection size: {len(collection)}"
            )
            if not partition.available:
                continue

            self.cells_into_towers(collection, partition, fill_towers_cells)
            total += len(collection)

        return total
