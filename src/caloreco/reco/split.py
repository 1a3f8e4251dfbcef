"""Splits calorimeter clusters which contain several local energy maxima.

A cell qualifies as the seed of a new sub-cluster if it is of the seed
type, if its energy exceeds a threshold, if none of its neighbouring seed
cells has a higher energy and if it is surrounded by enough neighbour-type
or lower energy seed cells. A cluster with at least two such seeds is
decomposed: each seed grows into a sub-cluster, one ring of neighbours per
round, all sub-clusters progressing in lock step. A cell reached by two
sub-clusters belongs to the one whose energy-weighted centroid is closest
in angular distance. Cells which are never reached are gathered in a
separate leftover cluster.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from caloreco.config.errors import NeighbourError
from caloreco.data import CaloCluster, CaloHit
from caloreco.geo import neighbours_factory, positions_factory
from caloreco.math.distance import delta_r
from caloreco.utils.globals import (
    LEFT_CELL,
    LEFT_CLUST,
    MAX_SPLIT_ITERATIONS,
    MIN_SPLIT_NEIGHBOURS,
    NEIGH_CELL,
    SEED_CELL,
    SPLIT_CLUST,
    UNSPLIT_CLUST,
)
from caloreco.utils.logger import logger

__all__ = ["ClusterSplitter", "SplitResult"]


@dataclass
class SplitResult:
    """Output of the cluster splitting procedure for one event.

    Attributes
    ----------
    clusters : List[CaloCluster]
        Output clusters (unsplit, split and leftover)
    cells : List[CaloHit]
        Cells of all the output clusters
    failed : List[int]
        Indexes of the input clusters which could not be processed
    num_split : int
        Number of input clusters which were split
    energy_before : float
        Total energy of the processed input clusters
    energy_after : float
        Total energy of the output clusters
    cells_before : int
        Total number of cells in the processed input clusters
    cells_after : int
        Total number of cells in the output clusters
    """

    clusters: List[CaloCluster] = field(default_factory=list)
    cells: List[CaloHit] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    num_split: int = 0
    energy_before: float = 0.0
    energy_after: float = 0.0
    cells_before: int = 0
    cells_after: int = 0


class ClusterSplitter:
    """Splits clusters around their local energy maxima.

    .. code-block:: yaml

        splitter:
          name: split_clusters
          threshold: 0.5
          neighbours:
            name: grid
            readout: ECalBarrelPhiEta
            fields: [layer, eta, phi]
            extrema:
              layer: [0, 11]
              eta: [0, 199]
              phi: [0, 703]
          positions:
            name: system
            readout: ECalBarrelPhiEta
            systems:
              5:
                name: phi_eta
                readout: ECalBarrelPhiEta

    Attributes
    ----------
    neighbours : object
        Tool which provides the `neighbours(cell_id)` lookup
    positions : object
        Tool which provides the `xyz(cell_id)` lookup
    threshold : float
        Minimum energy of a seed cell
    min_neighbours : int
        Minimum number of qualifying neighbours of a seed cell
    max_iterations : int
        Maximum number of growth rounds
    energy_rtol : float
        Relative tolerance of the energy conservation check
    energy_atol : float
        Absolute tolerance of the energy conservation check
    """

    name = "split_clusters"

    def __init__(
        self,
        neighbours,
        positions,
        threshold: float = 0.0,
        min_neighbours: int = MIN_SPLIT_NEIGHBOURS,
        max_iterations: int = MAX_SPLIT_ITERATIONS,
        energy_rtol: float = 1e-6,
        energy_atol: float = 1e-6,
    ):
        """Initialize the splitter.

        Parameters
        ----------
        neighbours : Union[dict, object]
            Neighbour lookup tool or its configuration
        positions : Union[dict, object]
            Cell position lookup tool or its configuration
        threshold : float, default 0.
            Minimum energy of a seed cell
        min_neighbours : int, default 5
            Minimum number of qualifying neighbours of a seed cell
        max_iterations : int, default 1000
            Maximum number of growth rounds
        energy_rtol : float, default 1e-6
            Relative tolerance of the energy conservation check
        energy_atol : float, default 1e-6
            Absolute tolerance of the energy conservation check
        """
        if isinstance(neighbours, (str, dict)):
            neighbours = neighbours_factory(neighbours)
        if isinstance(positions, (str, dict)):
            positions = positions_factory(positions)

        self.neighbours = neighbours
        self.positions = positions
        self.threshold = threshold
        self.min_neighbours = min_neighbours
        self.max_iterations = max_iterations
        self.energy_rtol = energy_rtol
        self.energy_atol = energy_atol

    def process(self, clusters: Sequence[CaloCluster]) -> SplitResult:
        """Splits all the clusters of one event.

        A cluster for which the neighbour lookup fails is reported and
        skipped, the following clusters are still processed.

        Parameters
        ----------
        clusters : List[CaloCluster]
            Input clusters

        Returns
        -------
        SplitResult
            Output clusters, cells and bookkeeping
        """
        logger.debug(f"Input cluster collection size: {len(clusters)}")
        result = SplitResult()
        for i, cluster in enumerate(clusters):
            try:
                output = self.split(cluster)
            except NeighbourError as err:
                logger.error(f"Failed to split cluster {i}: {err}")
                result.failed.append(i)
                continue

            result.energy_before += cluster.energy
            result.cells_before += cluster.num_hits
            if output[0].type != UNSPLIT_CLUST:
                result.num_split += 1

            for out in output:
                out.id = len(result.clusters)
                result.clusters.append(out)
                result.cells.extend(out.hits)
                result.energy_after += out.energy
                result.cells_after += out.num_hits

        logger.info(f"Split {result.num_split} clusters.")
        if len(result.failed):
            logger.warning(f"{len(result.failed)} clusters could not be split.")

        self.check_conservation(
            result.energy_before,
            result.energy_after,
            result.cells_before,
            result.cells_after,
        )

        return result

    def split(self, cluster: CaloCluster) -> List[CaloCluster]:
        """Splits one cluster, if it contains at least two seeds.

        Parameters
        ----------
        cluster : CaloCluster
            Input cluster

        Returns
        -------
        List[CaloCluster]
            The unchanged cluster (marked as unsplit) if it has fewer than
            two seeds, otherwise one cluster per seed and, if some cells
            could not be reached from any seed, a leftover cluster
        """
        cell_types = {hit.cell_id: hit.type for hit in cluster.hits}
        cell_energies = {hit.cell_id: hit.energy for hit in cluster.hits}
        logger.debug(f"Splitting cluster with {cluster.num_hits} cells")

        # Find the seeds of the new clusters
        seeds = self.find_seeds(cluster.hits, cell_types, cell_energies)
        if len(seeds) < 2:
            return [self.unsplit(cluster)]

        logger.debug(f"Split cluster into {len(seeds)} sub-clusters")

        # Fetch the energy-weighted position of each cell
        cell_vectors = {}
        for hit in cluster.hits:
            pos = np.asarray(self.positions.xyz(hit.cell_id), dtype=np.float64)
            cell_vectors[hit.cell_id] = np.append(hit.energy * pos, hit.energy)

        # Grow the sub-clusters
        cluster_of_cell = self.grow(seeds, cell_types, cell_vectors)

        # Build the output clusters
        output = []
        for cluster_id in range(len(seeds)):
            hits = [
                hit.clone(type=cell_types[hit.cell_id])
                for hit in cluster.hits
                if cluster_of_cell.get(hit.cell_id) == cluster_id
            ]
            output.append(self.build_cluster(hits, SPLIT_CLUST))

        leftover = [
            hit.clone(type=LEFT_CELL)
            for hit in cluster.hits
            if hit.cell_id not in cluster_of_cell
        ]
        if len(leftover):
            logger.warning(
                f"Number of cells before ({cluster.num_hits}) and after "
                f"({len(cluster_of_cell)}) cluster splitting differ. The "
                f"{len(leftover)} unassigned cells form a separate cluster."
            )
            output.append(self.build_cluster(leftover, LEFT_CLUST))

        for i, out in enumerate(output):
            out.id = i

        self.check_conservation(
            cluster.energy,
            sum(out.energy for out in output),
            cluster.num_hits,
            sum(out.num_hits for out in output),
        )

        return output

    def find_seeds(
        self,
        hits: Sequence[CaloHit],
        cell_types: Dict[int, int],
        cell_energies: Dict[int, float],
    ) -> List[int]:
        """Finds the cells which qualify as seeds of new sub-clusters.

        Candidates are scanned in increasing order of energy.

        Parameters
        ----------
        hits : List[CaloHit]
            Cells of the cluster
        cell_types : Dict[int, int]
            Type of each cell of the cluster
        cell_energies : Dict[int, float]
            Energy of each cell of the cluster

        Returns
        -------
        List[int]
            Cell IDs of the confirmed seeds
        """
        seeds = []
        for hit in sorted(hits, key=lambda h: h.energy):
            if hit.type != SEED_CELL or hit.energy <= self.threshold:
                continue

            count, local_max = 0, True
            for neighbour_id in self.neighbours.neighbours(hit.cell_id):
                neighbour_type = cell_types.get(neighbour_id)
                if neighbour_type == NEIGH_CELL:
                    count += 1
                elif neighbour_type == SEED_CELL:
                    if cell_energies[neighbour_id] > hit.energy:
                        local_max = False
                        break
                    count += 1

            if local_max and count >= self.min_neighbours:
                logger.debug(
                    f"Seed {hit.cell_id} found with {count} qualifying neighbours."
                )
                seeds.append(hit.cell_id)

        return seeds

    def grow(
        self,
        seeds: List[int],
        cell_types: Dict[int, int],
        cell_vectors: Dict[int, np.ndarray],
    ) -> Dict[int, int]:
        """Grows one sub-cluster around each seed, one ring per round.

        In the first round, each seed in turn claims its neighbours. In
        every following round, the sub-clusters (in order) look for the
        neighbours of the cells they claimed in the previous round.

        Parameters
        ----------
        seeds : List[int]
            Cell IDs of the seeds
        cell_types : Dict[int, int]
            Type of each cell of the cluster
        cell_vectors : Dict[int, np.ndarray]
            (4) Energy-weighted position and energy of each cell

        Returns
        -------
        Dict[int, int]
            Sub-cluster index of each claimed cell
        """
        cluster_of_cell, centroids, frontiers = {}, {}, {}
        for cluster_id, seed in enumerate(seeds):
            # A seed always starts its own sub-cluster
            owner = cluster_of_cell.get(seed)
            if owner is not None:
                centroids[owner] -= cell_vectors[seed]

            cluster_of_cell[seed] = cluster_id
            centroids[cluster_id] = cell_vectors[seed].copy()
            frontiers[cluster_id] = self.search_neighbours(
                seed, cluster_id, cell_types, cluster_of_cell, cell_vectors, centroids
            )

        iteration = 1
        while any(len(f) for f in frontiers.values()):
            if iteration >= self.max_iterations:
                logger.warning(
                    f"Stopped growing sub-clusters after {iteration} rounds."
                )
                break

            next_frontiers = {}
            for cluster_id in range(len(seeds)):
                next_frontiers[cluster_id] = []
                for cell_id in frontiers[cluster_id]:
                    next_frontiers[cluster_id].extend(
                        self.search_neighbours(
                            cell_id,
                            cluster_id,
                            cell_types,
                            cluster_of_cell,
                            cell_vectors,
                            centroids,
                        )
                    )

            frontiers = next_frontiers
            iteration += 1

        logger.debug(f"Stopped growing sub-clusters at round {iteration}")

        return cluster_of_cell

    def search_neighbours(
        self,
        cell_id: int,
        cluster_id: int,
        cell_types: Dict[int, int],
        cluster_of_cell: Dict[int, int],
        cell_vectors: Dict[int, np.ndarray],
        centroids: Dict[int, np.ndarray],
    ) -> List[int]:
        """Claims the neighbours of a cell for a sub-cluster.

        An unclaimed neighbour which belongs to the cluster joins the
        sub-cluster. A neighbour claimed by another sub-cluster moves
        only if the centroid of this sub-cluster is strictly closer to it.
        The centroids are updated in place.

        Parameters
        ----------
        cell_id : int
            Cell whose neighbours are searched
        cluster_id : int
            Index of the sub-cluster which grows
        cell_types : Dict[int, int]
            Type of each cell of the cluster
        cluster_of_cell : Dict[int, int]
            Sub-cluster index of each claimed cell, updated in place
        cell_vectors : Dict[int, np.ndarray]
            (4) Energy-weighted position and energy of each cell
        centroids : Dict[int, np.ndarray]
            (4) Energy-weighted position and energy of each sub-cluster

        Returns
        -------
        List[int]
            Cells claimed by the sub-cluster

        Raises
        ------
        NeighbourError
            If the cell has no neighbours
        """
        neighbours = self.neighbours.neighbours(cell_id)
        if len(neighbours) == 0:
            system = -1
            if hasattr(self.positions, "system"):
                system = self.positions.system(cell_id)
            raise NeighbourError(cell_id, system)

        claimed = []
        for neighbour_id in neighbours:
            if neighbour_id not in cell_types:
                continue

            owner = cluster_of_cell.get(neighbour_id)
            vector = cell_vectors[neighbour_id]
            if owner is None:
                centroids[cluster_id] += vector
                cluster_of_cell[neighbour_id] = cluster_id
                claimed.append(neighbour_id)

            elif owner != cluster_id:
                pos = np.asarray(self.positions.xyz(neighbour_id), dtype=np.float64)
                dist = delta_r(centroids[cluster_id][:3], pos)
                dist_owner = delta_r(centroids[owner][:3], pos)
                if dist < dist_owner:
                    centroids[owner] -= vector
                    centroids[cluster_id] += vector
                    cluster_of_cell[neighbour_id] = cluster_id
                    claimed.append(neighbour_id)

        return claimed

    def build_cluster(self, hits: List[CaloHit], cluster_type: int) -> CaloCluster:
        """Builds an output cluster from its cells.

        Parameters
        ----------
        hits : List[CaloHit]
            Cells of the cluster
        cluster_type : int
            Type of the cluster

        Returns
        -------
        CaloCluster
            Cluster with its total energy and energy-weighted position
        """
        energy = float(np.sum([hit.energy for hit in hits]))
        position = np.zeros(3, dtype=np.float64)
        if energy != 0.0:
            for hit in hits:
                position += hit.energy * np.asarray(self.positions.xyz(hit.cell_id))
            position /= energy

        return CaloCluster(
            type=cluster_type, energy=energy, position=position, hits=hits
        )

    @staticmethod
    def unsplit(cluster: CaloCluster) -> CaloCluster:
        """Copies a cluster which does not need to be split.

        Parameters
        ----------
        cluster : CaloCluster
            Input cluster

        Returns
        -------
        CaloCluster
            Copy of the cluster (and of its cells) marked as unsplit
        """
        return cluster.clone(type=UNSPLIT_CLUST)

    def check_conservation(
        self,
        energy_before: float,
        energy_after: float,
        cells_before: int,
        cells_after: int,
    ) -> bool:
        """Checks that splitting conserved the energy and the cell count.

        Mismatches are reported as warnings.

        Parameters
        ----------
        energy_before : float
            Energy before splitting
        energy_after : float
            Energy after splitting
        cells_before : int
            Number of cells before splitting
        cells_after : int
            Number of cells after splitting

        Returns
        -------
        bool
            `True` if both quantities are conserved
        """
        valid = True
        if not np.isclose(
            energy_after, energy_before, rtol=self.energy_rtol, atol=self.energy_atol
        ):
            logger.warning(
                f"After cluster splitting, energy ({energy_after}) is not "
                f"what it was before ({energy_before})."
            )
            valid = False

        if cells_before != cells_after:
            logger.warning(
                f"After cluster splitting, number of cells ({cells_after}) is "
                f"not what it was before ({cells_before})."
            )
            valid = False

        return valid
