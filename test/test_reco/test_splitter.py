"""Tests for the cluster splitting procedure."""

import logging

import numpy as np
import pytest

from caloreco.config.errors import NeighbourError
from caloreco.data import CaloCluster, CaloHit
from caloreco.geo import GridNeighbours, MapNeighbours, PhiEtaCellPositions
from caloreco.reco import ClusterSplitter, SplitResult, splitter_factory
from caloreco.utils.globals import (
    LEFT_CELL,
    LEFT_CLUST,
    SPLIT_CLUST,
    UNSPLIT_CLUST,
)


@pytest.fixture(name="splitter")
def fixture_splitter(split_table):
    """Splitter which knows the two-seed cluster of `split_table`."""
    table, positions = split_table
    return ClusterSplitter(MapNeighbours(table, symmetric=True), positions)


class TestSeeds:
    """Test the identification of the sub-cluster seeds."""

    @staticmethod
    def seeds(splitter, cluster):
        """Runs the seed search on a cluster."""
        types = {hit.cell_id: hit.type for hit in cluster.hits}
        energies = {hit.cell_id: hit.energy for hit in cluster.hits}
        return splitter.find_seeds(cluster.hits, types, energies)

    def test_two_seeds(self, splitter, split_cluster):
        """Test that both local maxima are found, lowest energy first."""
        cluster = split_cluster()
        cluster.hits[1].energy = 9.0
        assert self.seeds(splitter, cluster) == [2, 1]

    def test_threshold(self, splitter, split_cluster):
        """Test that seeds must be strictly above the energy threshold."""
        splitter.threshold = 10.0
        assert self.seeds(splitter, split_cluster()) == []

    def test_min_neighbours(self, splitter, split_cluster):
        """Test that seeds need enough qualifying neighbours."""
        # The first seed has 6 neighbours, the second one has 7
        splitter.min_neighbours = 7
        assert self.seeds(splitter, split_cluster()) == [2]

    def test_neighbours_outside_cluster(self, splitter):
        """Test that neighbours which are not in the cluster do not count."""
        cluster = CaloCluster(hits=[CaloHit(cell_id=1, energy=10.0, type=1)])
        assert self.seeds(splitter, cluster) == []

    @pytest.mark.parametrize("energy, expected", [(12.0, [2]), (10.0, [1, 2])])
    def test_seed_neighbours(self, split_table, energy, expected):
        """Test that a higher energy neighbouring seed vetoes a seed."""
        table = {1: [11, 12, 13, 14, 15, 2], 2: [21, 22, 23, 24, 25]}
        _, positions = split_table
        splitter = ClusterSplitter(MapNeighbours(table, symmetric=True), positions)

        hits = [CaloHit(cell_id=1, energy=10.0, type=1)]
        hits.append(CaloHit(cell_id=2, energy=energy, type=1))
        hits.extend(CaloHit(cell_id=i, energy=1.0, type=2) for i in range(11, 16))
        hits.extend(CaloHit(cell_id=i, energy=1.0, type=2) for i in range(21, 26))
        cluster = CaloCluster(hits=hits)
        assert self.seeds(splitter, cluster) == expected


class TestSplit:
    """Test the decomposition of one cluster."""

    def test_unsplit(self, splitter, split_cluster):
        """Test that a cluster with a single seed is copied as is."""
        splitter.min_neighbours = 7
        cluster = split_cluster()
        output = splitter.split(cluster)

        assert len(output) == 1
        assert output[0].type == UNSPLIT_CLUST
        assert output[0].energy == cluster.energy
        assert output[0].hits == cluster.hits
        assert output[0].hits[0] is not cluster.hits[0]
        assert cluster.type == 0

    def test_no_seeds(self, splitter, split_cluster):
        """Test that a cluster without any seed is copied as is."""
        splitter.threshold = 20.0
        cluster = split_cluster()
        output = splitter.split(cluster)

        assert len(output) == 1
        assert output[0].type == UNSPLIT_CLUST
        assert output[0].num_hits == cluster.num_hits == 14
        assert output[0].energy == pytest.approx(cluster.energy)

    def test_equidistant(self, splitter, split_cluster):
        """Test that a cell equidistant to two sub-clusters stays with the first."""
        cluster = split_cluster()
        output = splitter.split(cluster)

        assert len(output) == 2
        assert [out.type for out in output] == [SPLIT_CLUST, SPLIT_CLUST]
        assert [out.id for out in output] == [0, 1]

        first, second = output
        assert first.cell_ids.tolist() == [1, 11, 12, 13, 14, 15, 3]
        assert second.cell_ids.tolist() == [2, 21, 22, 23, 24, 25, 4]
        assert first.energy == pytest.approx(16.0)
        assert second.energy == pytest.approx(16.0)
        np.testing.assert_allclose(first.position, [1.0, 15.0 / 16, 0.0])

    def test_closest(self, splitter, split_cluster):
        """Test that a shared cell goes to the closest sub-cluster."""
        output = splitter.split(split_cluster(energy_4=3.0))

        first, second = output
        assert first.cell_ids.tolist() == [1, 11, 12, 13, 14, 15]
        assert second.cell_ids.tolist() == [2, 21, 22, 23, 24, 25, 3, 4]
        assert first.energy == pytest.approx(15.0)
        assert second.energy == pytest.approx(19.0)

    def test_cell_types(self, splitter, split_cluster):
        """Test that the cells keep their type in the sub-clusters."""
        output = splitter.split(split_cluster())
        types = {hit.cell_id: hit.type for out in output for hit in out.hits}
        assert types[1] == types[2] == 1
        assert types[3] == types[4] == types[11] == 2

    def test_leftover(self, split_table, splitter, split_cluster):
        """Test that cells which cannot be reached form their own cluster."""
        _, positions = split_table
        positions.table[9] = np.array([0.0, 1.0, 0.0])

        extra = [CaloHit(cell_id=9, energy=2.0, type=3)]
        cluster = split_cluster(extra=extra)
        output = splitter.split(cluster)

        assert len(output) == 3
        leftover = output[-1]
        assert leftover.type == LEFT_CLUST
        assert leftover.cell_ids.tolist() == [9]
        assert leftover.hits[0].type == LEFT_CELL
        assert leftover.energy == pytest.approx(2.0)
        np.testing.assert_allclose(leftover.position, [0.0, 1.0, 0.0])

        assert sum(out.energy for out in output) == pytest.approx(cluster.energy)
        assert sum(out.num_hits for out in output) == cluster.num_hits

    def test_growth_rounds(self, split_table, split_cluster):
        """Test that sub-clusters grow one ring of neighbours per round."""
        table, positions = split_table
        table = {**table, 11: [1, 7]}
        positions.table[7] = np.array([1.0, 1.0, 0.0])
        splitter = ClusterSplitter(MapNeighbours(table, symmetric=True), positions)

        extra = [CaloHit(cell_id=7, energy=1.0, type=2)]
        output = splitter.split(split_cluster(extra=extra))
        assert len(output) == 2
        assert 7 in output[0].cell_ids.tolist()

    def test_max_iterations(self, split_table, split_cluster, caplog):
        """Test that growth stops after the maximum number of rounds."""
        table, positions = split_table
        table = {**table, 11: [1, 7]}
        positions.table[7] = np.array([1.0, 1.0, 0.0])
        splitter = ClusterSplitter(
            MapNeighbours(table, symmetric=True), positions, max_iterations=1
        )

        extra = [CaloHit(cell_id=7, energy=1.0, type=2)]
        with caplog.at_level(logging.WARNING, logger="caloreco"):
            output = splitter.split(split_cluster(extra=extra))

        assert "Stopped growing" in caplog.text
        assert len(output) == 3
        assert output[-1].cell_ids.tolist() == [7]

    def test_no_neighbours(self, split_table, split_cluster):
        """Test that a cell without neighbours interrupts the splitting."""
        table, positions = split_table
        splitter = ClusterSplitter(MapNeighbours(table), positions)
        with pytest.raises(NeighbourError) as err:
            splitter.split(split_cluster())

        assert err.value.cell_id == 11
        assert err.value.system == -1

    def test_grid(self, toy_geometry, make_cell):
        """Test splitting a cluster made of two separate blocks of cells."""
        extrema = {"eta": [0, 10], "phi": [0, 63]}
        neighbours = GridNeighbours(
            "ToyPhiEta", ["eta", "phi"], extrema, geometry=toy_geometry
        )
        positions = PhiEtaCellPositions("ToyPhiEta", geometry=toy_geometry)
        splitter = ClusterSplitter(neighbours, positions)

        hits = []
        for i_eta, i_phi in ((3, 10), (7, 30)):
            for d_eta in (-1, 0, 1):
                for d_phi in (-1, 0, 1):
                    seed = d_eta == 0 and d_phi == 0
                    hits.append(
                        make_cell(
                            i_eta + d_eta,
                            i_phi + d_phi,
                            energy=10.0 if seed else 1.0,
                            cell_type=1 if seed else 2,
                        )
                    )

        cluster = CaloCluster(energy=36.0, hits=hits)
        output = splitter.split(cluster)

        assert [out.num_hits for out in output] == [9, 9]
        assert [out.energy for out in output] == [18.0, 18.0]
        assert set(output[0].cell_ids.tolist()) == {h.cell_id for h in hits[:9]}


class TestProcess:
    """Test splitting all the clusters of an event."""

    def test_process(self, splitter, split_cluster):
        """Test the output collections and the bookkeeping."""
        single = CaloCluster(
            energy=10.0, hits=[CaloHit(cell_id=1, energy=10.0, type=1)]
        )
        result = splitter.process([split_cluster(), single])

        assert isinstance(result, SplitResult)
        assert result.num_split == 1
        assert result.failed == []
        assert [c.id for c in result.clusters] == [0, 1, 2]
        assert [c.type for c in result.clusters] == [2, 2, 1]
        assert len(result.cells) == 15
        assert result.cells_before == result.cells_after == 15
        assert result.energy_before == pytest.approx(42.0)
        assert result.energy_after == pytest.approx(42.0)

    def test_failure(self, split_table, split_cluster):
        """Test that a failing cluster is skipped and reported."""
        table, positions = split_table
        splitter = ClusterSplitter(MapNeighbours(table), positions)
        single = CaloCluster(
            energy=10.0, hits=[CaloHit(cell_id=1, energy=10.0, type=1)]
        )
        result = splitter.process([split_cluster(), single])

        assert result.failed == [0]
        assert len(result.clusters) == 1
        assert result.clusters[0].type == UNSPLIT_CLUST
        assert result.energy_before == pytest.approx(10.0)
        assert result.cells_before == 1

    def test_empty(self, splitter):
        """Test an event without clusters."""
        result = splitter.process([])
        assert result.clusters == []
        assert result.num_split == 0

    def test_conservation(self, splitter):
        """Test the energy and cell count conservation checks."""
        assert splitter.check_conservation(10.0, 10.0 + 1e-9, 3, 3)
        assert not splitter.check_conservation(10.0, 11.0, 3, 3)
        assert not splitter.check_conservation(10.0, 10.0, 3, 4)


class TestSplitterFactory:
    """Test building the splitter from its configuration."""

    def test_factory(self, geo_manager):
        """Test that the lookup tools are built from their configuration."""
        cfg = {
            "name": "split_clusters",
            "threshold": 0.5,
            "neighbours": {"name": "map", "table": {1: [2]}},
            "positions": {"name": "phi_eta", "readout": "ToyPhiEta"},
        }
        splitter = splitter_factory(cfg)

        assert isinstance(splitter, ClusterSplitter)
        assert isinstance(splitter.neighbours, MapNeighbours)
        assert isinstance(splitter.positions, PhiEtaCellPositions)
        assert splitter.threshold == 0.5
        assert splitter.min_neighbours == 5
