"""Tests for the calorimeter cell and cluster data structures."""

import numpy as np
import pytest

from caloreco.data import CaloCluster, CaloHit


class TestCaloHit:
    """Test the calorimeter cell data class."""

    def test_defaults(self):
        """Test the default values of a cell."""
        hit = CaloHit()
        assert hit.cell_id == 0
        assert hit.energy == 0.0
        assert hit.type == 0
        assert hit.position.shape == (3,)
        assert np.all(np.isinf(hit.position))

    def test_independent_defaults(self):
        """Test that two default cells do not share their arrays."""
        a, b = CaloHit(), CaloHit()
        a.position[0] = 1.0
        assert np.isinf(b.position[0])

    def test_position(self):
        """Test that positions are stored as float arrays."""
        hit = CaloHit(cell_id=12, energy=1.5, position=[1, 2, 3])
        assert hit.position.dtype == np.float64
        np.testing.assert_array_equal(hit.position, [1.0, 2.0, 3.0])

    def test_clone(self):
        """Test that clones are equal, independent copies."""
        hit = CaloHit(cell_id=12, energy=1.5, type=1, position=[1.0, 2.0, 3.0])
        clone = hit.clone()
        assert clone == hit
        assert clone is not hit

        clone.position[0] = 5.0
        assert hit.position[0] == 1.0
        assert clone != hit

    def test_clone_overrides(self):
        """Test overriding attributes while cloning."""
        hit = CaloHit(cell_id=12, energy=1.5, type=1)
        clone = hit.clone(type=4)
        assert clone.type == 4
        assert hit.type == 1
        assert clone.cell_id == 12

        with pytest.raises(AttributeError):
            hit.clone(layer=2)

    def test_equality(self):
        """Test comparisons with other cells and other objects."""
        assert CaloHit(cell_id=1) == CaloHit(cell_id=1)
        assert CaloHit(cell_id=1) != CaloHit(cell_id=2)
        assert CaloHit(cell_id=1) != CaloCluster()

    def test_scalar_dict(self):
        """Test the expansion of a cell into scalar attributes."""
        hit = CaloHit(cell_id=3, energy=2.0, type=2, position=[1.0, 2.0, 3.0])
        assert hit.scalar_dict() == {
            "cell_id": 3,
            "energy": 2.0,
            "type": 2,
            "time": 0.0,
            "position_x": 1.0,
            "position_y": 2.0,
            "position_z": 3.0,
        }

    def test_str(self):
        """Test the string representation of a cell."""
        assert str(CaloHit(cell_id=3, energy=2.0, type=1)) == (
            "CaloHit(cell_id=3, energy=2.000, type=1)"
        )


class TestCaloCluster:
    """Test the calorimeter cluster data class."""

    @pytest.fixture(name="cluster")
    def fixture_cluster(self):
        """Cluster made of three cells."""
        hits = [CaloHit(cell_id=i, energy=float(i)) for i in (1, 2, 3)]
        return CaloCluster(id=0, type=2, energy=6.0, hits=hits)

    def test_defaults(self):
        """Test that default clusters do not share their cell lists."""
        a, b = CaloCluster(), CaloCluster()
        a.add_hit(CaloHit(cell_id=1))
        assert a.num_hits == 1
        assert b.num_hits == 0
        assert a.id == -1

    def test_cells(self, cluster):
        """Test the cell accessors of a cluster."""
        assert cluster.num_hits == 3
        np.testing.assert_array_equal(cluster.cell_ids, [1, 2, 3])
        assert cluster.cell_ids.dtype == np.uint64
        assert cluster.hit_energy == pytest.approx(cluster.energy)

    def test_deep_clone(self, cluster):
        """Test that cloning a cluster also copies its cells."""
        clone = cluster.clone(type=1)
        assert clone.type == 1
        assert clone.hits == cluster.hits
        assert clone.hits[0] is not cluster.hits[0]

        clone.hits[0].energy = 10.0
        assert cluster.hits[0].energy == 1.0

    def test_scalar_dict(self, cluster):
        """Test that the cell list is replaced by its length."""
        scalars = cluster.scalar_dict()
        assert scalars["num_hits"] == 3
        assert scalars["energy"] == 6.0
        assert "hits" not in scalars
        assert np.isinf(scalars["position_x"])

    def test_str(self, cluster):
        """Test the string representation of a cluster."""
        assert str(cluster) == "CaloCluster(id=0, type=2, energy=6.000, num_hits=3)"
