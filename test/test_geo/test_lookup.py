"""Tests for the cell neighbour and cell position tools."""

import numpy as np
import pytest

from caloreco.config.errors import GeometryError
from caloreco.geo import (
    CellPositions,
    GridNeighbours,
    MapNeighbours,
    PhiEtaCellPositions,
    neighbours_factory,
    positions_factory,
)
from caloreco.math.distance import azimuth, pseudorapidity

EXTREMA = {"layer": [0, 3], "eta": [0, 10], "phi": [0, 63]}


class TestGridNeighbours:
    """Test neighbours derived from the bit fields of a cell ID."""

    def test_diagonal(self, toy_geometry):
        """Test that a cell in the middle of the grid has 8 neighbours."""
        tool = GridNeighbours(
            "ToyPhiEta", ["eta", "phi"], EXTREMA, geometry=toy_geometry
        )
        decoder = toy_geometry.decoder("ToyPhiEta")
        cell_id = decoder.encode(system=5, eta=5, phi=10)
        neighbours = tool.neighbours(cell_id)
        assert len(neighbours) == 8
        assert cell_id not in neighbours
        coords = {(decoder.get(n, "eta"), decoder.get(n, "phi")) for n in neighbours}
        assert (4, 9) in coords and (6, 11) in coords

    def test_axis_only(self, toy_geometry):
        """Test that only direct neighbours are found without diagonals."""
        tool = GridNeighbours(
            "ToyPhiEta",
            ["layer", "eta", "phi"],
            EXTREMA,
            diagonal=False,
            geometry=toy_geometry,
        )
        decoder = toy_geometry.decoder("ToyPhiEta")
        assert len(tool.neighbours(decoder.encode(layer=1, eta=5, phi=10))) == 6

    def test_edges(self, toy_geometry):
        """Test that phi wraps around and eta stops at the grid edge."""
        tool = GridNeighbours(
            "ToyPhiEta", ["eta", "phi"], EXTREMA, geometry=toy_geometry
        )
        decoder = toy_geometry.decoder("ToyPhiEta")
        neighbours = tool.neighbours(decoder.encode(eta=0, phi=63))
        coords = {(decoder.get(n, "eta"), decoder.get(n, "phi")) for n in neighbours}
        assert coords == {(0, 62), (0, 0), (1, 62), (1, 63), (1, 0)}

    def test_invalid_field(self, toy_geometry):
        """Test that the search fields must exist in the readout."""
        with pytest.raises(GeometryError):
            GridNeighbours("ToyNoLayer", ["layer"], EXTREMA, geometry=toy_geometry)


class TestMapNeighbours:
    """Test neighbours looked up in a table."""

    def test_lookup(self):
        """Test that listed neighbours are returned in order."""
        tool = MapNeighbours({1: [3, 2]})
        assert tool.neighbours(1) == [3, 2]
        assert tool.neighbours(2) == []

    def test_symmetric(self):
        """Test that symmetric tables register the links both ways."""
        tool = MapNeighbours({1: [2, 3], 2: [1]}, symmetric=True)
        assert tool.neighbours(2) == [1]
        assert tool.neighbours(3) == [1]

    def test_factory(self, geo_manager):
        """Test building neighbour tools from their configuration."""
        tool = neighbours_factory({"name": "map", "table": {1: [2]}})
        assert isinstance(tool, MapNeighbours)

        cfg = {
            "name": "grid",
            "readout": "ToyPhiEta",
            "fields": ["eta"],
            "extrema": EXTREMA,
            "cyclic": [],
        }
        assert isinstance(neighbours_factory(cfg), GridNeighbours)


class TestCellPositions:
    """Test cell position tools."""

    def test_phi_eta(self, toy_geometry):
        """Test that cells sit at their layer radius, eta and phi."""
        tool = PhiEtaCellPositions("ToyPhiEta", geometry=toy_geometry)
        decoder = toy_geometry.decoder("ToyPhiEta")
        segmentation = toy_geometry.segmentation("ToyPhiEta")
        cell_id = decoder.encode(system=5, layer=2, eta=7, phi=20)

        pos = tool.xyz(cell_id)
        assert np.hypot(pos[0], pos[1]) == pytest.approx(1200.0)
        assert pseudorapidity(pos) == pytest.approx(segmentation.eta(cell_id))
        assert azimuth(pos) == pytest.approx(segmentation.phi(cell_id))

    def test_multi(self, toy_geometry):
        """Test positions in a multi-segmented readout."""
        tool = PhiEtaCellPositions("ToyMulti", geometry=toy_geometry)
        decoder = toy_geometry.decoder("ToyMulti")
        pos = tool.xyz(decoder.encode(system=8, layer=3, eta=2, phi=0))
        assert np.hypot(pos[0], pos[1]) == pytest.approx(2300.0)
        assert pseudorapidity(pos) == pytest.approx(0.0)

    def test_fixed_radius(self, toy_geometry):
        """Test that a fixed radius replaces the layer radii."""
        tool = PhiEtaCellPositions("ToyNoLayer", radius=500.0, geometry=toy_geometry)
        pos = tool.xyz(toy_geometry.decoder("ToyNoLayer").encode(eta=5, phi=3))
        assert np.hypot(pos[0], pos[1]) == pytest.approx(500.0)

    def test_no_radius(self, toy_geometry):
        """Test that a radius is required when layer radii are unknown."""
        with pytest.raises(GeometryError):
            PhiEtaCellPositions("ToyNoLayer", geometry=toy_geometry)
        with pytest.raises(GeometryError):
            PhiEtaCellPositions("ToyXY", radius=1.0, geometry=toy_geometry)

    def test_systems(self, geo_manager):
        """Test dispatching positions on the system field."""
        tool = positions_factory(
            {
                "name": "system",
                "readout": "ToyPhiEta",
                "systems": {5: {"name": "phi_eta", "readout": "ToyPhiEta"}},
            }
        )
        assert isinstance(tool, CellPositions)

        decoder = geo_manager.decoder("ToyPhiEta")
        cell_id = decoder.encode(system=5, layer=0, eta=5, phi=0)
        pos = tool.xyz(cell_id)
        assert np.hypot(pos[0], pos[1]) == pytest.approx(1000.0)
        assert tool.xyz(cell_id) is pos

        # Unknown systems are placed at the origin
        other = decoder.encode(system=3, layer=0, eta=5, phi=0)
        np.testing.assert_array_equal(tool.xyz(other), np.zeros(3))
