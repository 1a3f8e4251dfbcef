"""Sets up fixtures general to the entire test suite of this package.

This file is read during the collection phase of pytest when running anything
inside this directory.
"""

import numpy as np
import pytest

from caloreco.data import CaloCluster, CaloHit
from caloreco.geo import GeoManager, Geometry

# Toy detector used throughout the tests. The main readout is a 0.1 x 2pi/64
# eta-phi grid whose cell centers sit at eta = -0.5 + 0.1 * i, so that cell
# i = 5 is centered at eta = 0.
TOY_PHI_OFFSET = -np.pi + np.pi / 64

TOY_READOUTS = {
    "ToyPhiEta": {
        "id_spec": "system:4,layer:3,eta:-8,phi:8",
        "system": 5,
        "segmentation": {
            "name": "phi_eta",
            "grid_size_eta": 0.1,
            "phi_bins": 64,
            "offset_eta": -0.5,
            "offset_phi": TOY_PHI_OFFSET,
        },
        "layer_radii": [1000.0, 1100.0, 1200.0, 1300.0],
    },
    "ToyMulti": {
        "id_spec": "system:4,layer:3,eta:-8,phi:8",
        "system": 8,
        "segmentation": {
            "name": "multi",
            "segmentations": [
                {
                    "key_min": 0,
                    "key_max": 1,
                    "segmentation": {
                        "name": "phi_eta",
                        "grid_size_eta": 0.1,
                        "phi_bins": 64,
                        "offset_eta": -0.5,
                        "offset_phi": TOY_PHI_OFFSET,
                    },
                },
                {
                    "key_min": 2,
                    "key_max": 3,
                    "segmentation": {
                        "name": "phi_eta",
                        "grid_size_eta": 0.2,
                        "phi_bins": 32,
                        "offset_eta": -0.4,
                        "offset_phi": -np.pi + np.pi / 32,
                    },
                },
            ],
        },
        "layer_radii": [2000.0, 2100.0, 2200.0, 2300.0],
    },
    "ToyNoLayer": {
        "id_spec": "system:4,eta:-8,phi:8",
        "segmentation": {
            "name": "phi_eta",
            "grid_size_eta": 0.1,
            "phi_bins": 64,
            "offset_eta": -0.5,
            "offset_phi": TOY_PHI_OFFSET,
        },
    },
    "ToyXY": {
        "id_spec": "system:4,layer:3,x:-8,y:-8",
        "segmentation": {
            "name": "cartesian_xy",
            "grid_size_x": 5.0,
            "grid_size_y": 5.0,
        },
    },
    "ToyBadMulti": {
        "id_spec": "system:4,layer:3,eta:-8,phi:8,x:-8,y:-8",
        "segmentation": {
            "name": "multi",
            "segmentations": [
                {
                    "key_min": 0,
                    "key_max": 3,
                    "segmentation": {
                        "name": "cartesian_xy",
                        "grid_size_x": 5.0,
                        "grid_size_y": 5.0,
                    },
                },
            ],
        },
    },
}


class StaticPositions:
    """Cell position tool which reads positions from a table."""

    def __init__(self, table):
        self.table = {k: np.asarray(v, dtype=np.float64) for k, v in table.items()}

    def xyz(self, cell_id):
        return self.table[cell_id]


@pytest.fixture(name="toy_geometry")
def fixture_toy_geometry():
    """Builds the toy detector geometry."""
    return Geometry(name="toy", tag="toy_v1", version="1.0", readouts=TOY_READOUTS)


@pytest.fixture(name="geo_manager")
def fixture_geo_manager(toy_geometry):
    """Registers the toy geometry as the current geometry instance.

    The instance is removed once the test is done.
    """
    GeoManager.reset()
    GeoManager.set_instance(toy_geometry)
    yield toy_geometry
    GeoManager.reset()


@pytest.fixture(name="make_cell")
def fixture_make_cell(toy_geometry):
    """Returns a function which builds a cell of a toy readout."""

    def make_cell(i_eta, i_phi, energy=1.0, layer=0, cell_type=0, readout="ToyPhiEta"):
        decoder = toy_geometry.decoder(readout)
        system = toy_geometry.readout(readout).system or 0
        fields = {"system": system, "eta": i_eta, "phi": i_phi}
        if decoder.has_field("layer"):
            fields["layer"] = layer
        cell_id = decoder.encode(**fields)

        return CaloHit(cell_id=cell_id, energy=energy, type=cell_type)

    return make_cell


@pytest.fixture(name="split_table")
def fixture_split_table():
    """Neighbour table of a cluster with two seeds (cells 1 and 2).

    Each seed is surrounded by five neighbour-type cells which share its
    position. Cell 3 touches both seeds, cell 4 only touches the second one.
    """
    table = {
        1: [11, 12, 13, 14, 15, 3],
        2: [21, 22, 23, 24, 25, 4, 3],
    }
    positions = {1: (1.0, 1.0, 0.0), 2: (1.0, -1.0, 0.0)}
    positions.update({i: (1.0, 1.0, 0.0) for i in range(11, 16)})
    positions.update({i: (1.0, -1.0, 0.0) for i in range(21, 26)})
    positions.update({3: (1.0, 0.0, 0.0), 4: (1.0, 0.0, 0.0)})

    return table, StaticPositions(positions)


@pytest.fixture(name="split_cluster")
def fixture_split_cluster():
    """Returns a function which builds the cluster of the `split_table` fixture."""

    def split_cluster(energy_4=1.0, extra=()):
        hits = [CaloHit(cell_id=1, energy=10.0, type=1)]
        hits.append(CaloHit(cell_id=2, energy=10.0, type=1))
        hits.extend(CaloHit(cell_id=i, energy=1.0, type=2) for i in range(11, 16))
        hits.extend(CaloHit(cell_id=i, energy=1.0, type=2) for i in range(21, 26))
        hits.append(CaloHit(cell_id=3, energy=1.0, type=2))
        hits.append(CaloHit(cell_id=4, energy=energy_4, type=2))
        hits.extend(extra)
        energy = sum(h.energy for h in hits)

        return CaloCluster(type=0, energy=energy, position=np.zeros(3), hits=hits)

    return split_cluster
