"""Module with a data class object which represents a calorimeter cluster."""

from dataclasses import dataclass
from typing import List

import numpy as np

from .base import DataBase
from .hit import CaloHit

__all__ = ["CaloCluster"]


@dataclass(eq=False)
class CaloCluster(DataBase):
    """Calorimeter cluster information.

    Attributes
    ----------
    id : int
        Index of the cluster in its collection
    type : int
        Cluster type (1: unsplit, 2: split, 3: leftover cells)
    energy : float
        Total energy of the cluster
    position : np.ndarray
        (3) Energy-weighted position of the cluster
    hits : List[CaloHit]
        Cells which make up the cluster
    """

    id: int = -1
    type: int = 0
    energy: float = 0.0
    position: np.ndarray = None
    hits: List[CaloHit] = None

    # Fixed-length attributes
    _fixed_length_attrs = (("position", 3),)

    # Attributes specifying coordinates
    _pos_attrs = ("position",)

    # Attributes which hold lists of other data structures
    _obj_list_attrs = ("hits",)

    def __str__(self):
        """Human-readable string representation of the cluster.

        Returns
        -------
        str
            Basic information about the cluster
        """
        return (
            f"CaloCluster(id={self.id}, type={self.type}, "
            f"energy={self.energy:0.3f}, num_hits={self.num_hits})"
        )

    @property
    def num_hits(self):
        """Number of cells in the cluster.

        Returns
        -------
        int
            Number of cells
        """
        return len(self.hits)

    @property
    def cell_ids(self):
        """Cell IDs of the cells in the cluster, in order.

        Returns
        -------
        np.ndarray
            (N) Cell IDs
        """
        return np.array([hit.cell_id for hit in self.hits], dtype=np.uint64)

    @property
    def hit_energy(self):
        """Sum of the energies of the cells in the cluster.

        Returns
        -------
        float
            Summed cell energy
        """
        return float(np.sum([hit.energy for hit in self.hits]))

    def add_hit(self, hit):
        """Appends a cell to the cluster.

        Parameters
        ----------
        hit : CaloHit
            Cell to attach to the cluster
        """
        self.hits.append(hit)
