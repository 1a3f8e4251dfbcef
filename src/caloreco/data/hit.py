"""Module with a data class object which represents a calorimeter cell.

This mirrors the content of an `edm4hep.CalorimeterHit` which is relevant
to tower building and cluster splitting.
"""

from dataclasses import dataclass

import numpy as np

from .base import DataBase

__all__ = ["CaloHit"]


@dataclass(eq=False)
class CaloHit(DataBase):
    """Calorimeter cell information.

    Attributes
    ----------
    cell_id : int
        Bit-packed geometric cell identifier
    energy : float
        Energy deposited in the cell
    type : int
        Pre-classification of the cell (1: seed, 2: neighbour, 3/4: other)
    time : float
        Time of the energy deposition
    position : np.ndarray
        (3) Position of the cell center, if known
    """

    cell_id: int = 0
    energy: float = 0.0
    type: int = 0
    time: float = 0.0
    position: np.ndarray = None

    # Fixed-length attributes
    _fixed_length_attrs = (("position", 3),)

    # Attributes specifying coordinates
    _pos_attrs = ("position",)

    def __str__(self):
        """Human-readable string representation of the cell.

        Returns
        -------
        str
            Basic information about the cell
        """
        return (
            f"CaloHit(cell_id={self.cell_id}, energy={self.energy:0.3f}, "
            f"type={self.type})"
        )
