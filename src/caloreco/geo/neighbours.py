"""Tools which return the neighbours of a calorimeter cell.

Two flavours are provided:
- :class:`GridNeighbours` derives the neighbours of a cell from its bit
  fields, stepping by one unit along each index field
- :class:`MapNeighbours` looks neighbours up in an explicit table
"""

import itertools
from typing import Dict, Iterable, List, Optional, Sequence

from caloreco.config.errors import GeometryError
from caloreco.utils.factory import instantiate

from .base import Geometry
from .manager import GeoManager

__all__ = ["GridNeighbours", "MapNeighbours", "neighbours_factory"]


class GridNeighbours:
    """Neighbours of a cell on a regular grid of bit field indexes.

    Attributes
    ----------
    decoder : BitFieldCoder
        Decoder of the cell IDs of the readout
    fields : List[str]
        Bit fields along which neighbours are searched
    extrema : Dict[str, Tuple[int, int]]
        Inclusive range of valid values of each field
    cyclic : List[str]
        Fields whose first and last values are adjacent
    diagonal : bool
        Whether cells which differ along several fields are neighbours
    """

    name = "grid"

    def __init__(
        self,
        readout: str,
        fields: Sequence[str],
        extrema: Dict[str, Sequence[int]],
        cyclic: Sequence[str] = ("phi",),
        diagonal: bool = True,
        geometry: Optional[Geometry] = None,
    ):
        """Initialize the neighbour search parameters.

        Parameters
        ----------
        readout : str
            Name of the readout the cells belong to
        fields : List[str]
            Bit fields along which neighbours are searched
        extrema : Dict[str, List[int]]
            Inclusive `[min, max]` range of valid values of each field
        cyclic : List[str], default ('phi',)
            Fields whose first and last values are adjacent
        diagonal : bool, default True
            Whether cells which differ along several fields are neighbours
        geometry : Geometry, optional
            Geometry to fetch the readout from. If not specified, the
            geometry held by :class:`GeoManager` is used
        """
        geometry = geometry or GeoManager.get_instance()
        self.decoder = geometry.decoder(readout)
        self.fields = list(fields)
        self.cyclic = list(cyclic)
        self.diagonal = diagonal

        self.extrema = {}
        for field in self.fields:
            if not self.decoder.has_field(field):
                raise GeometryError(
                    f"Neighbour field `{field}` not in readout `{readout}`."
                )
            if field not in extrema:
                raise GeometryError(f"No extrema provided for field `{field}`.")
            low, high = extrema[field]
            self.extrema[field] = (int(low), int(high))

        for field in self.cyclic:
            if field not in self.fields:
                raise GeometryError(
                    f"Cyclic field `{field}` is not a neighbour search field."
                )

        # Build the list of index steps once
        if self.diagonal:
            steps = itertools.product((-1, 0, 1), repeat=len(self.fields))
            self.steps = [s for s in steps if any(s)]
        else:
            self.steps = []
            for i in range(len(self.fields)):
                for delta in (-1, 1):
                    step = [0] * len(self.fields)
                    step[i] = delta
                    self.steps.append(tuple(step))

    def neighbours(self, cell_id: int) -> List[int]:
        """List of neighbours of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        List[int]
            Ordered list of unique neighbour cell IDs
        """
        values = [self.decoder.get(cell_id, f) for f in self.fields]
        result, seen = [], set()
        for step in self.steps:
            neighbour = cell_id
            for field, value, delta in zip(self.fields, values, step):
                if delta == 0:
                    continue
                low, high = self.extrema[field]
                value = value + delta
                if field in self.cyclic:
                    value = low + (value - low) % (high - low + 1)
                elif value < low or value > high:
                    neighbour = None
                    break
                neighbour = self.decoder.set(neighbour, field, value)

            if neighbour is not None and neighbour != cell_id and neighbour not in seen:
                seen.add(neighbour)
                result.append(neighbour)

        return result


class MapNeighbours:
    """Neighbours of a cell looked up in an explicit table.

    Attributes
    ----------
    table : Dict[int, List[int]]
        Ordered list of neighbours of each cell
    """

    name = "map"

    def __init__(self, table: Dict[int, Iterable[int]], symmetric: bool = False):
        """Initialize the neighbour table.

        Parameters
        ----------
        table : Dict[int, Iterable[int]]
            Neighbours of each cell
        symmetric : bool, default False
            If `True`, every listed link is also registered the other way
        """
        self.table = {int(k): [int(n) for n in v] for k, v in table.items()}
        if symmetric:
            for cell_id, neighbours in list(self.table.items()):
                for neighbour in neighbours:
                    back = self.table.setdefault(neighbour, [])
                    if cell_id not in back:
                        back.append(cell_id)

    def neighbours(self, cell_id: int) -> List[int]:
        """List of neighbours of a cell.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        List[int]
            Ordered list of neighbour cell IDs (empty if the cell is unknown)
        """
        return list(self.table.get(int(cell_id), []))


def neighbours_factory(cfg, **kwargs):
    """Instantiates a neighbour tool from a configuration block.

    Parameters
    ----------
    cfg : dict
        Neighbour tool configuration, with its type under `name`
    **kwargs : dict, optional
        Additional parameters to pass to the tool

    Returns
    -------
    Union[GridNeighbours, MapNeighbours]
        Initialized neighbour tool
    """
    tools = {cls.name: cls for cls in (GridNeighbours, MapNeighbours)}

    return instantiate(tools, cfg, **kwargs)
