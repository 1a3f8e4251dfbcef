"""Module which contains enumerated variables shared across the project."""

from enum import Enum, IntEnum

from .globals import *

__all__ = [
    "enum_factory",
    "CellTypeEnum",
    "ClusterTypeEnum",
    "SegmentationType",
    "WindowShape",
]


def enum_factory(enum, value):
    """Parses an enumerated object from string name(s) to value(s).

    Parameters
    ----------
    enum : str
        Name of the enumerated type
    value : Union[str, List[str]]
        Name or names of the enumerated objects (from config)

    Returns
    -------
    Union[int, List[int]]
        Value or values of the enumerated objects
    """
    # Get the enumerated type
    ENUM_DICT = {
        "cell": CellTypeEnum,
        "cluster": ClusterTypeEnum,
        "window": WindowShape,
    }
    if enum not in ENUM_DICT:
        raise ValueError(
            f"Enumerated type not recognized: {enum}. Must be one of "
            f"{list(ENUM_DICT.keys())}."
        )
    enum = ENUM_DICT[enum]

    # Translate enumerated strings into values
    if isinstance(value, str):
        if not hasattr(enum, value.upper()):
            raise ValueError(
                f"Enumerated object not recognized: {value}. Must be one "
                f"of {[e.name for e in enum]}."
            )

        return getattr(enum, value.upper()).value

    values = []
    for v in value:
        if not hasattr(enum, v.upper()):
            raise ValueError(
                f"Enumerated object not recognized: {v}. Must be one "
                f"of {[e.name for e in enum]}."
            )
        values.append(getattr(enum, v.upper()).value)

    return values


class CellTypeEnum(IntEnum):
    """Enumerates the pre-classification types of calorimeter cells."""

    SEED = SEED_CELL
    NEIGHBOUR = NEIGH_CELL
    LAST = LAST_CELL
    LEFTOVER = LEFT_CELL


class ClusterTypeEnum(IntEnum):
    """Enumerates the cluster types produced by the splitting procedure."""

    UNSPLIT = UNSPLIT_CLUST
    SPLIT = SPLIT_CLUST
    LEFTOVER = LEFT_CLUST


class SegmentationType(Enum):
    """Kinds of readout segmentation a tower tool can consume.

    `WRONG` is an explicit variant for segmentations which exist in the
    geometry but cannot be mapped onto an eta-phi tower grid.
    """

    PHI_ETA = "phi_eta"
    MULTI = "multi"
    WRONG = "wrong"


class WindowShape(Enum):
    """Shapes of the tower window used to attach cells to a cluster."""

    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
