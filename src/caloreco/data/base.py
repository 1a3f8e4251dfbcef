"""Module with a parent class of all data structures."""

from copy import deepcopy
from dataclasses import asdict, dataclass

import numpy as np

__all__ = ["DataBase"]


@dataclass(eq=False)
class DataBase:
    """Base class of all data structures.

    Defines basic methods shared by all data structures.
    """

    # Fixed-length attributes as (key, size) or (key, (size, dtype)) pairs
    _fixed_length_attrs = ()

    # Attributes specifying coordinates
    _pos_attrs = ()

    # Attributes which hold lists of other data structures
    _obj_list_attrs = ()

    # Euclidean axis labels
    _axes = ("x", "y", "z")

    def __post_init__(self):
        """Immediately called after building the class attributes.

        Gives default values to array-like attributes. If a default value was
        provided in the attribute definition, all instances of this class
        would point to the same memory location.
        """
        # Provide default values to the fixed-length array attributes
        for attr, size in self._fixed_length_attrs:
            if getattr(self, attr) is None:
                if not isinstance(size, tuple):
                    dtype = np.float64
                else:
                    size, dtype = size
                setattr(self, attr, np.full(size, -np.inf, dtype=dtype))
            else:
                setattr(self, attr, np.asarray(getattr(self, attr), dtype=float))

        # Provide empty lists to the object list attributes
        for attr in self._obj_list_attrs:
            if getattr(self, attr) is None:
                setattr(self, attr, [])

    def __eq__(self, other):
        """Checks that all attributes of two class instances are the same.

        This overloads the default dataclass `__eq__` method to include an
        appopriate check for vector (numpy) attributes.

        Parameters
        ----------
        other : obj
            Other instance of the same object class

        Returns
        -------
        bool
            `True` if all attributes of both objects are identical
        """
        # Check that the two objects belong to the same class
        if self.__class__ != other.__class__:
            return False

        # Check that all base attributes are identical
        for k, v in self.__dict__.items():
            v_other = getattr(other, k)
            if isinstance(v, np.ndarray):
                if v.shape != v_other.shape or (v_other != v).any():
                    return False
            elif v != v_other:
                return False

        return True

    def clone(self, **overrides):
        """Returns an independent copy of this object.

        Parameters
        ----------
        **overrides : dict, optional
            Attribute values to overwrite in the copy

        Returns
        -------
        DataBase
            Copy of the object
        """
        obj = deepcopy(self)
        for key, value in overrides.items():
            if not hasattr(obj, key):
                raise AttributeError(
                    f"`{self.__class__.__name__}` has no attribute `{key}`."
                )
            setattr(obj, key, value)

        return obj

    def as_dict(self):
        """Returns the data class as dictionary of (key, value) pairs.

        Returns
        -------
        dict
            Dictionary of attribute names and their values
        """
        return asdict(self)

    def scalar_dict(self):
        """Returns the scalar attributes of the data class as a dictionary.

        Position attributes are expanded along each axis, object lists are
        replaced by their length.

        Returns
        -------
        dict
            Dictionary of attribute names and scalar values
        """
        scalar_dict = {}
        for attr, value in self.__dict__.items():
            if attr in self._pos_attrs:
                for i, v in enumerate(value):
                    scalar_dict[f"{attr}_{self._axes[i]}"] = float(v)
            elif attr in self._obj_list_attrs:
                scalar_dict[f"num_{attr}"] = len(value)
            elif np.isscalar(value):
                scalar_dict[attr] = value
            else:
                raise ValueError(
                    f"Cannot expand the `{attr}` attribute of "
                    f"`{self.__class__.__name__}` to scalar values."
                )

        return scalar_dict

    @property
    def fixed_length_attrs(self):
        """Fetches the dictionary of fixed-length array attributes.

        Returns
        -------
        Dict[str, int]
            Dictionary which maps fixed-length attributes onto their length
        """
        return dict(self._fixed_length_attrs)
