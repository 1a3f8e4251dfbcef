"""Decoder for bit-packed cell identifiers.

Cell IDs pack several integer fields into a single 64-bit word. The layout
is described by a string of comma-separated `name:width` (or
`name:offset:width`) entries, e.g. `"system:4,layer:5,eta:-10,phi:10"`.
Fields are laid out from the least significant bit up; a negative width
declares a signed field.
"""

from dataclasses import dataclass
from typing import Dict, List

from caloreco.config.errors import GeometryError

__all__ = ["BitField", "BitFieldCoder"]

# Number of bits available in a cell ID
CELL_ID_BITS = 64


@dataclass
class BitField:
    """Single field of a bit-packed identifier.

    Attributes
    ----------
    name : str
        Name of the field
    offset : int
        Position of the least significant bit of the field
    width : int
        Number of bits of the field
    signed : bool
        Whether the field stores a two's complement signed value
    """

    name: str
    offset: int
    width: int
    signed: bool = False

    @property
    def mask(self) -> int:
        """Mask which selects the bits of this field in a cell ID."""
        return ((1 << self.width) - 1) << self.offset

    @property
    def min_value(self) -> int:
        """Smallest value this field can store."""
        return -(1 << (self.width - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        """Largest value this field can store."""
        if self.signed:
            return (1 << (self.width - 1)) - 1
        return (1 << self.width) - 1

    def value(self, cell_id: int) -> int:
        """Decodes the value of this field from a cell ID.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        int
            Field value
        """
        value = (int(cell_id) & self.mask) >> self.offset
        if self.signed and value & (1 << (self.width - 1)):
            value -= 1 << self.width

        return value

    def encode(self, cell_id: int, value: int) -> int:
        """Sets the value of this field in a cell ID.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID
        value : int
            Field value to store

        Returns
        -------
        int
            Updated cell ID
        """
        value = int(value)
        if value < self.min_value or value > self.max_value:
            raise ValueError(
                f"Value {value} out of range for field `{self.name}` "
                f"[{self.min_value}, {self.max_value}]."
            )

        bits = (value & ((1 << self.width) - 1)) << self.offset
        return (int(cell_id) & ~self.mask) | bits


class BitFieldCoder:
    """Encodes and decodes bit-packed cell identifiers.

    Attributes
    ----------
    descriptor : str
        String description of the bit field layout
    fields : List[BitField]
        Ordered list of fields
    """

    def __init__(self, descriptor: str):
        """Parse the bit field descriptor.

        Parameters
        ----------
        descriptor : str
            Comma-separated list of `name:width` or `name:offset:width`
        """
        self.descriptor = descriptor
        self.fields: List[BitField] = []
        self._index: Dict[str, BitField] = {}

        offset = 0
        for token in descriptor.split(","):
            parts = [p.strip() for p in token.strip().split(":")]
            if len(parts) == 2:
                name, width = parts[0], int(parts[1])
            elif len(parts) == 3:
                name, offset, width = parts[0], int(parts[1]), int(parts[2])
            else:
                raise GeometryError(
                    f"Cannot parse bit field `{token}` in descriptor `{descriptor}`."
                )

            if name in self._index:
                raise GeometryError(f"Duplicate bit field `{name}` in `{descriptor}`.")

            field = BitField(name, offset, abs(width), width < 0)
            if field.width == 0 or field.offset + field.width > CELL_ID_BITS:
                raise GeometryError(
                    f"Bit field `{name}` does not fit in a {CELL_ID_BITS}-bit ID."
                )
            for other in self.fields:
                if field.mask & other.mask:
                    raise GeometryError(
                        f"Bit fields `{other.name}` and `{name}` overlap."
                    )

            self.fields.append(field)
            self._index[name] = field
            offset = field.offset + field.width

    def __len__(self):
        """Number of fields in the layout."""
        return len(self.fields)

    def __getitem__(self, name: str) -> BitField:
        """Fetches a field by name.

        Parameters
        ----------
        name : str
            Name of the field

        Returns
        -------
        BitField
            Field description
        """
        if name not in self._index:
            raise GeometryError(
                f"Bit field `{name}` not found in `{self.descriptor}`."
            )

        return self._index[name]

    @property
    def field_names(self) -> List[str]:
        """Ordered list of the field names."""
        return [f.name for f in self.fields]

    def has_field(self, name: str) -> bool:
        """Checks whether a field is part of the layout.

        Parameters
        ----------
        name : str
            Name of the field

        Returns
        -------
        bool
            `True` if the field exists
        """
        return name in self._index

    def get(self, cell_id: int, name: str) -> int:
        """Decodes one field of a cell ID.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID
        name : str
            Name of the field

        Returns
        -------
        int
            Field value
        """
        return self[name].value(cell_id)

    def set(self, cell_id: int, name: str, value: int) -> int:
        """Returns a copy of a cell ID with one field overwritten.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID
        name : str
            Name of the field
        value : int
            New field value

        Returns
        -------
        int
            Updated cell ID
        """
        return self[name].encode(cell_id, value)

    def encode(self, **values: int) -> int:
        """Builds a cell ID from field values (missing fields are zero).

        Parameters
        ----------
        **values : int
            Value of each field, by name

        Returns
        -------
        int
            Bit-packed cell ID
        """
        cell_id = 0
        for name, value in values.items():
            cell_id = self.set(cell_id, name, value)

        return cell_id

    def decode(self, cell_id: int) -> Dict[str, int]:
        """Decodes all fields of a cell ID.

        Parameters
        ----------
        cell_id : int
            Bit-packed cell ID

        Returns
        -------
        Dict[str, int]
            Value of each field, by name
        """
        return {f.name: f.value(cell_id) for f in self.fields}
