"""Tests for the enumerated types."""

import pytest

from caloreco.utils.enums import (
    CellTypeEnum,
    ClusterTypeEnum,
    WindowShape,
    enum_factory,
)


class TestEnumFactory:
    """Test parsing enumerated values from their names."""

    def test_single(self):
        """Test parsing one name, regardless of case."""
        assert enum_factory("cell", "seed") == CellTypeEnum.SEED == 1
        assert enum_factory("cluster", "LEFTOVER") == ClusterTypeEnum.LEFTOVER == 3
        assert enum_factory("window", "ellipse") == WindowShape.ELLIPSE.value

    def test_list(self):
        """Test parsing a list of names."""
        assert enum_factory("cell", ["neighbour", "leftover"]) == [2, 4]

    @pytest.mark.parametrize(
        "enum, value",
        [("particle", "seed"), ("cell", "muon"), ("cell", ["seed", "muon"])],
    )
    def test_invalid(self, enum, value):
        """Test that unknown types and names raise."""
        with pytest.raises(ValueError):
            enum_factory(enum, value)
