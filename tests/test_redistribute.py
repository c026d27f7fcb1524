"""
Unit Tests for attribute validation and extensive redistribution.
"""

import numpy as np
import pandas as pd
import pytest

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.overlay import build_weights
from neighborhood_history.redistribute import redistribute, totals, validate_attributes


class TestValidateAttributes:
    """Tests for validate_attributes."""

    def test_validate_when_numeric_counts_then_passes(self, tracts):
        """Integer count columns are accepted."""
        validate_attributes(tracts, ["total", "black"])

    def test_validate_when_empty_list_then_raises(self, tracts):
        """At least one attribute is required."""
        with pytest.raises(ConfigurationError, match="No attributes"):
            validate_attributes(tracts, [])

    def test_validate_when_missing_then_raises(self, tracts):
        """Unknown attribute names are listed."""
        with pytest.raises(ConfigurationError, match=r"\['asian'\]"):
            validate_attributes(tracts, ["total", "asian"])

    def test_validate_when_repeated_then_raises(self, tracts):
        """The same attribute cannot be requested twice."""
        with pytest.raises(ConfigurationError, match="more than once"):
            validate_attributes(tracts, ["total", "total"])

    def test_validate_when_text_column_then_raises(self, tracts):
        """Text content is not a count."""
        tracts = tracts.assign(total=["1", "2", "3", "4"])
        with pytest.raises(ConfigurationError, match="not numeric"):
            validate_attributes(tracts, ["total"])

    def test_validate_when_bool_column_then_raises(self, tracts):
        """Flags are not counts either."""
        tracts = tracts.assign(flag=[True, False, True, False])
        with pytest.raises(ConfigurationError, match="not numeric"):
            validate_attributes(tracts, ["flag"])

    def test_validate_when_missing_values_then_raises(self, tracts):
        """NaN counts are rejected rather than treated as zero."""
        tracts = tracts.assign(total=[1.0, np.nan, 3.0, 4.0])
        with pytest.raises(ConfigurationError, match="1 missing values"):
            validate_attributes(tracts, ["total"])

    def test_validate_when_infinite_then_raises(self, tracts):
        """Infinite counts would compare equal to themselves and pass verification."""
        tracts = tracts.assign(total=[1.0, np.inf, 3.0, 4.0])
        with pytest.raises(ConfigurationError, match="1 infinite values"):
            validate_attributes(tracts, ["total"])

    def test_validate_when_negative_then_raises(self, tracts):
        """Counts cannot be negative."""
        tracts = tracts.assign(total=[1, -2, 3, 4])
        with pytest.raises(ConfigurationError, match="negative"):
            validate_attributes(tracts, ["total"])


class TestRedistribute:
    """Tests for redistribute."""

    def test_redistribute_when_grid_then_sums_weighted_values(self, tracts, neighborhoods):
        """Every strip receives half of each tract it crosses."""
        weights = build_weights(tracts, neighborhoods, "tract", "neighborhood")
        values = pd.DataFrame(tracts[["tract", "total", "black"]]).set_index("tract")

        table = redistribute(weights, values, ["total", "black"], neighborhoods["neighborhood"])

        assert table.index.name == "neighborhood"
        assert list(table.index) == ["A", "B", "C"]
        assert table["total"].to_dict() == pytest.approx({"A": 200.0, "B": 500.0, "C": 300.0})
        assert table["black"].to_dict() == pytest.approx({"A": 20.0, "B": 50.0, "C": 30.0})

    def test_redistribute_when_target_untouched_then_zero(self):
        """Targets without weights default to 0."""
        weights = pd.DataFrame({
            "source_id": ["s1"], "target_id": ["n1"], "area": [1.0], "fraction": [1.0],
        })
        values = pd.DataFrame({"pop": [7]}, index=pd.Index(["s1"], name="tract"))

        table = redistribute(weights, values, ["pop"], pd.Series(["n1", "n2"], name="nbhd"))

        assert table["pop"].to_dict() == {"n1": 7.0, "n2": 0.0}

    def test_redistribute_when_fractional_then_not_rounded(self):
        """One person split three ways stays fractional."""
        weights = pd.DataFrame({
            "source_id": ["s1", "s1", "s1"],
            "target_id": ["a", "b", "c"],
            "area": [1.0, 1.0, 1.0],
            "fraction": [1 / 3, 1 / 3, 1 / 3],
        })
        values = pd.DataFrame({"pop": [1]}, index=pd.Index(["s1"], name="tract"))

        table = redistribute(weights, values, ["pop"], pd.Series(["a", "b", "c"], name="nbhd"))

        assert table["pop"].tolist() == pytest.approx([1 / 3] * 3)
        assert table["pop"].dtype == float

    def test_redistribute_when_integer_ids_then_keeps_id_type(self):
        """Integer identifiers survive the grouping."""
        weights = pd.DataFrame({
            "source_id": [10, 10], "target_id": [1, 2], "area": [3.0, 1.0], "fraction": [0.75, 0.25],
        })
        values = pd.DataFrame({"pop": [400]}, index=pd.Index([10], name="tract"))

        table = redistribute(weights, values, ["pop"], pd.Series([1, 2, 3], name="nbhd"))

        assert table["pop"].to_dict() == {1: 300.0, 2: 100.0, 3: 0.0}


class TestTotals:
    """Tests for totals."""

    def test_totals_when_called_then_returns_float_sums(self, tracts):
        """Column sums per attribute."""
        result = totals(tracts, ["total", "black"])
        assert result.to_dict() == {"total": 1000.0, "black": 100.0}
        assert result.dtype == float
