"""
Tests for summary metrics, verification logging and charts.
"""

import logging
import math

import pandas as pd
import pytest

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.report import (
    log_verification,
    plot_timeline,
    summarize,
    summary_frame,
    verification_frame,
)
from neighborhood_history.timeline import YearEstimate, combine_years
from neighborhood_history.verify import verify_conservation


def _table(values):
    return pd.DataFrame(
        {"total": values},
        index=pd.Index([f"n{i}" for i in range(len(values))], name="neighborhood"),
    )


class TestSummarize:
    """Tests for summarize."""

    def test_summarize_when_equal_populations_then_no_inequality(self):
        """Identical neighborhoods have CV 0, Gini 0 and ratio 1."""
        metrics = summarize(_table([100, 100, 100, 100]), "total")

        assert metrics["total"] == 400
        assert metrics["coefficient_of_variation"] == pytest.approx(0)
        assert metrics["gini_coefficient"] == pytest.approx(0)
        assert metrics["extremity_ratio"] == pytest.approx(1)

    def test_summarize_when_unequal_then_positive_gini(self):
        """All population in one neighborhood gives the maximum Gini for n=4."""
        metrics = summarize(_table([0, 0, 0, 100]), "total")

        assert metrics["gini_coefficient"] == pytest.approx(0.75)
        assert math.isinf(metrics["extremity_ratio"])

    def test_summarize_when_two_to_one_then_ratio_two(self):
        """Extremity ratio is max over min."""
        metrics = summarize(_table([50, 100]), "total")
        assert metrics["extremity_ratio"] == pytest.approx(2)
        assert metrics["mean"] == pytest.approx(75)


class TestLogVerification:
    """Tests for log_verification."""

    def test_log_when_expected_shortfall_then_warning_with_note(self, caplog):
        """Declared shortfalls are warned about, quoting the note."""
        report = verify_conservation({"total": 1000}, {"total": 988}, expected_discrepancy=12)

        with caplog.at_level(logging.INFO):
            log_verification(1950, report, note="tract geometry missing")

        record = caplog.records[0]
        assert record.levelno == logging.WARNING
        assert "tract geometry missing" in record.getMessage()

    def test_log_when_mismatch_then_error(self, caplog):
        """Mismatches are logged as errors."""
        report = verify_conservation({"total": 1000}, {"total": 900})

        with caplog.at_level(logging.INFO):
            log_verification(1960, report)

        assert caplog.records[0].levelno == logging.ERROR
        assert "off by 100.00" in caplog.records[0].getMessage()

    def test_log_when_conserved_then_info(self, caplog):
        """Clean attributes are logged at INFO."""
        report = verify_conservation({"total": 1000}, {"total": 1000})

        with caplog.at_level(logging.INFO):
            log_verification(1970, report)

        assert caplog.records[0].levelno == logging.INFO


class TestVerificationFrame:
    """Tests for verification_frame."""

    def test_frame_when_several_years_then_year_column_first(self):
        """Verdict rows are stacked with their year."""
        estimates = [
            YearEstimate(1950, _table([1]), verify_conservation({"total": 1}, {"total": 1})),
            YearEstimate(1960, _table([2]), verify_conservation({"total": 3}, {"total": 2})),
        ]
        frame = verification_frame(estimates)

        assert list(frame.columns[:2]) == ["year", "attribute"]
        assert list(frame["verdict"]) == ["conserved", "mismatch"]


class TestSummaryFrame:
    """Tests for summary_frame."""

    def test_summary_when_several_years_then_one_row_per_year_and_attribute(self):
        """Metrics are tabulated for every year, not only the latest."""
        ok = verify_conservation({"total": 1}, {"total": 1})
        frame = summary_frame([
            YearEstimate(1950, _table([100, 100]), ok),
            YearEstimate(1960, _table([100, 200]), ok),
        ])

        assert list(frame[["year", "attribute"]].itertuples(index=False, name=None)) == [
            (1950, "total"), (1960, "total"),
        ]
        assert list(frame["total"]) == [200, 300]
        assert frame["extremity_ratio"].tolist() == pytest.approx([1.0, 2.0])


class TestPlotTimeline:
    """Tests for plot_timeline."""

    def _combined(self):
        ok = verify_conservation({"total": 1}, {"total": 1})
        return combine_years([
            YearEstimate(1950, _table([10, 20]), ok),
            YearEstimate(1960, _table([15, 25]), ok),
        ])

    def test_plot_when_attribute_present_then_writes_png(self, tmp_path):
        """The chart file is written."""
        path = tmp_path / "total.png"
        plot_timeline(self._combined(), "total", path)
        assert path.exists()
        assert path.stat().st_size > 0

    def test_plot_when_attribute_absent_then_raises(self, tmp_path):
        """Unknown attributes are a configuration error."""
        with pytest.raises(ConfigurationError, match="black"):
            plot_timeline(self._combined(), "black", tmp_path / "black.png")
