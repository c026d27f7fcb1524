"""
Historical neighborhood population estimates.

Loads the fixed neighborhood boundaries and every census vintage in the
catalog, interpolates each year's tract counts onto the neighborhoods, stops
at the first year whose totals are not conserved, and writes the combined
time series.
"""

import logging
import traceback

from neighborhood_history.errors import NeighborhoodHistoryError
from neighborhood_history.neighborhoods import load_neighborhoods
from neighborhood_history.report import log_verification, plot_timeline, summary_frame, verification_frame
from neighborhood_history.settings import Settings
from neighborhood_history.timeline import combine_years, estimate_year
from neighborhood_history.vintages import load_catalog

logger = logging.getLogger(__name__)

ESTIMATES_CSV = "neighborhood_estimates.csv"
VERIFICATION_CSV = "verification.csv"
SUMMARY_CSV = "summary.csv"


def run(settings=None):
    """Estimate every catalogued year and write the outputs; returns the combined table."""
    settings = settings or Settings()

    neighborhoods = load_neighborhoods(
        settings.neighborhoods_file, settings.neighborhood_id, settings.projected_crs
    )
    catalog = load_catalog(settings.catalog_file)

    estimates = []
    for spec in catalog.vintages:
        estimate = estimate_year(spec, neighborhoods, settings.neighborhood_id, settings)
        log_verification(estimate.year, estimate.report, estimate.note)
        # Downstream tables assume no population was invented or lost
        estimate.report.raise_for_failures(year=estimate.year)
        estimates.append(estimate)

    combined = combine_years(estimates)

    output_dir = settings.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    combined.to_csv(output_dir / ESTIMATES_CSV)
    verification_frame(estimates).to_csv(output_dir / VERIFICATION_CSV, index=False)
    logger.info(f"Results saved to {output_dir / ESTIMATES_CSV}")

    summary = summary_frame(estimates)
    summary.to_csv(output_dir / SUMMARY_CSV, index=False)
    latest = summary[summary["year"] == estimates[-1].year]
    for row in latest.itertuples(index=False):
        logger.info(
            f"{row.year} {row.attribute}: total {row.total:,.0f}, "
            f"CV {row.coefficient_of_variation:.1f}%, Gini {row.gini_coefficient:.3f}"
        )

    attributes = sorted({a for e in estimates for a in e.table.columns})
    for attribute in attributes:
        plot_timeline(combined, attribute, output_dir / f"{attribute}_by_year.png")

    return combined


def main():
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        combined = run(settings)
    except (NeighborhoodHistoryError, FileNotFoundError) as e:
        logger.error(f"Error during estimation: {e}")
        logger.debug(traceback.format_exc())
        raise SystemExit(1)

    logger.info(f"Estimation complete! {len(combined)} neighborhoods, {len(combined.columns)} year columns.")


if __name__ == "__main__":
    main()
