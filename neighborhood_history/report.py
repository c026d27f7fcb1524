import logging

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.timeline import to_long
from neighborhood_history.verify import Verdict, summarize_verdicts

logger = logging.getLogger(__name__)


def summarize(table, column):
    """Distribution metrics for one count column across neighborhoods."""
    values = table[column].astype(float)

    total = values.sum()
    mean = values.mean()
    std = values.std()

    # Coefficient of Variation
    cv = (std / mean) * 100 if mean > 0 else 0.0

    # Extremity Ratio
    min_value = values.min()
    extremity_ratio = values.max() / min_value if min_value > 0 else float("inf")

    # Gini Coefficient
    sorted_values = np.sort(values.to_numpy())
    n = len(sorted_values)
    if n > 1 and sorted_values.sum() > 0:
        index = np.arange(1, n + 1)
        gini = (2 * np.sum(index * sorted_values)) / (n * np.sum(sorted_values)) - (n + 1) / n
    else:
        gini = 0.0

    return {
        "total": total,
        "mean": mean,
        "std": std,
        "coefficient_of_variation": cv,
        "extremity_ratio": extremity_ratio,
        "gini_coefficient": gini,
    }


def log_verification(year, report, note=None):
    """Log one line per attribute verdict."""
    for v in report:
        if v.verdict is Verdict.CONSERVED:
            logger.info(f"{year} {v.attribute}: {v.source_total:,.0f} conserved")
        elif v.verdict is Verdict.EXPECTED_SHORTFALL:
            logger.warning(
                f"{year} {v.attribute}: {v.discrepancy:,.2f} short of {v.source_total:,.0f}, "
                f"as declared ({note or 'no note given'})"
            )
        else:
            expected = "" if v.expected_discrepancy is None else f" (expected {v.expected_discrepancy:,.2f})"
            logger.error(
                f"{year} {v.attribute}: source total {v.source_total:,.2f} vs neighborhoods "
                f"{v.target_total:,.2f}, off by {v.discrepancy:,.2f}{expected}"
            )
    logger.debug(f"{year} verdicts: {summarize_verdicts(report)}")


def summary_frame(estimates):
    """Distribution metrics for every year and attribute, one row each."""
    rows = []
    for e in estimates:
        for attribute in e.table.columns:
            rows.append({"year": e.year, "attribute": attribute, **summarize(e.table, attribute)})
    return pd.DataFrame(rows)


def verification_frame(estimates):
    """Every year's verdict rows stacked into one table."""
    frames = []
    for e in estimates:
        frame = e.report.to_frame()
        frame.insert(0, "year", e.year)
        frames.append(frame)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def plot_timeline(combined, attribute, path):
    """Line chart of one attribute per neighborhood across census years."""
    long = to_long(combined)
    data = long[long["attribute"] == attribute]
    if data.empty:
        raise ConfigurationError(f"No '{attribute}' columns in the combined table")

    id_col = long.columns[0]
    data = data.assign(**{id_col: data[id_col].astype(str)})

    plt.style.use("default")
    fig, ax = plt.subplots(figsize=(12, 7))
    sns.lineplot(data=data, x="year", y="value", hue=id_col, marker="o", ax=ax)
    ax.set_title(f"Estimated {attribute} by neighborhood")
    ax.set_xlabel("Census year")
    ax.set_ylabel(attribute)
    ax.legend(bbox_to_anchor=(1.02, 1), loc="upper left", fontsize=7, ncol=2)

    fig.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved {attribute} chart to {path}")
    return path
