"""Area-weighted redistribution of count attributes from tracts to neighborhoods."""

import logging

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.overlay import FRACTION, SOURCE_ID, TARGET_ID

logger = logging.getLogger(__name__)


def validate_attributes(source, attributes):
    """Requested attributes must exist and hold finite, non-negative numbers."""
    attributes = list(attributes)
    if not attributes:
        raise ConfigurationError("No attributes requested for interpolation")

    repeated = sorted({a for a in attributes if attributes.count(a) > 1})
    if repeated:
        raise ConfigurationError(f"Attributes requested more than once: {repeated}")

    missing = [a for a in attributes if a not in source.columns]
    if missing:
        raise ConfigurationError(f"Attributes not found in source table: {missing}")

    for name in attributes:
        column = source[name]
        if is_bool_dtype(column) or not is_numeric_dtype(column):
            raise ConfigurationError(f"Attribute '{name}' is not numeric (dtype {column.dtype})")
        if column.isna().any():
            raise ConfigurationError(f"Attribute '{name}' has {int(column.isna().sum())} missing values")
        if np.isinf(column).any():
            raise ConfigurationError(f"Attribute '{name}' has {int(np.isinf(column).sum())} infinite values")
        if (column < 0).any():
            raise ConfigurationError(f"Attribute '{name}' has negative counts")


def redistribute(weights, values, attributes, target_ids):
    """
    Spread every attribute over the targets in one pass over the weights.

    ``values`` is indexed by source identifier. The result is indexed by
    ``target_ids`` (targets without any contribution get 0) and is left
    unrounded so that totals can still be checked exactly.
    """
    attributes = list(attributes)
    contributions = weights[[SOURCE_ID, TARGET_ID, FRACTION]].join(
        values[attributes].astype(float), on=SOURCE_ID, how="inner"
    )
    contributions[attributes] = contributions[attributes].mul(contributions[FRACTION], axis=0)

    table = contributions.groupby(TARGET_ID)[attributes].sum()
    table = table.reindex(pd.Index(target_ids), fill_value=0.0).astype(float)

    logger.debug(f"Redistributed {len(attributes)} attributes onto {len(table)} targets")
    return table


def totals(frame, attributes):
    """Per-attribute column sums as floats."""
    return frame[list(attributes)].sum().astype(float)
