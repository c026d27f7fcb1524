"""Exceptions raised while estimating neighborhood populations."""


class NeighborhoodHistoryError(Exception):
    """Base class for every error raised by this package."""


class GeometryError(NeighborhoodHistoryError):
    """Invalid, empty or zero-area polygon, or incompatible CRS."""


class IdentifierError(NeighborhoodHistoryError):
    """Missing or duplicate polygon identifiers."""


class ConfigurationError(NeighborhoodHistoryError):
    """Bad attribute selection, attribute content or vintage configuration."""


class ConservationMismatch(NeighborhoodHistoryError):
    """Interpolated totals do not match the source totals."""

    def __init__(self, verdicts, year=None):
        self.verdicts = tuple(verdicts)
        self.year = year
        details = ", ".join(
            f"{v.attribute} (source {v.source_total:,.2f}, "
            f"neighborhoods {v.target_total:,.2f}, off by {v.discrepancy:,.2f})"
            for v in self.verdicts
        )
        prefix = f"{year}: " if year is not None else ""
        super().__init__(f"{prefix}totals not conserved for {details}")
