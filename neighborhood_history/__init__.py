"""
Neighborhood population estimates across census years.

Census tracts change shape and numbering every decade; neighborhoods do not.
This package moves tract counts onto fixed neighborhood boundaries by areal
weighting and checks that no population is gained or lost on the way.
"""

from neighborhood_history.errors import (
    ConfigurationError,
    ConservationMismatch,
    GeometryError,
    IdentifierError,
    NeighborhoodHistoryError,
)
from neighborhood_history.interpolate import InterpolationResult, areal_interpolate
from neighborhood_history.overlay import build_weights, weight_coverage
from neighborhood_history.redistribute import redistribute
from neighborhood_history.settings import Settings
from neighborhood_history.verify import AttributeVerdict, Verdict, VerificationReport, verify_conservation

__version__ = "0.1.0"

__all__ = [
    "AttributeVerdict",
    "ConfigurationError",
    "ConservationMismatch",
    "GeometryError",
    "IdentifierError",
    "InterpolationResult",
    "NeighborhoodHistoryError",
    "Settings",
    "Verdict",
    "VerificationReport",
    "areal_interpolate",
    "build_weights",
    "redistribute",
    "verify_conservation",
    "weight_coverage",
]
