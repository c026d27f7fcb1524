"""
Declarative loading of census tract vintages.

Every census year ships its tracts with a different identifier scheme: some
years carry a six-digit tract code, some a full state+county+tract GEOID,
some a decimal tract number stored as a float. Instead of one hand-written
loader per year, each vintage is described by a ``VintageSpec`` record and
loaded by ``load_vintage``.

A catalog is a JSON list of such records::

    [
      {
        "year": 1950,
        "geometry_path": "1950/tracts.shp",
        "table_path": "1950/population.csv",
        "geometry_id": "TRACTA",
        "table_id": "TRACT",
        "table_transform": {"substring": [0, 4], "pad": 6},
        "attributes": {"B0F001": "total", "B0F002": "white", "B0F003": "black"},
        "expected_discrepancy": {"total": 12},
        "note": "Tract 0102 has no surviving geometry for this year"
      }
    ]
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import us
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from neighborhood_history.errors import ConfigurationError

logger = logging.getLogger(__name__)

TRACT_ID = "tract_id"


class IdentifierTransform(BaseModel):
    """Turns a raw tract identifier into ``tract_id``: strip, slice, pad, prefix, cast."""

    model_config = ConfigDict(frozen=True)

    strip: bool = True
    substring: Optional[Tuple[int, Optional[int]]] = None
    pad: Optional[int] = None
    prefix: str = ""
    state: Optional[str] = None   # postal code, name or FIPS; prepends the state FIPS code
    county: Optional[str] = None  # three-digit county code, placed after the state code
    cast: Literal["str", "int"] = "str"

    @field_validator("state")
    @classmethod
    def _known_state(cls, value):
        if value is not None and us.states.lookup(value) is None:
            raise ValueError(f"unknown state '{value}'")
        return value

    @model_validator(mode="after")
    def _county_needs_state(self):
        if self.county is not None and self.state is None:
            raise ValueError("county requires state")
        return self

    @property
    def full_prefix(self) -> str:
        parts = []
        if self.state is not None:
            parts.append(us.states.lookup(self.state).fips)
        if self.county is not None:
            parts.append(str(self.county).zfill(3))
        parts.append(self.prefix)
        return "".join(parts)


class VintageSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    geometry_path: Path
    layer: Optional[str] = None
    table_path: Path
    geometry_id: str
    table_id: str
    geometry_transform: IdentifierTransform = IdentifierTransform()
    table_transform: IdentifierTransform = IdentifierTransform()
    attributes: Dict[str, str]
    repair_geometry: bool = False
    expected_discrepancy: Optional[Union[float, Dict[str, float]]] = None
    note: Optional[str] = None

    @field_validator("attributes")
    @classmethod
    def _attributes_are_unique(cls, value):
        if not value:
            raise ValueError("at least one attribute is required")
        names = list(value.values())
        repeated = sorted({n for n in names if names.count(n) > 1})
        if repeated:
            raise ValueError(f"attribute names used more than once: {repeated}")
        return value

    @property
    def attribute_names(self) -> List[str]:
        return list(self.attributes.values())

    def resolved(self, base_dir: Path) -> "VintageSpec":
        """Copy with relative file paths anchored at ``base_dir``."""
        return self.model_copy(update={
            "geometry_path": base_dir / self.geometry_path,
            "table_path": base_dir / self.table_path,
        })


class VintageCatalog(BaseModel):
    vintages: List[VintageSpec]

    @field_validator("vintages")
    @classmethod
    def _one_record_per_year(cls, value):
        years = [v.year for v in value]
        repeated = sorted({y for y in years if years.count(y) > 1})
        if repeated:
            raise ValueError(f"years listed more than once: {repeated}")
        return sorted(value, key=lambda v: v.year)

    @property
    def years(self) -> List[int]:
        return [v.year for v in self.vintages]


def load_catalog(path) -> VintageCatalog:
    """Read a JSON vintage catalog; relative paths are taken from the catalog's folder."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Vintage catalog not found at {path}")

    with open(path) as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Vintage catalog {path} is not valid JSON: {e}") from e
    if isinstance(raw, list):
        raw = {"vintages": raw}

    try:
        catalog = VintageCatalog.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid vintage catalog {path}: {e}") from e

    base_dir = path.parent
    catalog = VintageCatalog(vintages=[v.resolved(base_dir) for v in catalog.vintages])
    logger.info(f"Loaded {len(catalog.vintages)} vintages from {path}: {catalog.years}")
    return catalog


def normalize_identifier(series, transform):
    """Apply an ``IdentifierTransform`` to a column of non-null raw identifiers."""
    values = series.astype(str)
    if transform.strip:
        values = values.str.strip()
    # Spreadsheet exports turn 10200 into "10200.0"
    values = values.str.replace(r"\.0+$", "", regex=True)

    if transform.substring is not None:
        start, stop = transform.substring
        values = values.str.slice(start, stop)
    if transform.pad is not None:
        values = values.str.zfill(transform.pad)

    values = transform.full_prefix + values

    if transform.cast == "int":
        try:
            values = values.astype("int64")
        except ValueError as e:
            raise ConfigurationError(f"Identifiers in '{series.name}' cannot be cast to int: {e}") from e
    return values


def _require_columns(frame, columns, what, year):
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ConfigurationError(
            f"{year}: {what} is missing columns {missing}; available: {list(frame.columns)}"
        )


def _with_tract_id(frame, id_col, transform, what, year):
    nulls = frame[id_col].isna()
    if nulls.any():
        logger.warning(f"{year}: dropping {int(nulls.sum())} {what} rows without '{id_col}'")
        frame = frame[~nulls]
    frame = frame.copy()
    frame[TRACT_ID] = normalize_identifier(frame[id_col], transform)
    return frame


def read_tract_geometry(spec: VintageSpec) -> gpd.GeoDataFrame:
    if not Path(spec.geometry_path).exists():
        raise FileNotFoundError(f"{spec.year}: tract geometry not found at {spec.geometry_path}")

    read_kwargs = {"layer": spec.layer} if spec.layer else {}
    tracts = gpd.read_file(spec.geometry_path, **read_kwargs)
    _require_columns(tracts, [spec.geometry_id], "tract geometry", spec.year)

    if tracts.crs is None:
        raise ConfigurationError(f"{spec.year}: tract geometry at {spec.geometry_path} has no CRS")

    tracts = _with_tract_id(tracts, spec.geometry_id, spec.geometry_transform, "geometry", spec.year)
    if spec.repair_geometry:
        tracts["geometry"] = tracts.geometry.buffer(0)

    if tracts[TRACT_ID].duplicated().any():
        parts = int(tracts[TRACT_ID].duplicated().sum())
        logger.info(f"{spec.year}: dissolving {parts} extra geometry parts into their tracts")
        tracts = tracts[[TRACT_ID, "geometry"]].dissolve(by=TRACT_ID).reset_index()

    return tracts[[TRACT_ID, "geometry"]]


def read_tract_table(spec: VintageSpec) -> pd.DataFrame:
    if not Path(spec.table_path).exists():
        raise FileNotFoundError(f"{spec.year}: tract table not found at {spec.table_path}")

    table = pd.read_csv(spec.table_path, dtype=str, low_memory=False)
    table.columns = [c.strip() for c in table.columns]
    _require_columns(table, [spec.table_id] + list(spec.attributes), "tract table", spec.year)

    table = _with_tract_id(table, spec.table_id, spec.table_transform, "table", spec.year)
    table = table[[TRACT_ID] + list(spec.attributes)].rename(columns=spec.attributes)

    for column in spec.attribute_names:
        raw = table[column]
        table[column] = pd.to_numeric(raw.str.strip(), errors="coerce")
        bad = ~np.isfinite(table[column])
        if bad.any():
            raise ConfigurationError(
                f"{spec.year}: column '{column}' has non-numeric values {list(raw[bad].head(5))}"
            )
    return table


@dataclass(frozen=True)
class Vintage:
    """One census year: tracts with geometry, plus the full count table they came from."""

    year: int
    tracts: gpd.GeoDataFrame
    counts: pd.DataFrame

    @property
    def unmapped(self) -> pd.DataFrame:
        """Count rows whose tract has no geometry in this vintage."""
        return self.counts[~self.counts[TRACT_ID].isin(self.tracts[TRACT_ID])]


def read_vintage(spec: VintageSpec, crs) -> Vintage:
    """
    Load one census year as tract polygons with canonical count columns.

    ``tracts`` holds ``tract_id``, the canonical attribute names and
    geometry, reprojected to ``crs``; only tracts present in both inputs are
    kept. ``counts`` is the whole count table, so totals taken from it still
    include tracts whose boundary did not survive.
    """
    logger.info(f"Loading {spec.year} tracts from {spec.geometry_path}")
    tracts = read_tract_geometry(spec)
    table = read_tract_table(spec)

    geometry_ids = set(tracts[TRACT_ID])
    table_ids = set(table[TRACT_ID])
    without_geometry = sorted(str(i) for i in table_ids - geometry_ids)
    without_counts = sorted(str(i) for i in geometry_ids - table_ids)
    if without_geometry:
        logger.warning(f"{spec.year}: {len(without_geometry)} tracts have counts but no geometry: {without_geometry[:10]}")
    if without_counts:
        logger.warning(f"{spec.year}: {len(without_counts)} tracts have geometry but no counts: {without_counts[:10]}")

    merged = tracts.merge(table, on=TRACT_ID, how="inner")
    merged = merged.to_crs(crs)
    logger.info(f"Loaded {len(merged)} tracts for {spec.year}")
    return Vintage(year=spec.year, tracts=merged, counts=table.reset_index(drop=True))


def load_vintage(spec: VintageSpec, crs) -> gpd.GeoDataFrame:
    """Tracts of one census year that have both geometry and counts."""
    return read_vintage(spec, crs).tracts
