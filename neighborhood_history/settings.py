from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Inputs
    data_dir: Path = Path("./data")
    catalog_path: Optional[Path] = None
    neighborhoods_path: Optional[Path] = None
    neighborhood_id: str = "neighborhood"

    # Outputs
    output_dir: Path = Path("./output")

    # Web Mercator keeps area ratios usable at city scale
    projected_crs: str = "EPSG:3857"

    # Interpolation
    area_epsilon: float = 1e-6
    rtol: float = 1e-6
    atol: float = 1e-6
    workers: int = 1

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="NBHD_", env_file=".env", extra="ignore")

    @property
    def catalog_file(self) -> Path:
        return self.catalog_path or self.data_dir / "vintages.json"

    @property
    def neighborhoods_file(self) -> Path:
        return self.neighborhoods_path or self.data_dir / "neighborhoods.geojson"
