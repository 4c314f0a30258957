"""
Typed run configuration built from configs/params.yml.

Pydantic models with:
- One section per pipeline stage, validated on load
- Unknown keys rejected, so a typo never falls back to a default silently
- The basemap access token read from CRIME_ATLAS_BASEMAP_TOKEN only,
  held as a SecretStr and masked whenever the config is logged or hashed

Usage:
    from crime_atlas.config import load_config

    config = load_config()
    k = config.clustering.k
    bounds = config.spatial.study_area.as_tuple()
"""

from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from crime_atlas.io_utils import read_yaml
from crime_atlas.paths import PARAMS_FILE, resolve_project_path


BASEMAP_TOKEN_ENV = "CRIME_ATLAS_BASEMAP_TOKEN"

# How pydantic renders a set SecretStr in model_dump(mode="json")
REDACTED = "**********"


class ConfigError(Exception):
    """Raised when the configuration is invalid."""
    pass


# =============================================================================
# Configuration Sections
# =============================================================================

class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CleaningConfig(_Section):
    """Loader/cleaner settings."""

    # Columns the input file must carry
    required_columns: Tuple[str, ...] = ("Year", "Date", "Latitude", "Longitude")
    # Columns checked by the missing-value drop; None means every column
    dropna_subset: Optional[Tuple[str, ...]] = None
    # Strings treated as missing after lower-casing
    placeholder_tokens: Tuple[str, ...] = ("na", "unknown")
    # Drop rows that only become missing in the placeholder step
    refilter_placeholders: bool = False

    @field_validator("placeholder_tokens")
    @classmethod
    def lowercase_tokens(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Tokens are compared against lower-cased text."""
        return tuple(t.lower() for t in v)


class TemporalConfig(_Section):
    """Column names for the temporal aggregator."""

    date_column: str = "Date"
    year_column: str = "Year"


class SummaryConfig(_Section):
    """Descriptive tables."""

    # Crime-type column; the table is skipped when the column is absent
    category_column: str = "Primary Type"
    top_n: Optional[int] = Field(default=10, ge=1)


class BoundsConfig(_Section):
    """Longitude/latitude bounding box in EPSG:4326."""

    lon_min: float = Field(ge=-180, le=180)
    lon_max: float = Field(ge=-180, le=180)
    lat_min: float = Field(ge=-90, le=90)
    lat_max: float = Field(ge=-90, le=90)

    @model_validator(mode="after")
    def check_order(self) -> "BoundsConfig":
        if self.lon_min >= self.lon_max or self.lat_min >= self.lat_max:
            raise ValueError(
                f"Invalid study area (min must be < max): "
                f"lon [{self.lon_min}, {self.lon_max}], lat [{self.lat_min}, {self.lat_max}]"
            )
        return self

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return (lon_min, lat_min, lon_max, lat_max), matching total_bounds order."""
        return (self.lon_min, self.lat_min, self.lon_max, self.lat_max)


class SpatialConfig(_Section):
    """Spatial projector settings."""

    lat_column: str = "Latitude"
    lon_column: str = "Longitude"
    # Optional study area; points outside it are excluded
    study_area: Optional[BoundsConfig] = None


class ClusteringConfig(_Section):
    """Cluster engine settings."""

    k: int = Field(default=5, ge=1)
    random_seed: int = 123
    n_init: int = Field(default=20, ge=1)
    max_iter: int = Field(default=300, ge=1)
    init: Literal["random", "k-means++"] = "random"
    # When True, k is chosen from k_range by silhouette score
    auto_select_k: bool = False
    k_range: Tuple[int, ...] = (2, 3, 4, 5, 6, 7, 8)
    silhouette_sample_size: Optional[int] = Field(default=10000, ge=2)
    min_cluster_size: int = Field(default=2, ge=1)

    @field_validator("k_range")
    @classmethod
    def validate_k_range(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        """Silhouette needs at least two clusters."""
        if not v:
            raise ValueError("k_range must not be empty")
        if any(k < 2 for k in v):
            raise ValueError(f"k_range values must be >= 2, got {list(v)}")
        return v


class BasemapConfig(BaseSettings):
    """
    Basemap tile settings for the rendering layer.

    The access token is an environment-only secret; provider and zoom may
    also be overridden with CRIME_ATLAS_BASEMAP_PROVIDER / _ZOOM.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRIME_ATLAS_BASEMAP_",
        frozen=True,
        extra="forbid",
    )

    provider: str = "mapbox"
    zoom: int = Field(default=10, ge=0, le=22)

    access_token: Optional[SecretStr] = Field(default=None, alias=BASEMAP_TOKEN_ENV)


class PipelineConfig(_Section):
    """Complete configuration for one analysis run."""

    input_path: Path
    cleaning: CleaningConfig = Field(default_factory=CleaningConfig)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    summaries: SummaryConfig = Field(default_factory=SummaryConfig)
    spatial: SpatialConfig = Field(default_factory=SpatialConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    basemap: BasemapConfig = Field(default_factory=BasemapConfig)

    @field_validator("input_path")
    @classmethod
    def resolve_input_path(cls, v: Path) -> Path:
        """Relative paths resolve against the project root."""
        return resolve_project_path(v)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view for log records and the config digest; secrets stay masked."""
        return self.model_dump(mode="json")

    def with_clustering(self, **changes) -> "PipelineConfig":
        """
        Return a copy with clustering fields replaced.

        Raises:
            ConfigError: If the changed values are invalid
        """
        try:
            clustering = ClusteringConfig(**{**self.clustering.model_dump(), **changes})
        except ValidationError as e:
            raise ConfigError(f"Invalid clustering settings:\n{e}") from e
        return self.model_copy(update={"clustering": clustering})


# =============================================================================
# Loading
# =============================================================================

def config_from_dict(params: Mapping[str, Any]) -> PipelineConfig:
    """
    Build a PipelineConfig from a params mapping (the parsed params.yml).

    Missing or null sections fall back to their defaults. The basemap
    token is read from the environment while the config is built.

    Args:
        params: Parsed YAML mapping

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigError: If required keys are missing or values are invalid
    """
    if not params.get("input_path"):
        raise ConfigError("input_path is required")

    basemap = params.get("basemap") or {}
    if not isinstance(basemap, Mapping):
        raise ConfigError(f"basemap must be a mapping, got {basemap!r}")
    if "access_token" in basemap or BASEMAP_TOKEN_ENV in basemap:
        raise ConfigError(
            f"basemap.access_token must not be set in params.yml; "
            f"export {BASEMAP_TOKEN_ENV} instead"
        )

    # YAML "section:" with no body parses as None
    sections = {key: value for key, value in params.items() if value is not None}

    try:
        # Instantiated directly so the settings sources read the environment
        sections["basemap"] = BasemapConfig(**basemap)
        return PipelineConfig(**sections)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e


def load_config(path: Union[str, Path, None] = None) -> PipelineConfig:
    """
    Load the run configuration from params.yml.

    Args:
        path: YAML file to read (default: configs/params.yml)

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigError: If the file is missing or its contents are invalid
    """
    path = Path(path) if path is not None else PARAMS_FILE
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    params = read_yaml(path)
    if not isinstance(params, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    return config_from_dict(params)
