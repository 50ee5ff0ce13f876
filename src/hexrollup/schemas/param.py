"""ParamConfig: Expert defaults for the hex rollup pipeline.

ALL pipeline parameters have defaults here. No runtime code defines
fallback values; this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives
InternalConfig.
"""

import re
from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator

from hexrollup.grid.region import BoundingBox
from hexrollup.schemas.base import HexRollupBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class SourceConfig(HexRollupBaseModel):
    """Observation source (SQLite table of points)."""
    db_path: Optional[str] = None
    table: str = "cities_with_users"
    latitude_column: str = "latitude"
    longitude_column: str = "longitude"
    visits_column: str = "visits"
    last_visit_column: Optional[str] = "last_visit"


class StoreConfig(HexRollupBaseModel):
    """Per-resolution cell store."""
    db_filename: str = "hex_levels.db"
    table_pattern: str = Field("h3_level_{resolution}", description="Table name per resolution")
    max_retries: int = Field(3, ge=1, description="Attempts per level write")
    retry_delay_sec: float = Field(0.5, ge=0, description="Linear backoff base delay")
    timeout_sec: float = Field(30.0, gt=0, description="SQLite busy timeout")

    @field_validator("table_pattern")
    @classmethod
    def check_table_pattern(cls, v):
        """Pattern must contain {resolution} and format to an identifier."""
        if "{resolution}" not in v:
            raise ValueError("table_pattern must contain '{resolution}'")
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", v.replace("{resolution}", "0")):
            raise ValueError(f"table_pattern does not produce a valid identifier: {v}")
        return v


class ExclusionConfig(HexRollupBaseModel):
    """Which points a level drops before aggregation."""
    min_visits: Optional[int] = Field(None, ge=0)
    require_last_visit: bool = False


class LevelConfig(HexRollupBaseModel):
    """One resolution level: where it reads from and how it writes."""
    resolution: int = Field(..., ge=0, le=15)
    region: Optional[BoundingBox] = None
    policy: Literal["max_merge", "replace"] = "max_merge"
    exclusion: ExclusionConfig = Field(default_factory=ExclusionConfig)

    @field_validator("policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Normalize policy names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


def _default_levels() -> list:
    """Levels 2..7 with the regions the service has always used."""
    europe = BoundingBox(north=63.4305, west=-31.13, south=27.2579, east=49.8671)
    iberia = BoundingBox(north=43.7914, west=-9.3015, south=35.9468, east=4.6362)
    atlantic = BoundingBox(north=54.0, west=-30.0, south=9.3, east=3.0)
    return [
        LevelConfig(
            resolution=2,
            policy="replace",
            exclusion=ExclusionConfig(min_visits=2, require_last_visit=True),
        ),
        LevelConfig(resolution=3),
        LevelConfig(resolution=4, region=europe),
        LevelConfig(resolution=5, region=iberia),
        LevelConfig(resolution=6, region=atlantic),
        LevelConfig(resolution=7, region=atlantic),
    ]


class AggregatorConfig(HexRollupBaseModel):
    """Aggregation behaviour."""
    invalid_point_policy: Literal["skip_point", "fail_fast"] = "skip_point"


class RollupConfig(HexRollupBaseModel):
    """Hierarchical rollup from a persisted fine level."""
    enabled: bool = True
    source_resolution: int = Field(3, ge=0, le=15)
    target_resolutions: list[int] = Field(default_factory=lambda: [2, 1])
    include_source: bool = Field(True, description="Also export the source level itself")

    @model_validator(mode="after")
    def check_chain(self):
        """Targets must be strictly decreasing and coarser than the source."""
        validate_rollup_chain(self.source_resolution, self.target_resolutions)
        return self


class ExportConfig(HexRollupBaseModel):
    """Derived file output."""
    write_json: bool = True
    write_geojson: bool = True
    mark_new_cells: bool = True
    parent_resolution: Optional[int] = Field(
        None, ge=0, le=15, description="Also write parent-cell GeoJSON at this resolution"
    )


class VisualizationConfig(HexRollupBaseModel):
    """Static hex map settings."""
    enabled: bool = True
    dpi: int = Field(150, ge=50)
    figsize: tuple[float, float] = (12.0, 8.0)
    cmap: str = "viridis"
    new_cell_color: str = "red"
    edge_linewidth: float = Field(0.3, gt=0)
    output_format: Literal["png", "pdf", "jpeg"] = "png"


class LoggingConfig(HexRollupBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(HexRollupBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: str = "./output"
    start_level: Optional[int] = Field(None, ge=0, le=15)
    source: SourceConfig = Field(default_factory=SourceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    levels: list[LevelConfig] = Field(default_factory=_default_levels)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    rollup: RollupConfig = Field(default_factory=RollupConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("levels")
    @classmethod
    def check_levels(cls, v):
        """Resolutions are unique and at most one level uses replace."""
        return validate_levels(v)


def validate_levels(levels: list) -> list:
    """Shared level-list checks for ParamConfig and InternalConfig."""
    resolutions = [level.resolution for level in levels]
    if len(resolutions) != len(set(resolutions)):
        raise ValueError(f"Duplicate level resolutions: {resolutions}")
    replace_levels = [level.resolution for level in levels if level.policy == "replace"]
    if len(replace_levels) > 1:
        raise ValueError(f"Only one level may use policy 'replace', got {replace_levels}")
    return levels


def validate_rollup_chain(source_resolution: int, target_resolutions: list) -> None:
    """Raise ValueError unless targets step strictly down from the source."""
    previous = source_resolution
    for target in target_resolutions:
        if not 0 <= target < previous:
            raise ValueError(
                f"Rollup targets must be strictly decreasing below "
                f"{source_resolution}, got {target_resolutions}"
            )
        previous = target
