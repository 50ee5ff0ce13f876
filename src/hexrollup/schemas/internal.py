"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully
validated, normalized, and immutable. Runtime code accesses fields
directly; no .get() calls and no fallback defaults.
"""

from typing import Literal, Optional
from pydantic import ConfigDict, Field, field_validator, model_validator

from hexrollup.grid.region import BoundingBox
from hexrollup.schemas.base import HexRollupBaseModel
from hexrollup.schemas.param import validate_levels, validate_rollup_chain


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalSourceConfig(HexRollupBaseModel):
    """Runtime source configuration.

    db_path may be None while merging; the CLI runner checks it before
    building a SQLite source.
    """
    db_path: Optional[str]
    table: str
    latitude_column: str
    longitude_column: str
    visits_column: str
    last_visit_column: Optional[str]


class InternalStoreConfig(HexRollupBaseModel):
    """Runtime store configuration."""
    db_filename: str
    table_pattern: str
    max_retries: int = Field(ge=1)
    retry_delay_sec: float = Field(ge=0)
    timeout_sec: float = Field(gt=0)


class InternalExclusionConfig(HexRollupBaseModel):
    """Runtime exclusion policy of one level."""
    min_visits: Optional[int] = Field(ge=0)
    require_last_visit: bool


class InternalLevelConfig(HexRollupBaseModel):
    """Runtime level configuration."""
    resolution: int = Field(ge=0, le=15)
    region: Optional[BoundingBox]
    policy: Literal["max_merge", "replace"]
    exclusion: InternalExclusionConfig


class InternalAggregatorConfig(HexRollupBaseModel):
    """Runtime aggregation configuration."""
    invalid_point_policy: Literal["skip_point", "fail_fast"]


class InternalRollupConfig(HexRollupBaseModel):
    """Runtime rollup configuration."""
    enabled: bool
    source_resolution: int = Field(ge=0, le=15)
    target_resolutions: list[int]
    include_source: bool

    @model_validator(mode="after")
    def check_chain(self):
        validate_rollup_chain(self.source_resolution, self.target_resolutions)
        return self


class InternalExportConfig(HexRollupBaseModel):
    """Runtime export configuration."""
    write_json: bool
    write_geojson: bool
    mark_new_cells: bool
    parent_resolution: Optional[int]


class InternalVisualizationConfig(HexRollupBaseModel):
    """Runtime visualization settings."""
    enabled: bool
    dpi: int
    figsize: tuple[float, float]
    cmap: str
    new_cell_color: str
    edge_linewidth: float
    output_format: Literal["png", "pdf", "jpeg"]


class InternalLoggingConfig(HexRollupBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(HexRollupBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.max_retries = config.store.max_retries   # NOT .get()
            for level in config.levels:
                ...

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    base_dir: str
    start_level: Optional[int] = Field(ge=0, le=15)
    source: InternalSourceConfig
    store: InternalStoreConfig
    levels: list[InternalLevelConfig]
    aggregator: InternalAggregatorConfig
    rollup: InternalRollupConfig
    export: InternalExportConfig
    visualization: InternalVisualizationConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    @field_validator("levels")
    @classmethod
    def check_levels(cls, v):
        """Re-check levels, since users may replace the whole list."""
        return sorted(validate_levels(v), key=lambda level: level.resolution)

    def level(self, resolution: int) -> InternalLevelConfig:
        """Level configuration for ``resolution`` (KeyError if not configured)."""
        for level in self.levels:
            if level.resolution == resolution:
                return level
        raise KeyError(f"No level configured for resolution {resolution}")
