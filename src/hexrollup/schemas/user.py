"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., SOURCE_DB -> source.db_path, ROLLUP_TO -> rollup.target_resolutions).

Users only specify what they want to override from the expert defaults.
Validation is lenient: both uppercase aliases and field names are accepted
and unknown legacy keys are ignored.
"""

from typing import Any, Literal, Optional
from pydantic import Field, field_validator

from hexrollup.schemas.base import HexRollupBaseModel
from hexrollup.schemas.param import LevelConfig


class UserSourceConfig(HexRollupBaseModel):
    """User-facing source config."""
    db_path: Optional[str] = None
    table: Optional[str] = None
    latitude_column: Optional[str] = None
    longitude_column: Optional[str] = None
    visits_column: Optional[str] = None
    last_visit_column: Optional[str] = None


class UserStoreConfig(HexRollupBaseModel):
    """User-facing store config."""
    db_filename: Optional[str] = None
    table_pattern: Optional[str] = None
    max_retries: Optional[int] = None
    retry_delay_sec: Optional[float] = None
    timeout_sec: Optional[float] = None


class UserRollupConfig(HexRollupBaseModel):
    """User-facing rollup config."""
    enabled: Optional[bool] = None
    source_resolution: Optional[int] = None
    target_resolutions: Optional[list[int]] = None
    include_source: Optional[bool] = None


class UserExportConfig(HexRollupBaseModel):
    """User-facing export config."""
    write_json: Optional[bool] = None
    write_geojson: Optional[bool] = None
    mark_new_cells: Optional[bool] = None
    parent_resolution: Optional[int] = None


class UserVisualizationConfig(HexRollupBaseModel):
    """User-facing visualization config."""
    enabled: Optional[bool] = None
    dpi: Optional[int] = None
    figsize: Optional[tuple[float, float]] = None
    cmap: Optional[str] = None
    new_cell_color: Optional[str] = None


class UserConfig(HexRollupBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Converted to internal
    overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            SOURCE_DB="/data/users.db",
            BASE_DIR="/data/hexrollup",
            ROLLUP_TO=[2, 1],
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)

    ``LEVELS`` replaces the whole level list; each entry is a dict with
    ``resolution`` and optionally ``region``, ``policy`` and ``exclusion``.
    """

    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    start_level: Optional[int] = Field(None, alias="START_LEVEL")

    # Source (flat aliases)
    source_db: Optional[str] = Field(None, alias="SOURCE_DB")
    source_table: Optional[str] = Field(None, alias="SOURCE_TABLE")

    # Store (flat aliases)
    store_db: Optional[str] = Field(None, alias="STORE_DB")
    max_retries: Optional[int] = Field(None, alias="MAX_RETRIES")

    # Levels
    levels: Optional[list[dict[str, Any]]] = Field(None, alias="LEVELS")
    invalid_point_policy: Optional[Literal["skip_point", "fail_fast"]] = Field(
        None, alias="INVALID_POINT_POLICY"
    )

    # Rollup (flat aliases)
    rollup_enabled: Optional[bool] = Field(None, alias="ROLLUP")
    rollup_from: Optional[int] = Field(None, alias="ROLLUP_FROM")
    rollup_to: Optional[list[int]] = Field(None, alias="ROLLUP_TO")

    # Export / plots (flat aliases)
    export_geojson: Optional[bool] = Field(None, alias="EXPORT_GEOJSON")
    export_json: Optional[bool] = Field(None, alias="EXPORT_JSON")
    plots: Optional[bool] = Field(None, alias="PLOTS")

    # Nested overrides (advanced users)
    source: Optional[UserSourceConfig] = None
    store: Optional[UserStoreConfig] = None
    rollup: Optional[UserRollupConfig] = None
    export: Optional[UserExportConfig] = None
    visualization: Optional[UserVisualizationConfig] = None

    model_config = HexRollupBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("invalid_point_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Normalize policy names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("rollup_to", mode="before")
    @classmethod
    def coerce_rollup_to(cls, v):
        """Accept a single resolution as well as a list."""
        if isinstance(v, int):
            return [v]
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        if self.start_level is not None:
            overrides["start_level"] = self.start_level
        if self.levels is not None:
            # Fill per-level defaults so partial entries validate
            overrides["levels"] = [
                LevelConfig.model_validate(level).model_dump() for level in self.levels
            ]

        # Source section
        source = {}
        if self.source_db is not None:
            source["db_path"] = str(self.source_db)
        if self.source_table is not None:
            source["table"] = self.source_table
        if self.source is not None:
            source.update(self.source.model_dump(exclude_none=True))
        if source:
            overrides["source"] = source

        # Store section
        store = {}
        if self.store_db is not None:
            store["db_filename"] = self.store_db
        if self.max_retries is not None:
            store["max_retries"] = self.max_retries
        if self.store is not None:
            store.update(self.store.model_dump(exclude_none=True))
        if store:
            overrides["store"] = store

        if self.invalid_point_policy is not None:
            overrides["aggregator"] = {"invalid_point_policy": self.invalid_point_policy}

        # Rollup section
        rollup = {}
        if self.rollup_enabled is not None:
            rollup["enabled"] = self.rollup_enabled
        if self.rollup_from is not None:
            rollup["source_resolution"] = self.rollup_from
        if self.rollup_to is not None:
            rollup["target_resolutions"] = self.rollup_to
        if self.rollup is not None:
            rollup.update(self.rollup.model_dump(exclude_none=True))
        if rollup:
            overrides["rollup"] = rollup

        # Export section
        export = {}
        if self.export_geojson is not None:
            export["write_geojson"] = self.export_geojson
        if self.export_json is not None:
            export["write_json"] = self.export_json
        if self.export is not None:
            export.update(self.export.model_dump(exclude_none=True))
        if export:
            overrides["export"] = export

        # Visualization section
        visualization = {}
        if self.plots is not None:
            visualization["enabled"] = self.plots
        if self.visualization is not None:
            visualization.update(self.visualization.model_dump(exclude_none=True))
        if visualization:
            overrides["visualization"] = visualization

        return overrides
