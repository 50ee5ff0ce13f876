"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: source database, output path, starting level, verbosity.
"""

from typing import Literal, Optional
from pydantic import Field

from hexrollup.schemas.base import HexRollupBaseModel


class CLIConfig(HexRollupBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            source_db="/data/users.db",
            base_dir="/scratch/hexrollup",
            start_level=4,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    base_dir: Optional[str] = None
    source_db: Optional[str] = None
    start_level: Optional[int] = Field(None, ge=0, le=15)
    no_rollup: Optional[bool] = None
    no_plots: Optional[bool] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.source_db is not None:
            overrides["source"] = {"db_path": str(self.source_db)}

        if self.start_level is not None:
            overrides["start_level"] = self.start_level

        if self.no_rollup:
            overrides["rollup"] = {"enabled": False}

        if self.no_plots:
            overrides["visualization"] = {"enabled": False}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
