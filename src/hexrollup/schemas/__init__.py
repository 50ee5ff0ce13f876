"""Pydantic configuration schemas for the hex rollup pipeline.

All configuration validation, coercion, and normalization happens at
schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from hexrollup.schemas.resolve import resolve_config
from hexrollup.schemas.internal import InternalConfig
from hexrollup.schemas.param import ParamConfig
from hexrollup.schemas.user import UserConfig
from hexrollup.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
