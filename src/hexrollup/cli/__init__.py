"""Command-line interface modules for hex rollup execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from hexrollup.cli.run_rollup import run_rollup_pipeline

__all__ = ['run_rollup_pipeline']
