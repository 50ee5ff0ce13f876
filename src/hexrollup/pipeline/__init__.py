"""Pipeline orchestration and the per-level run ledger."""

from hexrollup.pipeline.orchestrator import RollupOrchestrator
from hexrollup.pipeline.run_tracker import RunTracker

__all__ = ['RollupOrchestrator', 'RunTracker']
