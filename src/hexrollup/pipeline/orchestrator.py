"""Sequential level pipeline orchestration.

Runs every configured level coarse to fine: fetch points for the level's
region, aggregate them into cells, write the batch through the watermark
upsert engine, and export the resulting table. Then rolls the configured
fine level up into coarser derived files.
"""

import time
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from hexrollup.contracts import ContractViolation, FailurePolicy, StorageFailure
from hexrollup.contracts import assert_rollup_conserved
from hexrollup.export import (
    HexMapPlotter,
    SeenCells,
    feature_collection,
    parent_feature_collection,
    write_geojson,
    write_level_json,
)
from hexrollup.grid.aggregator import ExclusionPolicy, VisitAggregator
from hexrollup.grid.merge_policy import get_policy
from hexrollup.grid.rollup import HierarchicalRollup
from hexrollup.pipeline.run_tracker import RunTracker
from hexrollup.schemas import InternalConfig
from hexrollup.setup_directories import get_level_export_path
from hexrollup.storage import (
    PointSource,
    ResolutionStore,
    SQLitePointSource,
    WatermarkUpsertEngine,
)

__all__ = ['RollupOrchestrator']

logger = logging.getLogger(__name__)


class RollupOrchestrator:
    """Runs the level pipeline and the hierarchical rollup once.

    **Stages per level** (levels run one at a time, ascending resolution):

    1. **Fetch**: points inside the level's region from the point source
    2. **Aggregate**: one record per cell (level exclusion and merge policy)
    3. **Write**: max-merge or full replace, one transaction, bounded retry
    4. **Export**: level JSON, GeoJSON with new-cell flags, PNG map

    A ``StorageFailure`` on one level marks it failed in the run ledger and
    the run moves on to the next level. A ``ContractViolation`` is a bug and
    stops the run.

    **Rollup:** after the levels, the persisted source level (default 3)
    is summed up the configured chain (default 3 -> 2 -> 1) and exported.

    **Logging:** console plus ``logs/rollup_{run_id}.log`` at the configured
    level. Row counts before and after each level are logged.

    Example usage::

        from hexrollup.schemas import resolve_config, ParamConfig
        from hexrollup.setup_directories import setup_output_directories

        config = resolve_config(ParamConfig(), {"SOURCE_DB": "users.db"})
        output_dirs = setup_output_directories(config.base_dir)

        orch = RollupOrchestrator(config, output_dirs)
        summary = orch.run()
    """

    def __init__(self, config: InternalConfig, output_dirs: Dict[str, Path],
                 source: Optional[PointSource] = None,
                 run_id: Optional[str] = None):
        """Initialize orchestrator.

        Parameters
        ----------
        config : InternalConfig
            Resolved runtime configuration.
        output_dirs : dict
            Paths from ``setup_output_directories()``; needs ``db``,
            ``exports``, ``plots`` and ``logs``.
        source : PointSource, optional
            Where points come from. Defaults to a ``SQLitePointSource`` on
            ``config.source``.
        run_id : str, optional
            Ledger key for this run. Defaults to the UTC start time.
        """
        self.config = config
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}
        self.run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        self.source = source if source is not None else self._default_source()

        self.store = None
        self.tracker = None
        self.engine = WatermarkUpsertEngine(
            max_retries=config.store.max_retries,
            retry_delay_sec=config.store.retry_delay_sec,
        )
        self.rollup = HierarchicalRollup()
        self.plotter = HexMapPlotter(config) if config.visualization.enabled else None

    def _default_source(self) -> SQLitePointSource:
        src = self.config.source
        if src.db_path is None:
            raise ValueError("No point source given and source.db_path is not configured")
        return SQLitePointSource(
            src.db_path,
            table=src.table,
            latitude_column=src.latitude_column,
            longitude_column=src.longitude_column,
            visits_column=src.visits_column,
            last_visit_column=src.last_visit_column,
        )

    def setup_logging(self):
        """Configure root logger with file and console handlers.

        Log level comes from ``config.logging.level``; the log file is
        ``logs/rollup_{run_id}.log``.
        """
        log_level = getattr(logging, self.config.logging.level, logging.INFO)

        log_dir = self.output_dirs["logs"]
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"rollup_{self.run_id}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", self.config.logging.level, log_path)

    def run(self) -> Dict:
        """Process all levels, then the rollup. Blocking, single-threaded.

        Returns
        -------
        dict
            Summary with ``run_id``, per-level ledger rows under ``levels``,
            rollup cell counts under ``rollup``, the resolutions that
            ``failed``, and ``elapsed_sec``.

        Raises
        ------
        ContractViolation
            If a stage breaks its invariants. Levels already written stay
            committed.
        """
        start_time = time.time()
        store_path = self.output_dirs["db"] / self.config.store.db_filename
        self.store = ResolutionStore(store_path, self.config.store.table_pattern,
                                     timeout=self.config.store.timeout_sec)
        self.tracker = RunTracker(self.output_dirs["db"] / "run_ledger.db")

        logger.info("=" * 60)
        logger.info("Starting hex rollup run %s", self.run_id)
        logger.info("Store: %s", store_path)
        logger.info("=" * 60)

        failed = []
        rollup_counts = {}
        try:
            for level in self.config.levels:
                if not self._process_level(level):
                    failed.append(level.resolution)

            if self.config.rollup.enabled:
                rollup_counts = self._run_rollup()

            levels = {row["resolution"]: row for row in self.tracker.get_run(self.run_id)}
            stats = self.tracker.get_statistics(self.run_id)
        finally:
            self.store.close()
            self.tracker.close()

        elapsed = time.time() - start_time
        logger.info("=" * 60)
        logger.info("Run %s finished in %.1f seconds", self.run_id, elapsed)
        logger.info("Levels: total=%d, completed=%d, failed=%d, skipped=%d",
                    stats["total"], stats["completed"], stats["failed"], stats["skipped"])
        logger.info("=" * 60)

        return {
            "run_id": self.run_id,
            "levels": levels,
            "rollup": rollup_counts,
            "failed": failed,
            "elapsed_sec": elapsed,
        }

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def _process_level(self, level) -> bool:
        """Run one level end to end. Returns False if the level failed."""
        resolution = level.resolution
        table = self.store.table(resolution)
        self.tracker.register_level(self.run_id, resolution, table.name, level.policy)

        start_level = self.config.start_level
        if start_level is not None and resolution < start_level:
            logger.info("Skipping level %d (starting at level %d)", resolution, start_level)
            self.tracker.mark_skipped(self.run_id, resolution, f"start_level={start_level}")
            return True

        policy = get_policy(level.policy)
        aggregator = VisitAggregator(
            policy=policy,
            exclusion=ExclusionPolicy(
                min_visits=level.exclusion.min_visits,
                require_last_visit=level.exclusion.require_last_visit,
            ),
            failure_policy=FailurePolicy(self.config.aggregator.invalid_point_policy),
        )

        try:
            rows_before = table.count()
            known_cells = set(table.records()) if self.config.export.mark_new_cells else set()
            self.tracker.mark_started(self.run_id, resolution, rows_before)
            logger.info("Level %d (%s, %s): %d rows before", resolution, table.name,
                        level.policy, rows_before)

            points = self.source.fetch(level.region)
            aggregates = aggregator.aggregate(points, resolution)
            result = self.engine.write_with_retry(table, aggregates, policy)
            rows_after = table.count()
            records = table.records()
        except StorageFailure as e:
            logger.error("Level %d failed: %s", resolution, e)
            self.tracker.mark_failed(self.run_id, resolution, str(e))
            return False
        except ContractViolation as e:
            logger.critical("Contract violated on level %d: %s", resolution, e)
            self.tracker.mark_failed(self.run_id, resolution, f"contract: {e}")
            raise

        stats = aggregator.stats
        self.tracker.mark_complete(
            self.run_id, resolution,
            inserted=result.inserted, updated=result.updated,
            unchanged=result.unchanged, deleted=result.deleted,
            points_seen=stats.seen, points_excluded=stats.excluded,
            points_invalid=stats.invalid, cells=stats.cells,
            rows_after=rows_after,
        )
        logger.info("✓ Level %d: %d rows after (%d inserted, %d updated, %d invalid points)",
                    resolution, rows_after, result.inserted, result.updated, stats.invalid)

        self._export_level(resolution, records, SeenCells(known_cells))
        return True

    # ------------------------------------------------------------------
    # Rollup
    # ------------------------------------------------------------------

    def _run_rollup(self) -> Dict[int, int]:
        cfg = self.config.rollup
        source_table = self.store.table(cfg.source_resolution)
        try:
            fine = source_table.records()
        except StorageFailure as e:
            logger.error("Rollup skipped, cannot read %s: %s", source_table.name, e)
            return {}

        if not fine:
            logger.warning("Rollup skipped: %s is empty", source_table.name)
            return {}

        logger.info("Rolling up %d cells from level %d into %s",
                    len(fine), cfg.source_resolution, cfg.target_resolutions)

        chain = self.rollup.roll_up_chain(fine, cfg.target_resolutions)
        counts = {}
        previous = fine
        if cfg.include_source:
            self._export_records(fine, cfg.source_resolution, derived=True)
            counts[cfg.source_resolution] = len(fine)
        for resolution, coarse in chain.items():
            assert_rollup_conserved(previous, coarse, resolution)
            self._export_records(coarse, resolution, derived=True)
            counts[resolution] = len(coarse)
            previous = coarse
            logger.info("✓ Rollup level %d: %d cells, %d visits", resolution,
                        len(coarse), sum(r.visit_count for r in coarse.values()))
        return counts

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _export_level(self, resolution: int, records, seen: SeenCells):
        self._export_records(records, resolution, seen)

        parent = self.config.export.parent_resolution
        if parent is not None and resolution > parent and records:
            path = self.output_dirs["exports"] / f"h3_level_{resolution}_parents_{parent}.geojson"
            try:
                write_geojson(parent_feature_collection(records, parent), path)
            except OSError as e:
                logger.error("Failed to write %s: %s", path, e)

    def _export_records(self, records, resolution: int,
                        seen: Optional[SeenCells] = None, derived: bool = False):
        export = self.config.export
        if seen is None:
            seen = SeenCells()
        new_cells = [cell_id for cell_id in records if cell_id not in seen]
        json_path = get_level_export_path(self.output_dirs, resolution, "json", derived)
        geojson_path = get_level_export_path(self.output_dirs, resolution, "geojson", derived)

        try:
            if export.write_json:
                write_level_json(records, json_path)
            if export.write_geojson:
                mark = seen if export.mark_new_cells else None
                write_geojson(feature_collection(records, mark), geojson_path)
            if self.plotter is not None:
                self.plotter.plot_level(records, resolution,
                                        self.output_dirs["plots"] / json_path.stem,
                                        new_cells=new_cells)
        except OSError as e:
            logger.error("Failed to export level %d: %s", resolution, e)
