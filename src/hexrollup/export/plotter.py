"""Static hex map of one level.

Renders every cell of a level as a filled hexagon coloured by visit count,
with cells new in this run outlined. Output is a PNG (or PDF/JPEG) file.
"""

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection
from matplotlib.colors import LogNorm

from hexrollup.grid.indexer import boundary_of
from hexrollup.grid.models import AggregateRecord
from hexrollup.schemas import InternalConfig

__all__ = ['HexMapPlotter']

logger = logging.getLogger(__name__)


class HexMapPlotter:
    """Draws level maps from ``{cell_id: AggregateRecord}``.

    Appearance settings (DPI, figure size, colormap, new-cell colour) come
    from ``config.visualization``.

    Example usage::

        plotter = HexMapPlotter(config)
        plotter.plot_level(records, resolution=5,
                           output_path=output_dirs["plots"] / "h3_level_5",
                           new_cells=new_ids)
    """

    def __init__(self, config: InternalConfig):
        viz = config.visualization
        self.dpi = viz.dpi
        self.figsize = viz.figsize
        self.cmap = viz.cmap
        self.new_cell_color = viz.new_cell_color
        self.edge_linewidth = viz.edge_linewidth
        self.output_format = viz.output_format

    def _polygons(self, cell_ids):
        polygons = []
        for cell_id in cell_ids:
            ring = np.asarray(list(boundary_of(cell_id)), dtype=float)
            # Unwrap cells straddling the antimeridian
            if ring[:, 0].max() - ring[:, 0].min() > 180:
                ring[:, 0] = np.where(ring[:, 0] < 0, ring[:, 0] + 360, ring[:, 0])
            polygons.append(ring)
        return polygons

    def plot_level(self, records: Mapping[str, AggregateRecord], resolution: int,
                   output_path: Path | str,
                   new_cells: Optional[Iterable[str]] = None) -> Optional[str]:
        """Render one level; returns the saved path, or None when empty."""
        if not records:
            logger.info("Level %d has no cells, skipping plot", resolution)
            return None

        cell_ids = sorted(records)
        visits = np.array([max(records[c].visit_count, 1) for c in cell_ids], dtype=float)
        polygons = self._polygons(cell_ids)

        fig, ax = plt.subplots(figsize=self.figsize, dpi=self.dpi)
        collection = PolyCollection(
            polygons,
            array=visits,
            cmap=self.cmap,
            norm=LogNorm(vmin=visits.min(), vmax=max(visits.max(), visits.min() + 1)),
            edgecolors="#333333",
            linewidths=self.edge_linewidth,
        )
        ax.add_collection(collection)

        new_ids = set(new_cells or ())
        highlighted = [p for c, p in zip(cell_ids, polygons) if c in new_ids]
        if highlighted:
            ax.add_collection(PolyCollection(
                highlighted,
                facecolors="none",
                edgecolors=self.new_cell_color,
                linewidths=self.edge_linewidth * 4,
            ))

        ax.autoscale_view()
        ax.set_aspect("equal", adjustable="datalim")
        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        ax.set_title(f"H3 level {resolution}: {len(cell_ids)} cells, "
                     f"{len(highlighted)} new")
        fig.colorbar(collection, ax=ax, label="Visits")

        return self._save_figure(fig, Path(output_path))

    def _save_figure(self, fig: plt.Figure, output_path: Path) -> str:
        """Save figure in configured format."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_file = output_path.with_suffix(f'.{self.output_format}')

        fig.savefig(
            output_file,
            dpi=self.dpi,
            bbox_inches='tight',
            format=self.output_format
        )

        plt.close(fig)
        logger.info(f"✓ Plot saved: {output_file}")

        return str(output_file)
