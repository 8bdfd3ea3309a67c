from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from ssection.core.postprocessing.visualization import (
    VisualizationArtifacts, VisualizationSink
)

OUTLINE_STYLE = dict(color='black', linewidth=1.5)
HOLLOW_STYLE = dict(color='black', linewidth=1.0, linestyle='--')
AXIS_STYLE = dict(color='tab:red', linewidth=1.0)


class MplSectionSink(VisualizationSink):
    """Draws the section results into a matplotlib figure.

    Every :meth:`publish` redraws the axes from scratch: the stress field
    as a flat-shaded triangulation, the outline and hollows, the centroid
    and both principal axes scaled to the section size.

    Parameters
    ----------
    show_axis : :any:`bool`, default=True
        Draws the coordinate axes.
    show_grid : :any:`bool`, default=False
        Draws a grid.
    cmap : :any:`str`, default='coolwarm'
        Colormap of the stress field.
    **kwargs
        Passed on to :func:`matplotlib.pyplot.subplots`.
    """

    def __init__(self, show_axis: bool = True, show_grid: bool = False,
                 cmap: str = 'coolwarm', **kwargs):
        self._show_axis = show_axis
        self._show_grid = show_grid
        self._cmap = cmap
        self._fig, self._ax = plt.subplots(**kwargs)
        self._colorbar = None
        self._artifacts: Optional[VisualizationArtifacts] = None
        self._layout()

    def _layout(self):
        if not self._show_axis:
            self._ax.axis('off')
        self._ax.grid(self._show_grid)
        self._ax.set_aspect('equal', adjustable='datalim')

    @property
    def figure(self):
        return self._fig

    @property
    def artifacts(self) -> Optional[VisualizationArtifacts]:
        return self._artifacts

    def clear(self):
        if self._colorbar is not None:
            self._colorbar.remove()
            self._colorbar = None
        self._ax.clear()
        self._layout()
        self._artifacts = None
        self._fig.canvas.draw_idle()

    def publish(self, artifacts: VisualizationArtifacts):
        self.clear()
        self._artifacts = artifacts
        self._draw_stress(artifacts)
        self._ax.plot(*artifacts.outline.T, **OUTLINE_STYLE)
        for hollow in artifacts.hollows:
            self._ax.plot(*hollow.T, **HOLLOW_STYLE)
        self._draw_axes(artifacts)
        self._fig.tight_layout()
        self._fig.canvas.draw_idle()

    def _draw_stress(self, artifacts: VisualizationArtifacts):
        if len(artifacts.triangles) == 0:
            return
        points = artifacts.triangles.reshape(-1, 2)
        indices = np.arange(len(points)).reshape(-1, 3)
        collection = self._ax.tripcolor(
            points[:, 0], points[:, 1], indices,
            facecolors=artifacts.stress, cmap=self._cmap,
            edgecolors='none', zorder=0
        )
        self._colorbar = self._fig.colorbar(
            collection, ax=self._ax, label='σ [N/mm²]'
        )

    def _draw_axes(self, artifacts: VisualizationArtifacts):
        cx, cy = artifacts.centroid
        minx, miny = artifacts.outline.min(axis=0)
        maxx, maxy = artifacts.outline.max(axis=0)
        half = 0.6 * max(maxx - minx, maxy - miny)
        for label, axis in zip(('1', '2'), artifacts.principal_axes):
            (x0, y0), (x1, y1) = (np.array([cx, cy]) - half * axis,
                                  np.array([cx, cy]) + half * axis)
            self._ax.plot([x0, x1], [y0, y1], **AXIS_STYLE)
            self._ax.text(x1, y1, label, color=AXIS_STYLE['color'])
        self._ax.plot(cx, cy, marker='o', color='black', zorder=3)

    def save(self, path, **kwargs):
        self._fig.savefig(path, **kwargs)

    def show(self, *args, **kwargs):
        plt.show(*args, **kwargs)
