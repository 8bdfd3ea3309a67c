from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from shapely.geometry import Polygon as ShapelyPolygon

from ssection.core.config import Settings
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.geometry.operation import triangulate
from ssection.core.preprocessing.loads import LoadCase
from ssection.core.preprocessing.section import Section
from ssection.core.solution.properties import SectionProperties
from ssection.core.solution.utilization import MOMENT_FACTOR


@dataclass(frozen=True, eq=False)
class VisualizationArtifacts:
    r"""Drawable results of one computation.

    Attributes
    ----------
    outline : ndarray
        Closed (n, 2) coordinates of the outline.
    hollows : tuple of ndarray
        Closed coordinates of every hollow.
    centroid : tuple of float
        Centroid in mm.
    principal_axes : tuple of ndarray
        Unit vectors of the major and minor principal axis.
    principal_moments : tuple of float
        :math:`(I_1, I_2)`.
    triangles : ndarray
        Triangle corners of shape (m, 3, 2) covering the net area.
    stress : ndarray
        Bending normal stress in N/mm² at every triangle centre,

        .. math::
            \sigma = \frac{M_x (y - y_s)}{I_x} + \frac{M_y (x - x_s)}{I_y}

        zero without a load case.
    """

    outline: np.ndarray
    hollows: Tuple[np.ndarray, ...]
    centroid: Tuple[float, float]
    principal_axes: Tuple[np.ndarray, np.ndarray]
    principal_moments: Tuple[float, float]
    triangles: np.ndarray = field(repr=False)
    stress: np.ndarray = field(repr=False)

    @property
    def stress_range(self) -> Tuple[float, float]:
        if len(self.stress) == 0:
            return 0.0, 0.0
        return float(np.min(self.stress)), float(np.max(self.stress))


def bending_stress(points: np.ndarray, properties: SectionProperties,
                   load_case: Optional[LoadCase]) -> np.ndarray:
    """Bending normal stress in N/mm² at (n, 2) points."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if load_case is None:
        return np.zeros(len(points))
    cx, cy = properties.centroid
    return (load_case.mx * MOMENT_FACTOR * (points[:, 1] - cy)
            / properties.ixx
            + load_case.my * MOMENT_FACTOR * (points[:, 0] - cx)
            / properties.iyy)


def build_artifacts(section: Section, properties: SectionProperties,
                    surface: ShapelyPolygon,
                    load_case: Optional[LoadCase] = None,
                    settings: Optional[Settings] = None,
                    triangles: Optional[np.ndarray] = None
                    ) -> VisualizationArtifacts:
    """Collect everything a sink needs to draw one computation.

    The stress field is evaluated on a triangulation of the surface with
    the mesh size of the accuracy mode. Triangles of a mesh integration
    can be passed in and are used as they are.
    """
    if triangles is None:
        settings = settings or Settings()
        minx, miny, maxx, maxy = surface.bounds
        diagonal = np.hypot(maxx - minx, maxy - miny)
        triangles = triangulate(surface, diagonal * settings.mesh_fraction)
    centres = triangles.mean(axis=1) if len(triangles) else np.empty((0, 2))
    return VisualizationArtifacts(
        outline=section.outline.points,
        hollows=tuple(h.points for h in section.hollows),
        centroid=properties.centroid,
        principal_axes=properties.principal_axes,
        principal_moments=(properties.i1, properties.i2),
        triangles=triangles,
        stress=bending_stress(centres, properties, load_case),
    )


class VisualizationSink(ABC):
    """Receiver of the drawable results.

    :meth:`publish` replaces whatever was shown before; :meth:`clear`
    removes it. Both are only called on the owner thread.
    """

    @abstractmethod
    def publish(self, artifacts: VisualizationArtifacts):
        pass

    @abstractmethod
    def clear(self):
        pass


class RecordingSink(LoggerMixin, VisualizationSink):
    """Sink that keeps every published artifact set in memory."""

    # noinspection PyMissingConstructor
    def __init__(self, debug: bool = False):
        _ = debug
        self.history: List[Optional[VisualizationArtifacts]] = []

    @property
    def current(self) -> Optional[VisualizationArtifacts]:
        return self.history[-1] if self.history else None

    def publish(self, artifacts: VisualizationArtifacts):
        self.logger.debug(f'Published {len(artifacts.triangles)} triangles.')
        self.history.append(artifacts)

    def clear(self):
        self.history.append(None)
