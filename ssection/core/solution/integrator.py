from dataclasses import dataclass, field
from math import hypot
from typing import List, Optional, Tuple

import numpy as np

from shapely.geometry import Polygon as ShapelyPolygon

from ssection.core.config import Settings
from ssection.core.errors import InputError, NoAreaError
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.geometry.objects import Region
from ssection.core.preprocessing.geometry.operation import (
    SurfaceBuilder, sample, triangulate
)
from ssection.core.preprocessing.section import Section


@dataclass(frozen=True)
class RegionIntegral:
    r"""Area integrals of a section about its centroid.

    Attributes
    ----------
    area : :any:`float`
        Net area :math:`A`.
    centroid : tuple of float
        Centroid :math:`(\bar{x}, \bar{y})`.
    ixx, iyy, ixy : :any:`float`
        Centroidal second moments :math:`I_x = \int y^2 dA`,
        :math:`I_y = \int x^2 dA` and product moment
        :math:`I_{xy} = \int x y\, dA`.
    x_max, y_max : :any:`float`
        Largest distance of a boundary point from the centroid in x and y.
    outline_length : :any:`float`
        Length of the outline.
    method : :any:`str`
        ``'direct'`` or ``'mesh'``.
    warnings : tuple of str
        Degenerate conditions that were clamped.
    surface : shapely.geometry.Polygon
        The integrated surface.
    triangles : ndarray, optional
        Triangle corners of shape (m, 3, 2) if the mesh strategy ran.
    """

    area: float
    centroid: Tuple[float, float]
    ixx: float
    iyy: float
    ixy: float
    x_max: float
    y_max: float
    outline_length: float
    method: str
    warnings: Tuple[str, ...] = ()
    surface: Optional[ShapelyPolygon] = field(
        default=None, compare=False, repr=False
    )
    triangles: Optional[np.ndarray] = field(
        default=None, compare=False, repr=False
    )


class RegionIntegrator(LoggerMixin):
    r"""
    Integrates area, centroid and second moments of a section.

    The outline minus the hollows is built as one polygon with holes. Area
    and centroid always come from the closed-form polygon integrals. The
    second moments use one of two strategies:

    - ``direct``: the closed-form centroidal tensor of the polygon with
      holes (:class:`~ssection.core.preprocessing.geometry.objects.Region`).
      Exact for the polygonal boundary.
    - ``mesh``: the surface is triangulated and every triangle contributes
      :math:`A_t\, d^2` with :math:`d` the offset of the triangle centroid
      from the section centroid. The self inertia of the triangles is
      neglected, so the error shrinks with the mesh size.

    ``auto`` uses ``direct`` and switches to ``mesh`` if the closed form is
    not finite.

    Parameters
    ----------
    settings : Settings, optional
        Tolerances, accuracy mode and strategy.

    Examples
    --------
    >>> from ssection.core.preprocessing.geometry.objects import Boundary
    >>> section = Section(Boundary([(0, 0), (100, 0), (100, 200), (0, 200)]))
    >>> res = RegionIntegrator().integrate(section)
    >>> round(res.area), round(res.ixx)
    (20000, 66666667)
    """

    # noinspection PyMissingConstructor
    def __init__(self, settings: Optional[Settings] = None,
                 debug: bool = False):
        self.debug = debug
        self.settings = settings or Settings()

    def build_surface(self, section: Section) -> ShapelyPolygon:
        if not section.is_valid:
            self.logger.error("Section has no outline.")
            raise InputError('The section has no outline.')
        return SurfaceBuilder(
            section.outline, section.hollows,
            tolerance=self.settings.tolerance,
            timeout=self.settings.surface_timeout,
            debug=self.debug,
        )()

    def integrate(self, section: Section) -> RegionIntegral:
        """Integrate the section.

        Raises
        ------
        InputError
            If the section has no outline.
        SurfaceConstructionError
            If the polygon with holes cannot be built.
        NoAreaError
            If the surface has no positive area.
        """
        surface = self.build_surface(section)
        region = Region(surface)
        area = region.area
        if not area > 0:
            self.logger.error("Surface area %g is not positive.", area)
            raise NoAreaError(f'The section area {area:.6g} is not positive.')
        cx, cy = (float(v) for v in region.centroid)
        self.logger.debug("Area %.6g, centroid (%.6g, %.6g).", area, cx, cy)

        warnings: List[str] = []
        triangles = None
        method = self.settings.integration
        if method in ('auto', 'direct'):
            tensor = region.moments_of_inertia_tensor
            if np.all(np.isfinite(tensor)) or method == 'direct':
                ixx, iyy, ixy = tensor[0, 0], tensor[1, 1], tensor[0, 1]
                method = 'direct'
            else:
                self.logger.warning(
                    "Closed-form second moments are not finite, "
                    "integrating on a mesh."
                )
                method = 'mesh'
        if method == 'mesh':
            ixx, iyy, ixy, triangles = self._mesh_moments(
                surface, (cx, cy)
            )

        x_max, y_max = self._extreme_fibers(section, (cx, cy), warnings)
        result = RegionIntegral(
            area=float(area), centroid=(cx, cy),
            ixx=float(ixx), iyy=float(iyy), ixy=float(ixy),
            x_max=x_max, y_max=y_max,
            outline_length=section.outline.length,
            method=method, warnings=tuple(warnings), surface=surface,
            triangles=triangles,
        )
        self.logger.info(
            "Integrated section (%s): A=%.6g, Ix=%.6g, Iy=%.6g.",
            method, result.area, result.ixx, result.iyy
        )
        return result

    def _mesh_moments(self, surface: ShapelyPolygon,
                      centroid: Tuple[float, float]
                      ) -> Tuple[float, float, float, np.ndarray]:
        minx, miny, maxx, maxy = surface.bounds
        cell = hypot(maxx - minx, maxy - miny) * self.settings.mesh_fraction
        tri = triangulate(surface, cell)
        e1 = tri[:, 1] - tri[:, 0]
        e2 = tri[:, 2] - tri[:, 0]
        areas = 0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])
        d = tri.mean(axis=1) - np.asarray(centroid)
        self.logger.debug(
            "Mesh of %d triangles, cell size %.6g, mesh area %.6g.",
            len(tri), cell, areas.sum()
        )
        return (
            float(np.sum(areas * d[:, 1] ** 2)),
            float(np.sum(areas * d[:, 0] ** 2)),
            float(np.sum(areas * d[:, 0] * d[:, 1])),
            tri,
        )

    def _extreme_fibers(self, section: Section,
                        centroid: Tuple[float, float],
                        warnings: List[str]) -> Tuple[float, float]:
        r"""Largest boundary distances from the centroid in x and y.

        A bounding-box estimate is always made. It is refined by dense
        sampling of all boundaries in high-accuracy mode and whenever the
        section has hollows. Results below
        :py:attr:`Settings.min_fiber_distance` are clamped.
        """
        cx, cy = centroid
        lo, hi = section.outline.bounds
        x_max = max(hi[0] - cx, cx - lo[0])
        y_max = max(hi[1] - cy, cy - lo[1])

        if self.settings.high_accuracy or section.hollows:
            min_points, spacing = self.settings.fiber_sampling
            pts = np.vstack([
                sample(b, min_points, spacing,
                       include_vertices=True).as_array()
                for b in section.boundaries()
            ])
            x_max = np.max(np.abs(pts[:, 0] - cx))
            y_max = np.max(np.abs(pts[:, 1] - cy))
            self.logger.debug(
                "Extreme fibers refined from %d sampled points.", len(pts)
            )

        eps = self.settings.min_fiber_distance
        fibers = []
        for name, value in (('x_max', x_max), ('y_max', y_max)):
            if value < eps:
                message = (f'{name} = {value:.3g} is close to zero, clamped '
                           f'to {eps:g}.')
                self.logger.warning(message)
                warnings.append(message)
                value = eps
            fibers.append(float(value))
        return fibers[0], fibers[1]
