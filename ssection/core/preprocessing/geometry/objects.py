from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import List, Optional, Sequence, Tuple

import numpy as np

from shapely.geometry import LinearRing, Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient


class Containment(Enum):
    """Classification of a point against a closed boundary."""

    INSIDE = 'inside'
    OUTSIDE = 'outside'
    ON_BOUNDARY = 'on_boundary'


@dataclass(eq=False)
class Curve:
    r"""A curve as delivered by the external geometry source.

    The curve is interpreted as the polyline through its points. Degree and
    span count are metadata of the source geometry; they only take part in
    change detection (see :class:`~ssection.core.tracking.
    GeometryFingerprint`).

    Parameters
    ----------
    points : sequence of (x, y) or (x, y, z)
        Ordered curve points. At least two points are required.
    degree : :any:`int`, default=1
        Polynomial degree of the source curve.
    span_count : :any:`int`, optional
        Number of spans of the source curve. Defaults to the number of
        polyline segments.
    closed : :any:`bool`, optional
        Explicit closed flag. ``True`` closes the polyline with an implicit
        segment back to the first point, ``False`` marks the curve as open.
        If omitted, the curve is closed when its first and last point
        coincide.

    Raises
    ------
    ValueError
        If fewer than two points are given, the points are not 2D or 3D,
        contain non-finite values or the degree is smaller than one.

    Examples
    --------
    >>> c = Curve([(0, 0), (4, 0), (4, 2), (0, 2), (0, 0)])
    >>> c.is_closed(), c.length
    (True, 12.0)
    """

    points: Sequence[Sequence[float]]
    degree: int = 1
    span_count: Optional[int] = None
    closed: Optional[bool] = None

    def __post_init__(self):
        coords = np.array(self.points, dtype=float)
        if coords.ndim != 2 or coords.shape[1] not in (2, 3):
            raise ValueError(
                'Curve points must be a sequence of (x, y) or (x, y, z) '
                f'tuples, got an array of shape {coords.shape}.'
            )
        if len(coords) < 2:
            raise ValueError('A curve needs at least 2 points.')
        if not np.all(np.isfinite(coords)):
            raise ValueError('Curve points must be finite numbers.')
        if self.degree < 1:
            raise ValueError('degree has to be at least 1.')
        self.coords = coords
        if self.span_count is None:
            self.span_count = len(coords) - 1

    @property
    def xy(self) -> np.ndarray:
        """The (n, 2) planar coordinates of the curve points."""
        return self.coords[:, :2]

    def is_closed(self, tolerance: float = 1e-3) -> bool:
        if self.closed is not None:
            return self.closed
        return bool(
            np.linalg.norm(self.coords[0] - self.coords[-1]) <= tolerance
        )

    def is_planar(self, tolerance: float = 1e-6) -> bool:
        """Whether the curve lies in a plane parallel to the XY plane."""
        if self.coords.shape[1] == 2:
            return True
        return bool(np.ptp(self.coords[:, 2]) <= tolerance)

    def closed_xy(self, tolerance: float = 1e-3) -> np.ndarray:
        """Planar coordinates with the closing point appended if needed."""
        xy = self.xy
        if np.linalg.norm(xy[0] - xy[-1]) > tolerance:
            xy = np.vstack([xy, xy[:1]])
        else:
            xy = np.vstack([xy[:-1], xy[:1]])
        return xy

    @property
    def length(self) -> float:
        xy = self.closed_xy() if self.closed else self.xy
        return float(np.sum(np.linalg.norm(np.diff(xy, axis=0), axis=1)))

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.xy.min(axis=0), self.xy.max(axis=0)


@dataclass(eq=False)
class Boundary:
    r"""A validated, closed and planar boundary of a cross-section.

    Boundaries are produced by :class:`~ssection.core.preprocessing.
    validation.BoundaryValidator`. They own a private copy of their points,
    so later changes of the source curve do not leak into a section.

    Parameters
    ----------
    points : array_like
        (n, 2) coordinates of the boundary. A closing point is appended if
        the first and last point differ.
    degree : :any:`int`, default=1
        Degree of the source curve.
    span_count : :any:`int`, default=0
        Span count of the source curve.
    source_id : :any:`str`, optional
        Identifier of the source curve in the external document.

    Notes
    -----
    The derived shapely objects are created lazily and cached. The polygon
    is oriented counterclockwise.
    """

    points: np.ndarray
    degree: int = 1
    span_count: int = 0
    source_id: Optional[str] = None

    def __post_init__(self):
        points = np.array(self.points, dtype=float)
        if not np.array_equal(points[0], points[-1]):
            points = np.vstack([points, points[:1]])
        points.setflags(write=False)
        self.points = points

    @property
    def closed(self) -> bool:
        return True

    @property
    def planar(self) -> bool:
        return True

    @cached_property
    def ring(self) -> LinearRing:
        return LinearRing(self.points)

    @cached_property
    def polygon(self) -> ShapelyPolygon:
        return orient(ShapelyPolygon(self.points), sign=1.0)

    @cached_property
    def length(self) -> float:
        return float(self.ring.length)

    @cached_property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.points.min(axis=0), self.points.max(axis=0)

    @cached_property
    def area(self) -> float:
        return float(self.polygon.area)

    @cached_property
    def centroid(self) -> np.ndarray:
        c = self.polygon.centroid
        return np.array([c.x, c.y])

    def copy(self) -> 'Boundary':
        return Boundary(
            points=self.points.copy(), degree=self.degree,
            span_count=self.span_count, source_id=self.source_id,
        )


class Region:
    r"""Closed-form area integrals of a polygon with holes.

    The integrals are evaluated ring by ring with Green's theorem. The
    exterior ring is oriented counterclockwise and the holes clockwise, so
    the hole contributions are subtracted by their sign.

    Parameters
    ----------
    polygon : shapely.geometry.Polygon
        The polygon with holes. It is re-oriented if necessary.

    Notes
    -----
    To limit cancellation, all sums are evaluated in coordinates relative to
    the centre of the bounding box and shifted back afterwards.

    Examples
    --------
    >>> from shapely.geometry import Polygon
    >>> r = Region(Polygon([(0, 0), (4, 0), (4, 2), (0, 2)],
    ...                    holes=[[(1, 0.5), (3, 0.5), (3, 1.5), (1, 1.5)]]))
    >>> float(r.area), tuple(float(v) for v in r.centroid)
    (6.0, (2.0, 1.0))
    """

    def __init__(self, polygon: ShapelyPolygon):
        self.polygon = orient(polygon, sign=1.0)
        minx, miny, maxx, maxy = self.polygon.bounds
        self._ref = np.array([(minx + maxx) / 2, (miny + maxy) / 2])

    @cached_property
    def rings(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        rings = [self.polygon.exterior, *self.polygon.interiors]
        out = []
        for ring in rings:
            xy = np.asarray(ring.coords)[:, :2] - self._ref
            out.append((xy[:, 0], xy[:, 1]))
        return out

    @cached_property
    def _sums(self) -> np.ndarray:
        r"""Area, first and second moments about the reference point.

        .. math::
            A = \frac{1}{2}\sum a_i, \quad
            S_x = \frac{1}{6}\sum (y_i + y_{i+1})\, a_i, \quad
            I_{xx} = \frac{1}{12}\sum (y_i^2 + y_i y_{i+1} + y_{i+1}^2)\, a_i

        with :math:`a_i = x_i y_{i+1} - x_{i+1} y_i`.
        """
        total = np.zeros(6)
        for x, y in self.rings:
            x0, y0, x1, y1 = x[:-1], y[:-1], x[1:], y[1:]
            a = x0 * y1 - x1 * y0
            total += (
                np.sum(a) / 2,
                np.sum((y0 + y1) * a) / 6,
                np.sum((x0 + x1) * a) / 6,
                np.sum((y0 ** 2 + y0 * y1 + y1 ** 2) * a) / 12,
                np.sum((x0 ** 2 + x0 * x1 + x1 ** 2) * a) / 12,
                np.sum((x0 * y1 + 2 * x0 * y0 + 2 * x1 * y1 + x1 * y0) * a)
                / 24,
            )
        return total

    @property
    def area(self) -> float:
        return float(self._sums[0])

    @property
    def static_moment(self) -> Tuple[float, float]:
        r"""First moments :math:`(S_x, S_y) = (\int y\,dA, \int x\,dA)`
        about the global axes."""
        area, sx, sy = self._sums[:3]
        return (float(sx + area * self._ref[1]),
                float(sy + area * self._ref[0]))

    @property
    def centroid(self) -> np.ndarray:
        area, sx, sy = self._sums[:3]
        return self._ref + np.array([sy / area, sx / area])

    @property
    def moments_of_inertia_tensor(self) -> np.ndarray:
        r"""Second moment tensor about the centroidal axes.

        Returns
        -------
        ndarray
            .. math::
                \begin{bmatrix} I_x & I_{xy} \\ I_{xy} & I_y \end{bmatrix}

            with :math:`I_x = \int y^2 dA`, :math:`I_y = \int x^2 dA` and
            :math:`I_{xy} = \int x y\, dA`, all relative to the centroid.

        Notes
        -----
        Shifted from the reference point to the centroid with the parallel
        axis theorem, e.g. :math:`I_x = I_x^0 - A\, \bar{y}^2`.
        """
        area, sx, sy, ixx, iyy, ixy = self._sums
        dx, dy = sy / area, sx / area
        ix = ixx - area * dy ** 2
        iy = iyy - area * dx ** 2
        ixy = ixy - area * dx * dy
        return np.array([[ix, ixy], [ixy, iy]])
