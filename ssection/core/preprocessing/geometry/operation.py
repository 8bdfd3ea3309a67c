from concurrent.futures import ThreadPoolExecutor, TimeoutError
from math import ceil
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

import shapely
from shapely.errors import GEOSException
from shapely.geometry import (
    LineString, MultiPolygon, Polygon as ShapelyPolygon
)
from shapely.geometry.polygon import orient
from shapely.ops import unary_union
from shapely.validation import explain_validity

from ssection.core.errors import (
    NoAreaError, SurfaceConstructionError, SurfaceTimeoutError
)
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.geometry.objects import (
    Boundary, Containment, Curve
)


def sample_count(length: float, min_points: int, spacing: float) -> int:
    """Number of sample points for a curve of the given length.

    Examples
    --------
    >>> sample_count(1000.0, 50, 1.0)
    1000
    >>> sample_count(30.0, 8, 10.0)
    8
    """
    if spacing <= 0:
        raise ValueError('spacing has to be greater than zero.')
    return max(int(min_points), int(ceil(length / spacing)))


class CurveSample:
    r"""Points equally spaced along a closed polyline.

    The sample is lazy and restartable: nothing is evaluated on creation and
    every iteration starts again at the first point.

    Parameters
    ----------
    coords : array_like
        (n, 2) coordinates of the closed polyline.
    count : :any:`int`
        Number of equally spaced points.
    include_vertices : :any:`bool`, default=False
        Also yield the polyline vertices, merged in arc-length order.
    """

    def __init__(self, coords: np.ndarray, count: int,
                 include_vertices: bool = False):
        self._line = LineString(coords)
        length = self._line.length
        distances = np.linspace(0.0, length, count, endpoint=False)
        if include_vertices:
            steps = np.linalg.norm(np.diff(coords, axis=0), axis=1)
            vertices = np.concatenate([[0.0], np.cumsum(steps)[:-1]])
            distances = np.union1d(distances, vertices)
        self._distances = distances

    def __len__(self) -> int:
        return len(self._distances)

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        for d in self._distances:
            p = self._line.interpolate(d)
            yield p.x, p.y

    def as_array(self) -> np.ndarray:
        """All points as an (n, 2) array, evaluated in one call."""
        points = shapely.line_interpolate_point(self._line, self._distances)
        return shapely.get_coordinates(points)


def sample(curve: Union[Curve, Boundary, Sequence[Sequence[float]]],
           min_points: int = 8, spacing: float = 10.0,
           include_vertices: bool = False) -> CurveSample:
    r"""Sample a closed curve with a resolution proportional to its length.

    Parameters
    ----------
    curve : Curve, Boundary or array_like
        The curve to sample. Open curves are closed with a segment back to
        their first point.
    min_points : :any:`int`, default=8
        Lower bound of the number of points.
    spacing : :any:`float`, default=10.0
        Target distance between two points in length units.
    include_vertices : :any:`bool`, default=False
        Also yield the curve vertices.

    Returns
    -------
    CurveSample
        A lazy, finite and restartable point sequence.

    Examples
    --------
    >>> s = sample(Curve([(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)]),
    ...            min_points=4, spacing=100.0)
    >>> list(s)
    [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]
    """
    if isinstance(curve, Boundary):
        coords = curve.points
    elif isinstance(curve, Curve):
        coords = curve.closed_xy()
    else:
        coords = Curve(curve).closed_xy()
    length = float(np.sum(np.linalg.norm(np.diff(coords, axis=0), axis=1)))
    count = sample_count(length, min_points, spacing)
    return CurveSample(coords, count, include_vertices=include_vertices)


def bounding_box(points) -> Tuple[np.ndarray, np.ndarray]:
    """Lower left and upper right corner of the planar point cloud.

    Raises
    ------
    ValueError
        If no points are given.
    """
    arr = np.asarray(list(points) if not hasattr(points, 'shape') else points,
                     dtype=float)
    if arr.size == 0:
        raise ValueError('Cannot compute the bounding box of no points.')
    arr = arr.reshape(-1, arr.shape[-1])[:, :2]
    return arr.min(axis=0), arr.max(axis=0)


def box_contains(outer: Tuple[np.ndarray, np.ndarray],
                 inner: Tuple[np.ndarray, np.ndarray],
                 inflation: float = 0.0) -> bool:
    """Whether box ``inner`` lies in box ``outer`` grown by ``inflation``."""
    (omin, omax), (imin, imax) = outer, inner
    return bool(np.all(imin >= omin - inflation)
                and np.all(imax <= omax + inflation))


def classify_points(points, boundary: Boundary,
                    tolerance: float = 1e-3) -> List[Containment]:
    r"""Classify many points against a boundary at once.

    Points closer than ``tolerance`` to the boundary ring are
    :py:attr:`Containment.ON_BOUNDARY`; the others are decided by the
    even-odd ray test of GEOS.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        return []
    dist = shapely.distance(boundary.ring, shapely.points(pts))
    inside = shapely.contains_xy(boundary.polygon, pts[:, 0], pts[:, 1])
    result = []
    for d, i in zip(dist, inside):
        if d <= tolerance:
            result.append(Containment.ON_BOUNDARY)
        elif i:
            result.append(Containment.INSIDE)
        else:
            result.append(Containment.OUTSIDE)
    return result


def point_in_polygon(point, boundary: Boundary,
                     tolerance: float = 1e-3) -> Containment:
    """Classify one point against a boundary.

    Examples
    --------
    >>> b = Boundary([(0, 0), (4, 0), (4, 2), (0, 2)])
    >>> point_in_polygon((1, 1), b), point_in_polygon((4, 1), b)
    (<Containment.INSIDE: 'inside'>, <Containment.ON_BOUNDARY: 'on_boundary'>)
    """
    return classify_points([point], boundary, tolerance)[0]


class SurfaceBuilder(LoggerMixin):
    r"""
    Builds the planar surface of a section: the outline with the hollows
    cut out as interior voids.

    Parameters
    ----------
    outline : Boundary
        The outer boundary.
    hollows : sequence of Boundary, optional
        Interior voids. They are expected to be validated already.
    tolerance : :any:`float`, default=0.001
        Grid size of the boolean difference.
    timeout : :any:`float`, optional
        Upper bound of the construction time in seconds.

    Raises
    ------
    SurfaceConstructionError
        If the outline is not a valid polygon, the boolean operation fails
        or the result is not a single polygon.
    SurfaceTimeoutError
        If the construction exceeds ``timeout``.
    NoAreaError
        If nothing is left of the outline on the ``tolerance`` grid.
    """

    # noinspection PyMissingConstructor
    def __init__(self,
                 outline: Boundary,
                 hollows: Sequence[Boundary] = (),
                 tolerance: float = 1e-3,
                 timeout: Optional[float] = None,
                 debug: bool = False):
        _ = debug
        self.outline = outline
        self.hollows = list(hollows)
        self.tolerance = tolerance
        self.timeout = timeout
        self.logger.debug(
            "SurfaceBuilder with %d hollows, tolerance %g.",
            len(self.hollows), self.tolerance
        )

    def _difference(self) -> ShapelyPolygon:
        shell = self.outline.polygon
        if not shell.is_valid:
            reason = explain_validity(shell)
            self.logger.error("Outline is not a valid polygon: %s", reason)
            raise SurfaceConstructionError(
                f'The outline is not a valid polygon: {reason}.'
            )
        if self.hollows:
            cut = unary_union([h.polygon for h in self.hollows])
        else:
            cut = ShapelyPolygon()
        try:
            result = shapely.difference(shell, cut, grid_size=self.tolerance)
        except GEOSException as e:
            self.logger.error("Boolean difference failed: %s", e)
            raise SurfaceConstructionError(
                f'Cutting the hollows out of the outline failed: {e}'
            ) from e

        if result.is_empty:
            self.logger.error("Nothing is left of the outline.")
            raise NoAreaError('The section has no area on the tolerance grid.')
        if isinstance(result, MultiPolygon):
            self.logger.error(
                "Difference resulted in %d disjoint polygons.",
                len(result.geoms)
            )
            raise SurfaceConstructionError(
                'The section falls apart into disjoint regions.'
            )
        if not isinstance(result, ShapelyPolygon):
            self.logger.error(
                "Difference resulted in %s.", result.geom_type
            )
            raise SurfaceConstructionError(
                'The section does not enclose a region.'
            )
        self.logger.debug(
            "Surface built: %d exterior points, %d holes.",
            len(result.exterior.coords), len(result.interiors)
        )
        return orient(result, sign=1.0)

    def build(self) -> ShapelyPolygon:
        if self.timeout is None:
            return self._difference()
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self._difference)
            return future.result(timeout=self.timeout)
        except TimeoutError as e:
            self.logger.error(
                "Surface construction exceeded %g s.", self.timeout
            )
            raise SurfaceTimeoutError(
                f'Surface construction exceeded {self.timeout} s.'
            ) from e
        finally:
            executor.shutdown(wait=False)

    def __call__(self) -> ShapelyPolygon:
        return self.build()


def triangulate(surface: ShapelyPolygon, cell_size: float) -> np.ndarray:
    r"""Split a surface into small triangles.

    The surface is cut by a square grid of the given cell size and every
    piece is split by a constrained Delaunay triangulation, so no triangle
    edge exceeds the cell diagonal.

    Parameters
    ----------
    surface : shapely.geometry.Polygon
        The region to mesh, holes allowed.
    cell_size : :any:`float`
        Edge length of the grid cells.

    Returns
    -------
    ndarray
        Triangle corner coordinates of shape (m, 3, 2).
    """
    if cell_size <= 0:
        raise ValueError('cell_size has to be greater than zero.')
    minx, miny, maxx, maxy = surface.bounds
    nx = max(1, int(ceil((maxx - minx) / cell_size)))
    ny = max(1, int(ceil((maxy - miny) / cell_size)))
    gx, gy = np.meshgrid(minx + np.arange(nx) * cell_size,
                         miny + np.arange(ny) * cell_size)
    gx, gy = gx.ravel(), gy.ravel()
    cells = shapely.box(gx, gy, gx + cell_size, gy + cell_size)

    pieces = shapely.get_parts(shapely.intersection(cells, surface))
    pieces = pieces[
        (shapely.get_type_id(pieces) == 3) & (shapely.area(pieces) > 0)
    ]
    if len(pieces) == 0:
        return np.empty((0, 3, 2))
    triangles = shapely.get_parts(
        shapely.constrained_delaunay_triangles(pieces)
    )
    coords = shapely.get_coordinates(shapely.get_exterior_ring(triangles))
    return coords.reshape(-1, 4, 2)[:, :3, :]
