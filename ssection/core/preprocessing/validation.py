from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

import shapely
from shapely.errors import GEOSException

from ssection.core.config import (
    HOLLOW_SAMPLING_FAST, HOLLOW_SAMPLING_HIGH, Settings
)
from ssection.core.errors import InputError
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.geometry.objects import (
    Boundary, Containment, Curve
)
from ssection.core.preprocessing.geometry.operation import (
    box_contains, classify_points, point_in_polygon, sample
)


class BoundaryError(Enum):
    """Reasons for rejecting a boundary."""

    NOT_CLOSED = 'not closed'
    NOT_PLANAR = 'not planar'
    DEGENERATE = 'degenerate'
    OUTSIDE_OUTLINE = 'outside outline'
    INTERSECTS_OTHER_HOLLOW = 'intersects other hollow'


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one curve.

    Exactly one of :py:attr:`boundary` and :py:attr:`error` is set.
    """

    boundary: Optional[Boundary] = None
    error: Optional[BoundaryError] = None
    message: str = ''
    source_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Boundary:
        """Return the boundary or raise :class:`InputError`."""
        if self.error is not None:
            raise InputError(self.message or self.error.value)
        return self.boundary


CurveLike = Union[Curve, Sequence[Sequence[float]]]


class BoundaryValidator(LoggerMixin):
    r"""
    Checks outline and hollow curves before they enter a section.

    Outlines must be closed, planar and enclose an area. Hollows must in
    addition lie inside the outline and must neither intersect nor contain
    another hollow. Rejections are returned as :class:`ValidationResult`
    values, they are never raised.

    Parameters
    ----------
    settings : Settings, optional
        Tolerances and accuracy mode. Defaults to :class:`Settings()`.

    Examples
    --------
    >>> v = BoundaryValidator()
    >>> outline = v.validate_outline(
    ...     Curve([(0, 0), (100, 0), (100, 50), (0, 50), (0, 0)])
    ... ).unwrap()
    >>> v.validate_hollow(
    ...     Curve([(10, 10), (20, 10), (20, 20), (10, 20), (10, 10)]), outline
    ... ).ok
    True
    """

    # noinspection PyMissingConstructor
    def __init__(self, settings: Optional[Settings] = None,
                 debug: bool = False):
        _ = debug
        self.settings = settings or Settings()

    def _reject(self, error: BoundaryError, message: str,
                source_id: Optional[str]) -> ValidationResult:
        self.logger.warning("Rejected curve %s: %s", source_id, message)
        return ValidationResult(error=error, message=message,
                                source_id=source_id)

    def _to_boundary(self, curve: CurveLike,
                     source_id: Optional[str]) -> ValidationResult:
        tol = self.settings.tolerance
        if not isinstance(curve, Curve):
            try:
                curve = Curve(curve)
            except ValueError as e:
                return self._reject(BoundaryError.DEGENERATE, str(e),
                                    source_id)

        if not curve.is_closed(tol):
            return self._reject(
                BoundaryError.NOT_CLOSED,
                'The curve is not closed: first and last point are '
                f'{np.linalg.norm(curve.xy[0] - curve.xy[-1]):.6g} apart.',
                source_id
            )
        if not curve.is_planar(self.settings.planarity_tolerance):
            return self._reject(
                BoundaryError.NOT_PLANAR,
                'The curve does not lie in a plane parallel to XY.',
                source_id
            )

        points = curve.closed_xy(tol)
        if len(np.unique(points[:-1], axis=0)) < 3:
            return self._reject(
                BoundaryError.DEGENERATE,
                'A boundary needs at least 3 distinct points.', source_id
            )
        boundary = Boundary(points, degree=curve.degree,
                            span_count=curve.span_count, source_id=source_id)
        if boundary.area <= tol ** 2:
            return self._reject(
                BoundaryError.DEGENERATE,
                'The curve does not enclose an area.', source_id
            )
        return ValidationResult(boundary=boundary, source_id=source_id)

    def validate_outline(self, curve: CurveLike,
                         source_id: Optional[str] = None) -> ValidationResult:
        """Validate the outer boundary of a section."""
        result = self._to_boundary(curve, source_id)
        if result.ok:
            self.logger.info(
                "Outline %s accepted: length %.6g, area %.6g.",
                source_id, result.boundary.length, result.boundary.area
            )
        return result

    def validate_hollow(self, curve: CurveLike, outline: Boundary,
                        accepted: Sequence[Boundary] = (),
                        source_id: Optional[str] = None,
                        high_accuracy: Optional[bool] = None
                        ) -> ValidationResult:
        r"""Validate one hollow against the outline and accepted hollows.

        Parameters
        ----------
        curve : Curve or array_like
            The hollow curve.
        outline : Boundary
            The validated outline.
        accepted : sequence of Boundary, optional
            Hollows accepted before this one.
        source_id : :any:`str`, optional
            Identifier of the curve, carried into the result.
        high_accuracy : :any:`bool`, optional
            Overrides :py:attr:`Settings.high_accuracy`.

        Returns
        -------
        ValidationResult
            The hollow boundary or the reason for its rejection.

        Notes
        -----
        Containment is tested in steps of increasing cost:

        1. The hollow bounding box must lie in the outline bounding box
           inflated by :py:attr:`Settings.bbox_inflation`.
        2. The hollow centroid must not lie outside the outline.
        3. Sampled hollow points must lie inside or on the outline. High
           accuracy samples densely and allows no outside point, fast mode
           samples sparsely and allows one.
        4. Cutting the hollow from the outline must succeed and must not
           grow the area.
        """
        result = self._to_boundary(curve, source_id)
        if not result.ok:
            return result
        hollow = result.boundary
        tol = self.settings.tolerance
        if high_accuracy is None:
            high_accuracy = self.settings.high_accuracy

        if not box_contains(outline.bounds, hollow.bounds,
                            self.settings.bbox_inflation):
            return self._reject(
                BoundaryError.OUTSIDE_OUTLINE,
                'The hollow bounding box exceeds the outline bounding box.',
                source_id
            )

        if point_in_polygon(hollow.centroid, outline, tol) \
                is Containment.OUTSIDE:
            return self._reject(
                BoundaryError.OUTSIDE_OUTLINE,
                'The hollow centroid lies outside the outline.', source_id
            )

        if high_accuracy:
            min_points, spacing = HOLLOW_SAMPLING_HIGH
            allowed_outside = 0
        else:
            min_points, spacing = HOLLOW_SAMPLING_FAST
            allowed_outside = 1
        points = sample(hollow, min_points, spacing).as_array()
        outside = sum(
            c is Containment.OUTSIDE
            for c in classify_points(points, outline, tol)
        )
        self.logger.debug(
            "%d of %d sampled hollow points outside the outline "
            "(%d allowed).", outside, len(points), allowed_outside
        )
        if outside > allowed_outside:
            return self._reject(
                BoundaryError.OUTSIDE_OUTLINE,
                f'{outside} of {len(points)} sampled hollow points lie '
                'outside the outline.', source_id
            )

        ok, message = self._difference_check(outline, hollow,
                                             strict=high_accuracy)
        if not ok:
            return self._reject(BoundaryError.OUTSIDE_OUTLINE, message,
                                source_id)

        for i, other in enumerate(accepted):
            if self.intersects(hollow, other):
                return self._reject(
                    BoundaryError.INTERSECTS_OTHER_HOLLOW,
                    f'The hollow intersects or overlaps accepted hollow '
                    f'#{i} ({other.source_id}).', source_id
                )

        self.logger.info("Hollow %s accepted.", source_id)
        return result

    def validate_hollows(self, curves: Sequence[CurveLike],
                         outline: Boundary,
                         source_ids: Optional[Sequence[str]] = None
                         ) -> Tuple[List[Boundary], List[ValidationResult]]:
        """Validate hollows in order, accumulating the valid subset.

        Returns
        -------
        tuple of (list of Boundary, list of ValidationResult)
            Accepted hollows and the results of the rejected ones.
        """
        if source_ids is None:
            source_ids = [None] * len(curves)
        accepted, rejected = [], []
        for curve, source_id in zip(curves, source_ids):
            result = self.validate_hollow(curve, outline, accepted,
                                          source_id=source_id)
            if result.ok:
                accepted.append(result.boundary)
            else:
                rejected.append(result)
        self.logger.info(
            "%d hollows accepted, %d rejected.", len(accepted), len(rejected)
        )
        return accepted, rejected

    def intersects(self, a: Boundary, b: Boundary) -> bool:
        """Whether two hollows cross, touch, overlap or contain each other.

        The curves intersect when they come closer than the tolerance. If
        they do not, one may still lie inside the other, which the centroid
        test catches.
        """
        tol = self.settings.tolerance
        if a.ring.distance(b.ring) <= tol:
            return True
        return (
            point_in_polygon(a.centroid, b, tol) is not Containment.OUTSIDE
            or point_in_polygon(b.centroid, a, tol) is not Containment.OUTSIDE
        )

    def _difference_check(self, outline: Boundary, hollow: Boundary,
                          strict: bool) -> Tuple[bool, str]:
        """Cut the hollow from the outline and check the resulting region.

        In strict mode a failing boolean operation rejects the hollow.
        Otherwise the check is best effort: a failure is logged and the
        hollow is kept.
        """
        try:
            region = shapely.difference(outline.polygon, hollow.polygon,
                                        grid_size=self.settings.tolerance)
        except GEOSException as e:
            if strict:
                return False, f'Cutting the hollow from the outline ' \
                              f'failed: {e}'
            self.logger.warning(
                "Best-effort region check skipped, boolean difference "
                "failed: %s", e
            )
            return True, ''

        if region.is_empty:
            return False, 'Cutting the hollow leaves no region.'
        if region.area > outline.area + self.settings.tolerance:
            return False, (
                f'Cutting the hollow grows the area from {outline.area:.6g} '
                f'to {region.area:.6g}.'
            )
        return True, ''
