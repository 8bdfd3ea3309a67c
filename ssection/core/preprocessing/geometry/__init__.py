from ssection.core.preprocessing.geometry.objects import (
    Boundary, Containment, Curve, Region
)
from ssection.core.preprocessing.geometry.operation import (
    CurveSample, SurfaceBuilder, bounding_box, box_contains, classify_points,
    point_in_polygon, sample, sample_count, triangulate
)


__all__ = [
    'Boundary',
    'bounding_box',
    'box_contains',
    'classify_points',
    'Containment',
    'Curve',
    'CurveSample',
    'point_in_polygon',
    'Region',
    'sample',
    'sample_count',
    'SurfaceBuilder',
    'triangulate',
]
