from dataclasses import dataclass
from typing import Literal, Optional, Tuple

INTEGRATION_METHODS = ('auto', 'direct', 'mesh')

# (minimum number of points, spacing in length units)
HOLLOW_SAMPLING_HIGH = (50, 1.0)
HOLLOW_SAMPLING_FAST = (8, 10.0)
FIBER_SAMPLING = (200, 0.5)


@dataclass(frozen=True)
class Settings:
    r"""Numerical settings of the section pipeline.

    All lengths are given in the base length unit (mm). The display unit
    has no influence here; see :class:`~ssection.core.postprocessing.results.
    LengthUnit`.

    Parameters
    ----------
    high_accuracy : :any:`bool`, default=False
        Selects the dense sampling and the fine integration mesh. Doubles the
        polling interval of the change tracker.
    tolerance : :any:`float`, default=0.001
        Geometric tolerance for closedness, boundary classification, curve
        intersection and the boolean surface construction.
    bbox_inflation : :any:`float`, default=0.001
        Amount the outline bounding box is inflated by before testing whether
        a hollow bounding box lies inside.
    min_fiber_distance : :any:`float`, default=0.001
        Lower clamp for the extreme-fiber distances :math:`x_{max}` and
        :math:`y_{max}`.
    planarity_tolerance : :any:`float`, default=1e-6
        Allowed spread of the z coordinates of a 3D curve.
    poll_interval : :any:`float`, default=1.0
        Seconds between two polls of the change tracker.
    surface_timeout : :any:`float`, optional
        Upper bound in seconds for the surface construction. ``None`` means
        unbounded.
    integration : {'auto', 'direct', 'mesh'}, default='auto'
        Strategy for the second moments of area.
    mesh_fraction_fast : :any:`float`, default=1/50
        Mesh cell size as a fraction of the bounding-box diagonal.
    mesh_fraction_high : :any:`float`, default=1/200
        Mesh cell size in high-accuracy mode.
    decimals : :any:`int`, default=6
        Significant digits of formatted result values.

    Raises
    ------
    ValueError
        If a tolerance, interval or fraction is not positive, or the
        integration method is unknown.
    """

    high_accuracy: bool = False
    tolerance: float = 1e-3
    bbox_inflation: float = 1e-3
    min_fiber_distance: float = 1e-3
    planarity_tolerance: float = 1e-6
    poll_interval: float = 1.0
    surface_timeout: Optional[float] = None
    integration: Literal['auto', 'direct', 'mesh'] = 'auto'
    mesh_fraction_fast: float = 1 / 50
    mesh_fraction_high: float = 1 / 200
    decimals: int = 6

    def __post_init__(self):
        for name in ('tolerance', 'bbox_inflation', 'min_fiber_distance',
                     'planarity_tolerance', 'poll_interval',
                     'mesh_fraction_fast', 'mesh_fraction_high'):
            if getattr(self, name) <= 0:
                raise ValueError(f'{name} has to be greater than zero.')
        if self.surface_timeout is not None and self.surface_timeout <= 0:
            raise ValueError(
                'surface_timeout has to be greater than zero or None.'
            )
        if self.integration not in INTEGRATION_METHODS:
            raise ValueError(
                f'integration has to be one of {INTEGRATION_METHODS}, '
                f'got {self.integration!r}.'
            )
        if self.decimals < 1:
            raise ValueError('decimals has to be at least 1.')

    @property
    def tick_interval(self) -> float:
        """Polling interval of the change tracker in seconds."""
        if self.high_accuracy:
            return 2 * self.poll_interval
        return self.poll_interval

    @property
    def mesh_fraction(self) -> float:
        if self.high_accuracy:
            return self.mesh_fraction_high
        return self.mesh_fraction_fast

    @property
    def fiber_sampling(self) -> Tuple[int, float]:
        return FIBER_SAMPLING
