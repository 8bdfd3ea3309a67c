from dataclasses import dataclass
from math import atan2, sqrt
from typing import List, Optional, Tuple

import numpy as np

from ssection.core.errors import InputError
from ssection.core.preprocessing.material import Material
from ssection.core.solution.integrator import RegionIntegral

# g/cm³ * mm³ -> kg
DENSITY_FACTOR = 1e-6


@dataclass(frozen=True)
class SectionProperties:
    r"""Cross-section properties of one computation.

    All lengths are in the base unit (mm). A new instance is produced on
    every recompute; instances are never modified.

    Attributes
    ----------
    area : :any:`float`
        Net area in mm².
    centroid_x, centroid_y : :any:`float`
        Centroid in mm.
    ixx, iyy, ixy : :any:`float`
        Centroidal second moments :math:`I_x, I_y` and product moment
        :math:`I_{xy}` in mm⁴.
    polar : :any:`float`
        Polar moment :math:`I_p = I_x + I_y`.
    i1, i2 : :any:`float`
        Principal moments, :math:`I_1 \geq I_2`.
    principal_angle : :any:`float`
        Angle of the major principal axis against the x-axis in rad,
        within :math:`(-\pi/2, \pi/2]`.
    wx, wy : :any:`float`
        Elastic section moduli :math:`W_x = I_x / y_{max}` and
        :math:`W_y = I_y / x_{max}` in mm³.
    rx, ry : :any:`float`
        Radii of gyration :math:`i_x = \sqrt{I_x / A}` and
        :math:`i_y = \sqrt{I_y / A}` in mm.
    x_max, y_max : :any:`float`
        Extreme-fiber distances in mm.
    outline_length : :any:`float`
        Length of the outline in mm.
    depth : :any:`float`
        Profile depth (extrusion length) in mm.
    density : :any:`float`, optional
        Density in g/cm³ used for the mass.
    mass : :any:`float`
        Mass of the profile over its depth in kg.
    mass_moment_x, mass_moment_y : :any:`float`
        :math:`\rho\, L\, I_x` and :math:`\rho\, L\, I_y` in kg·mm².
    method : :any:`str`
        Integration strategy that produced the second moments.
    warnings : tuple of str
        Clamped or degraded conditions.
    """

    area: float
    centroid_x: float
    centroid_y: float
    ixx: float
    iyy: float
    ixy: float
    polar: float
    i1: float
    i2: float
    principal_angle: float
    wx: float
    wy: float
    rx: float
    ry: float
    x_max: float
    y_max: float
    outline_length: float
    depth: float
    density: Optional[float]
    mass: float
    mass_moment_x: float
    mass_moment_y: float
    method: str
    warnings: Tuple[str, ...] = ()

    @property
    def centroid(self) -> Tuple[float, float]:
        return self.centroid_x, self.centroid_y

    @property
    def principal_axes(self) -> Tuple[np.ndarray, np.ndarray]:
        """Unit vectors of the major and minor principal axis."""
        a = self.principal_angle
        return (np.array([np.cos(a), np.sin(a)]),
                np.array([-np.sin(a), np.cos(a)]))


def principal_moments(ixx: float, iyy: float,
                      ixy: float) -> Tuple[float, float, float]:
    r"""Principal moments and the angle of the major axis.

    The moment about an axis with direction angle :math:`\theta` is

    .. math::
        I_\theta = I_x \cos^2\theta + I_y \sin^2\theta
        - 2 I_{xy} \sin\theta \cos\theta

    Returns
    -------
    tuple of float
        :math:`(I_1, I_2, \theta_1)` with :math:`I_1 \geq I_2`.

    Examples
    --------
    >>> principal_moments(2.0, 8.0, 0.0)
    (8.0, 2.0, 1.5707963267948966)
    """
    mean = (ixx + iyy) / 2
    radius = sqrt(((ixx - iyy) / 2) ** 2 + ixy ** 2)
    theta = 0.5 * atan2(0.0 - 2 * ixy, ixx - iyy)
    return mean + radius, mean - radius, theta


def derive_properties(integral: RegionIntegral,
                      material: Optional[Material] = None,
                      depth: float = 1000.0) -> SectionProperties:
    r"""Derive moduli, radii of gyration and mass from the integrals.

    Parameters
    ----------
    integral : RegionIntegral
        Output of :class:`~ssection.core.solution.integrator.
        RegionIntegrator`.
    material : Material, optional
        Material providing the density.
    depth : :any:`float`, default=1000.0
        Profile depth in mm.

    Returns
    -------
    SectionProperties

    Raises
    ------
    InputError
        If the depth is not positive.

    Notes
    -----
    The mass follows from :math:`m = A\, L\, \rho \cdot 10^{-6}` with
    :math:`A` in mm², :math:`L` in mm and :math:`\rho` in g/cm³. Without a
    valid density the mass is zero and a warning is added.
    """
    if not depth > 0:
        raise InputError('depth has to be greater than zero.')
    warnings: List[str] = list(integral.warnings)

    density = material.density if material is not None else None
    if density is None:
        warnings.append('No valid density, mass reported as zero.')
        factor = 0.0
    else:
        factor = density * depth * DENSITY_FACTOR

    i1, i2, theta = principal_moments(integral.ixx, integral.iyy,
                                      integral.ixy)
    return SectionProperties(
        area=integral.area,
        centroid_x=integral.centroid[0],
        centroid_y=integral.centroid[1],
        ixx=integral.ixx,
        iyy=integral.iyy,
        ixy=integral.ixy,
        polar=integral.ixx + integral.iyy,
        i1=i1,
        i2=i2,
        principal_angle=theta,
        wx=integral.ixx / integral.y_max,
        wy=integral.iyy / integral.x_max,
        rx=sqrt(integral.ixx / integral.area),
        ry=sqrt(integral.iyy / integral.area),
        x_max=integral.x_max,
        y_max=integral.y_max,
        outline_length=integral.outline_length,
        depth=depth,
        density=density,
        mass=integral.area * factor,
        mass_moment_x=integral.ixx * factor,
        mass_moment_y=integral.iyy * factor,
        method=integral.method,
        warnings=tuple(warnings),
    )
