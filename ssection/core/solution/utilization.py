from dataclasses import dataclass
from math import sqrt
from typing import Optional

from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.loads import LoadCase
from ssection.core.solution.properties import SectionProperties

# kN·m -> N·mm and kN -> N
MOMENT_FACTOR = 1e6
FORCE_FACTOR = 1e3
SHEAR_FACTOR = 1.5


@dataclass(frozen=True)
class UtilizationResult:
    r"""Stresses and utilization of a section under one load case.

    All stresses in N/mm².

    Attributes
    ----------
    sigma_x, sigma_y : :any:`float`
        Bending stresses :math:`|M_x| / W_x` and :math:`|M_y| / W_y`.
    tau_qx, tau_qy : :any:`float`
        Shear stresses :math:`1.5\,|Q| / A`.
    tau_t : :any:`float`
        Torsional shear stress.
    tau : :any:`float`
        Combined shear stress.
    sigma_v : :any:`float`
        Von Mises equivalent stress.
    design_strength : :any:`float`
        Yield strength divided by the safety factor.
    utilization : :any:`float`
        :math:`\sigma_v / f_d` in percent.
    """

    sigma_x: float
    sigma_y: float
    tau_qx: float
    tau_qy: float
    tau_t: float
    tau: float
    sigma_v: float
    design_strength: float
    utilization: float

    @property
    def critical(self) -> bool:
        """The section is at or beyond its capacity."""
        return self.utilization >= 100.0

    @property
    def exceeds_capacity(self) -> bool:
        return self.utilization > 100.0


class UtilizationCalculator(LoggerMixin):
    r"""
    Combines bending, shear and torsion into a utilization ratio.

    The stresses are engineering approximations:

    - bending: :math:`\sigma_x = |M_x| / W_x`, :math:`\sigma_y = |M_y| / W_y`.
      Only magnitudes are used, the signed superposition of both axes at a
      common corner is not evaluated.
    - shear: :math:`\tau_Q = 1.5\,|Q| / A`, the factor of a rectangular
      section, for every shape.
    - torsion: :math:`\tau_T = T \cdot \max(x_{max}, y_{max}) / (I_x + I_y)`,
      the polar moment standing in for the torsion constant.

    .. math::
        \tau = \sqrt{\tau_{Qx}^2 + \tau_{Qy}^2 + \tau_T^2}, \quad
        \sigma_v = \sqrt{\sigma_x^2 + \sigma_y^2 - \sigma_x \sigma_y
        + 3 \tau^2}
    """

    # noinspection PyMissingConstructor
    def __init__(self, debug: bool = False):
        _ = debug

    def calculate(self, properties: SectionProperties,
                  load_case: Optional[LoadCase],
                  yield_strength: Optional[float]
                  ) -> Optional[UtilizationResult]:
        r"""Compute the utilization.

        Parameters
        ----------
        properties : SectionProperties
            Properties of the section.
        load_case : LoadCase, optional
            Moments in kN·m, forces in kN.
        yield_strength : :any:`float`, optional
            Yield strength in N/mm².

        Returns
        -------
        UtilizationResult or None
            ``None`` if there is no load or no valid yield strength. This is
            different from a utilization of zero.
        """
        if load_case is None or not load_case.is_loaded:
            self.logger.debug("No load applied, no utilization.")
            return None
        if yield_strength is None or not yield_strength > 0:
            self.logger.warning(
                "No valid yield strength (%s), no utilization.",
                yield_strength
            )
            return None

        mx = abs(load_case.mx) * MOMENT_FACTOR
        my = abs(load_case.my) * MOMENT_FACTOR
        qx = abs(load_case.qx) * FORCE_FACTOR
        qy = abs(load_case.qy) * FORCE_FACTOR
        t = abs(load_case.t) * MOMENT_FACTOR

        sigma_x = mx / properties.wx
        sigma_y = my / properties.wy
        tau_qx = SHEAR_FACTOR * qx / properties.area
        tau_qy = SHEAR_FACTOR * qy / properties.area
        tau_t = t * max(properties.x_max, properties.y_max) / properties.polar
        tau = sqrt(tau_qx ** 2 + tau_qy ** 2 + tau_t ** 2)
        sigma_v = sqrt(
            sigma_x ** 2 + sigma_y ** 2 - sigma_x * sigma_y + 3 * tau ** 2
        )

        design_strength = yield_strength / load_case.safety_factor
        utilization = sigma_v / design_strength * 100
        result = UtilizationResult(
            sigma_x=sigma_x, sigma_y=sigma_y,
            tau_qx=tau_qx, tau_qy=tau_qy, tau_t=tau_t, tau=tau,
            sigma_v=sigma_v, design_strength=design_strength,
            utilization=utilization,
        )
        if result.exceeds_capacity:
            self.logger.warning(
                "Utilization %.1f %% exceeds the capacity.", utilization
            )
        else:
            self.logger.info("Utilization %.1f %%.", utilization)
        return result
