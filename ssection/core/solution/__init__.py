from ssection.core.solution.integrator import RegionIntegral, RegionIntegrator
from ssection.core.solution.properties import (
    SectionProperties, derive_properties, principal_moments
)
from ssection.core.solution.utilization import (
    UtilizationCalculator, UtilizationResult
)

__all__ = [
    'derive_properties',
    'principal_moments',
    'RegionIntegral',
    'RegionIntegrator',
    'SectionProperties',
    'UtilizationCalculator',
    'UtilizationResult',
]
