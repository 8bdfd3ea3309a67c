from ssection.core.preprocessing import geometry
from ssection.core.preprocessing.geometry import *  # noqa: F401, F403
from ssection.core.preprocessing.loads import LoadCase
from ssection.core.preprocessing.material import (
    DEFAULT_MATERIALS, Material, MaterialCatalog
)
from ssection.core.preprocessing.section import Section
from ssection.core.preprocessing.validation import (
    BoundaryError, BoundaryValidator, ValidationResult
)


__all__ = [
    'BoundaryError',
    'BoundaryValidator',
    'DEFAULT_MATERIALS',
    'geometry',
    'LoadCase',
    'Material',
    'MaterialCatalog',
    'Section',
    'ValidationResult',
]
