"""Exceptions raised by the section analysis pipeline.

Input problems derive from :class:`ValueError` so callers that only know the
builtin still catch them. Geometric rejections of single boundaries are not
exceptions; see :class:`~ssection.core.preprocessing.validation.
ValidationResult`.
"""


class SectionError(Exception):
    """Base class for all errors of the section pipeline."""


class InputError(SectionError, ValueError):
    """Missing or invalid user input (outline, material, load, numbers)."""


class GeometryConstructionError(SectionError):
    """The section geometry could not be turned into an integrable region."""


class SurfaceConstructionError(GeometryConstructionError):
    """Building the polygon with holes failed."""


class SurfaceTimeoutError(SurfaceConstructionError):
    """Building the polygon with holes exceeded the configured timeout."""


class NoAreaError(GeometryConstructionError):
    """The constructed region has no positive area."""


class TrackingError(SectionError):
    """The change tracker could not be started or failed while watching."""
