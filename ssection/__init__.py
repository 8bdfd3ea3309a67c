
from ssection.core import (
    ChangeTracker, Curve, CurveDocument, InputError, LengthUnit, LoadCase,
    ManualScheduler, Material, MaterialCatalog, MplSectionSink,
    PollScheduler, RecordingSink, ResultTable, Section, SectionAnalysis,
    SectionError, Settings
)

__all__ = [
    'ChangeTracker',
    'Curve',
    'CurveDocument',
    'InputError',
    'LengthUnit',
    'LoadCase',
    'ManualScheduler',
    'Material',
    'MaterialCatalog',
    'MplSectionSink',
    'PollScheduler',
    'RecordingSink',
    'ResultTable',
    'Section',
    'SectionAnalysis',
    'SectionError',
    'Settings',
]
