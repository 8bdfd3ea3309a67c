
from ssection.core import postprocessing, preprocessing, solution
from ssection.core.analysis import AnalysisOutcome, SectionAnalysis
from ssection.core.config import Settings
from ssection.core.errors import (
    GeometryConstructionError, InputError, NoAreaError, SectionError,
    SurfaceConstructionError, SurfaceTimeoutError, TrackingError
)
from ssection.core.postprocessing import *  # noqa: F401, F403
from ssection.core.preprocessing import *  # noqa: F401, F403
from ssection.core.preprocessing.geometry import *  # noqa: F401, F403
from ssection.core.solution import *  # noqa: F401, F403
from ssection.core.tracking import (
    ChangeTracker, CurveDocument, GeometryFingerprint, ManualScheduler,
    PollScheduler, PublishQueue, TrackerState
)

__all__ = [
    'AnalysisOutcome',
    'ChangeTracker',
    'CurveDocument',
    'GeometryConstructionError',
    'GeometryFingerprint',
    'InputError',
    'ManualScheduler',
    'NoAreaError',
    'PollScheduler',
    'postprocessing',
    'preprocessing',
    'PublishQueue',
    'SectionAnalysis',
    'SectionError',
    'Settings',
    'solution',
    'SurfaceConstructionError',
    'SurfaceTimeoutError',
    'TrackerState',
    'TrackingError',
]
