from ssection.core.postprocessing.renderer import MplSectionSink
from ssection.core.postprocessing.results import (
    CSV_HEADER, LengthUnit, QuantityKind, ResultRow, ResultTable, convert
)
from ssection.core.postprocessing.visualization import (
    RecordingSink, VisualizationArtifacts, VisualizationSink, bending_stress,
    build_artifacts
)

__all__ = [
    'bending_stress',
    'build_artifacts',
    'convert',
    'CSV_HEADER',
    'LengthUnit',
    'MplSectionSink',
    'QuantityKind',
    'RecordingSink',
    'ResultRow',
    'ResultTable',
    'VisualizationArtifacts',
    'VisualizationSink',
]
