from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ssection.core.config import Settings
from ssection.core.errors import InputError
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.postprocessing.results import LengthUnit, ResultTable
from ssection.core.postprocessing.visualization import (
    VisualizationArtifacts, VisualizationSink, build_artifacts
)
from ssection.core.preprocessing.geometry.objects import Boundary
from ssection.core.preprocessing.loads import LoadCase
from ssection.core.preprocessing.material import Material, MaterialCatalog
from ssection.core.preprocessing.section import Section
from ssection.core.preprocessing.validation import (
    BoundaryValidator, CurveLike, ValidationResult
)
from ssection.core.solution.integrator import RegionIntegrator
from ssection.core.solution.properties import (
    SectionProperties, derive_properties
)
from ssection.core.solution.utilization import (
    UtilizationCalculator, UtilizationResult
)
from ssection.core.utils import parse_number


@dataclass(frozen=True, eq=False)
class AnalysisOutcome:
    """Everything one pipeline run produced for a section.

    ``generation`` is the section generation the run started from and
    ``artifacts`` is ``None`` when no sink was attached.
    """

    section: Section
    properties: SectionProperties
    utilization: Optional[UtilizationResult]
    artifacts: Optional[VisualizationArtifacts]
    generation: int = 0


class SectionAnalysis(LoggerMixin):
    r"""
    Owner of a cross-section, its inputs and its latest results.

    The analysis is the single place where the section, material, load case
    and results are changed. Validation and integration run in
    :meth:`evaluate`, which does not touch the owned state and may be called
    from any thread; :meth:`apply` stores and publishes an outcome and must
    be called from the owning thread only.

    Every change of the section increments its generation. An outcome
    computed from an older generation is dropped by :meth:`apply`, so a
    result that was still in flight can never bring back a section the
    owner has replaced or removed. Listeners registered with
    :meth:`subscribe` are called with ``'changed'`` or ``'removed'`` after
    each section change.

    Parameters
    ----------
    settings : Settings, optional
        Numerical settings. Defaults to :class:`Settings()`.
    catalog : MaterialCatalog, optional
        Named materials. Defaults to the built-in catalog.
    sink : VisualizationSink, optional
        Receives the drawable results of every successful run.
    material : :any:`str` or Material, default='Steel'
        Initial material.
    depth : :any:`float`, default=1000.0
        Profile depth in mm used for the mass.
    unit : :any:`str` or LengthUnit, default='mm'
        Display unit of the result table.
    debug : :any:`bool`, default=False
        Enables debug-level logging.

    Examples
    --------
    >>> analysis = SectionAnalysis()
    >>> _ = analysis.assign_outline([(0, 0), (100, 0), (100, 200), (0, 200),
    ...                              (0, 0)])
    >>> round(analysis.calculate().properties.area)
    20000
    """

    # noinspection PyMissingConstructor
    def __init__(self, settings: Optional[Settings] = None,
                 catalog: Optional[MaterialCatalog] = None,
                 sink: Optional[VisualizationSink] = None,
                 material: Union[str, Material] = 'Steel',
                 depth: float = 1000.0,
                 unit: Union[str, LengthUnit] = LengthUnit.MM,
                 debug: bool = False):
        self.debug = debug
        self.settings = settings or Settings()
        self.catalog = catalog or MaterialCatalog(debug=debug)
        self.sink = sink
        self.validator = BoundaryValidator(self.settings, debug=debug)
        self.integrator = RegionIntegrator(self.settings, debug=debug)
        self.calculator = UtilizationCalculator(debug=debug)

        self._head: Tuple[int, Section] = (0, Section())
        self._listeners: List[Callable[[str], None]] = []
        self._material = self._resolve_material(material)
        self._load_case: Optional[LoadCase] = None
        self._depth = self._positive_depth(depth)
        self._unit = LengthUnit.parse(unit)
        self._outcome: Optional[AnalysisOutcome] = None

    def _resolve_material(self, material: Union[str, Material]) -> Material:
        if isinstance(material, Material):
            return material
        return self.catalog[material]

    @staticmethod
    def _positive_depth(depth: Union[str, float]) -> float:
        depth = parse_number(depth, 'depth')
        if depth <= 0:
            raise InputError('depth has to be greater than zero.')
        return depth

    @property
    def section(self) -> Section:
        return self._head[1]

    @property
    def generation(self) -> int:
        return self._head[0]

    def snapshot(self) -> Tuple[int, Section]:
        """The generation and the section, read together.

        The returned section is never changed in place, so other threads
        may read it while the owner goes on editing.
        """
        return self._head

    def subscribe(self, listener: Callable[[str], None]):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[str], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _commit(self, section: Section, event: str = 'changed'):
        self._head = (self._head[0] + 1, section)
        for listener in list(self._listeners):
            listener(event)

    @property
    def material(self) -> Material:
        return self._material

    @property
    def load_case(self) -> Optional[LoadCase]:
        return self._load_case

    @property
    def depth(self) -> float:
        return self._depth

    @property
    def unit(self) -> LengthUnit:
        return self._unit

    @property
    def outcome(self) -> Optional[AnalysisOutcome]:
        return self._outcome

    @property
    def properties(self) -> Optional[SectionProperties]:
        return self._outcome.properties if self._outcome else None

    @property
    def utilization(self) -> Optional[UtilizationResult]:
        return self._outcome.utilization if self._outcome else None

    def assign_outline(self, curve: CurveLike,
                       source_id: Optional[str] = None) -> Boundary:
        """Validate a curve and make it the outline of the section.

        Hollows already assigned are checked again against the new outline;
        those that no longer fit are dropped with a warning.

        Raises
        ------
        InputError
            If the curve is not a valid outline. The section is unchanged.
        """
        outline = self.validator.validate_outline(curve, source_id).unwrap()
        hollows = self.section.hollows
        section = Section(outline)
        if hollows:
            accepted, rejected = self.validator.validate_hollows(
                [h.points for h in hollows], outline,
                [h.source_id for h in hollows]
            )
            for r in rejected:
                self.logger.warning(
                    "Hollow %s dropped after outline change: %s",
                    r.source_id, r.message
                )
            section.hollows = accepted
        self._commit(section)
        self.logger.info("Outline %s assigned.", source_id)
        return outline

    def assign_hollows(self, curves: Sequence[CurveLike],
                       source_ids: Optional[Sequence[str]] = None
                       ) -> List[ValidationResult]:
        """Validate curves and make the valid ones the hollows.

        Returns
        -------
        list of ValidationResult
            The rejected curves with their reasons.

        Raises
        ------
        InputError
            If there is no outline yet.
        """
        outline = self.section.outline
        if outline is None:
            self.logger.error("Hollows assigned without an outline.")
            raise InputError('Assign an outline before the hollows.')
        accepted, rejected = self.validator.validate_hollows(
            curves, outline, source_ids
        )
        self._commit(Section(outline, accepted))
        return rejected

    def remove_outline(self, generation: Optional[int] = None) -> bool:
        """Remove the outline and discard all results.

        Parameters
        ----------
        generation : :any:`int`, optional
            Only remove the outline if the section is still at this
            generation.

        Returns
        -------
        :any:`bool`
            Whether the outline was removed.
        """
        if generation is not None and generation != self.generation:
            self.logger.debug(
                "Outline removal for generation %s ignored, section is at "
                "generation %s.", generation, self.generation
            )
            return False
        self._commit(Section(), 'removed')
        self.invalidate()
        return True

    def invalidate(self):
        """Discard the results of a section that is no longer valid."""
        self._outcome = None
        if self.sink is not None:
            self.sink.clear()
        self.logger.info("Results discarded.")

    def set_material(self, material: Union[str, Material]):
        self._material = self._resolve_material(material)

    def set_custom_material(self, density: Union[str, float],
                            yield_strength: Union[str, float]) -> Material:
        self._material = self.catalog.custom(density, yield_strength)
        return self._material

    def set_load_case(self, load_case: Optional[LoadCase]):
        self._load_case = load_case

    def set_depth(self, depth: Union[str, float]):
        self._depth = self._positive_depth(depth)

    def set_unit(self, unit: Union[str, LengthUnit]):
        self._unit = LengthUnit.parse(unit)

    def evaluate(self, section: Optional[Section] = None,
                 generation: Optional[int] = None) -> AnalysisOutcome:
        """Run integration, derivation and utilization for a section.

        The owned state is not modified. Visualization artifacts are only
        built when a sink is attached.

        Parameters
        ----------
        section : Section, optional
            Defaults to the owned section.
        generation : :any:`int`, optional
            Section generation the run is based on. Defaults to the current
            one.

        Raises
        ------
        InputError
            If the section has no outline.
        GeometryConstructionError
            If the region cannot be built or has no area.
        """
        head_generation, head = self._head
        if generation is None:
            generation = head_generation
        section = (section or head).copy()
        material, load_case = self._material, self._load_case
        integral = self.integrator.integrate(section)
        properties = derive_properties(integral, material, self._depth)
        for warning in properties.warnings[len(integral.warnings):]:
            self.logger.warning(warning)
        utilization = self.calculator.calculate(
            properties, load_case, material.yield_strength
        )
        artifacts = None
        if self.sink is not None:
            artifacts = build_artifacts(
                section, properties, integral.surface, load_case,
                self.settings, triangles=integral.triangles
            )
        return AnalysisOutcome(section, properties, utilization, artifacts,
                               generation)

    def apply(self, outcome: AnalysisOutcome) -> bool:
        """Store an outcome as the current result and publish it.

        Returns
        -------
        :any:`bool`
            ``False`` if the outcome was computed from an older section
            generation and has been dropped.
        """
        if outcome.generation != self.generation:
            self.logger.info(
                "Outcome of generation %s dropped, section is at "
                "generation %s.", outcome.generation, self.generation
            )
            return False
        self._outcome = outcome
        self._commit(outcome.section.copy())
        if self.sink is not None and outcome.artifacts is not None:
            self.sink.publish(outcome.artifacts)
        self.logger.debug("Results:\n%s", self.table().to_text())
        return True

    def calculate(self) -> AnalysisOutcome:
        """Evaluate the owned section and apply the outcome.

        On error the previous results are kept.
        """
        outcome = self.evaluate()
        self.apply(outcome)
        return outcome

    def table(self, unit: Union[str, LengthUnit, None] = None,
              decimals: Optional[int] = None) -> ResultTable:
        """The current results as a table.

        Raises
        ------
        InputError
            If nothing has been calculated yet.
        """
        if self._outcome is None:
            raise InputError('There are no results, calculate first.')
        return ResultTable.from_results(
            self._outcome.properties, self._outcome.utilization,
            unit=self._unit if unit is None else unit,
            decimals=self.settings.decimals if decimals is None else decimals,
        )

    def export_csv(self, path: Union[str, Path]) -> Path:
        path = self.table().to_csv(path)
        self.logger.info("Results written to %s.", path)
        return path
