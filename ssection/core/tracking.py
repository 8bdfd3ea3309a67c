import itertools
import queue
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ssection.core.analysis import SectionAnalysis
from ssection.core.errors import SectionError, TrackingError
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.preprocessing.geometry.objects import Boundary, Curve
from ssection.core.preprocessing.section import Section

Listener = Callable[[str, str], None]


class CurveDocument:
    r"""Thread-safe in-memory store of curves addressed by id.

    Stands in for the external geometry source. Listeners are called with
    ``(event, curve_id)`` after every change, where event is one of
    ``'added'``, ``'replaced'`` and ``'deleted'``. They are hints only; the
    change tracker never relies on them.

    Examples
    --------
    >>> doc = CurveDocument()
    >>> cid = doc.add(Curve([(0, 0), (1, 0), (1, 1), (0, 0)]))
    >>> cid in doc, doc.get('missing')
    (True, None)
    """

    def __init__(self):
        self._curves: Dict[str, Curve] = {}
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def add(self, curve: Curve, curve_id: Optional[str] = None) -> str:
        with self._lock:
            if curve_id is None:
                curve_id = f'curve-{next(self._ids)}'
            if curve_id in self._curves:
                raise KeyError(f'Curve {curve_id!r} already exists.')
            self._curves[curve_id] = curve
        self._notify('added', curve_id)
        return curve_id

    def replace(self, curve_id: str, curve: Curve):
        with self._lock:
            if curve_id not in self._curves:
                raise KeyError(curve_id)
            self._curves[curve_id] = curve
        self._notify('replaced', curve_id)

    def delete(self, curve_id: str):
        with self._lock:
            del self._curves[curve_id]
        self._notify('deleted', curve_id)

    def get(self, curve_id: str) -> Optional[Curve]:
        with self._lock:
            return self._curves.get(curve_id)

    def __contains__(self, curve_id: str) -> bool:
        with self._lock:
            return curve_id in self._curves

    def __len__(self) -> int:
        with self._lock:
            return len(self._curves)

    def subscribe(self, listener: Listener):
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, event: str, curve_id: str):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, curve_id)


@dataclass(frozen=True)
class GeometryFingerprint:
    r"""Cheap proxy for the identity of a curve.

    Bounding box and length are quantized to the tolerance, so changes
    below the tolerance go unnoticed. Two different curves with equal
    box, length, degree and span count compare equal.
    """

    bounds: Tuple[int, int, int, int]
    length: int
    degree: int
    span_count: int

    @classmethod
    def of(cls, curve: Curve, tolerance: float = 1e-3
           ) -> 'GeometryFingerprint':
        lower, upper = curve.bounds
        quantized = np.rint(
            np.concatenate([lower, upper, [curve.length]]) / tolerance
        ).astype(np.int64)
        return cls(
            bounds=tuple(int(v) for v in quantized[:4]),
            length=int(quantized[4]),
            degree=curve.degree,
            span_count=curve.span_count,
        )


class TrackerState(Enum):
    IDLE = 'idle'
    WATCHING = 'watching'
    RECOMPUTING = 'recomputing'


class Scheduler(ABC):
    """Calls a callback periodically until stopped."""

    @abstractmethod
    def start(self, interval: float, callback: Callable[[], None]):
        pass

    @abstractmethod
    def stop(self):
        pass

    @abstractmethod
    def poke(self):
        """Shorten the current wait so the next call happens soon."""

    @property
    @abstractmethod
    def running(self) -> bool:
        pass


class PollScheduler(Scheduler):
    """Runs the callback on a daemon thread every ``interval`` seconds."""

    def __init__(self):
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._wake = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval: float, callback: Callable[[], None]):
        if self.running:
            raise TrackingError('The scheduler is already running.')
        self._stop.clear()
        self._wake.clear()
        self._thread = threading.Thread(
            target=self._run, args=(interval, callback),
            name='ssection-poll', daemon=True
        )
        self._thread.start()

    def _run(self, interval: float, callback: Callable[[], None]):
        while not self._stop.is_set():
            self._wake.wait(interval)
            self._wake.clear()
            if self._stop.is_set():
                break
            callback()

    def poke(self):
        self._wake.set()

    def stop(self):
        self._stop.set()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None


class ManualScheduler(Scheduler):
    """Scheduler driven by the host, e.g. a GUI timer or a test.

    Examples
    --------
    >>> calls = []
    >>> s = ManualScheduler()
    >>> s.start(1.0, lambda: calls.append(1))
    >>> s.fire(); s.stop(); s.fire()
    >>> calls
    [1]
    """

    def __init__(self):
        self.interval: Optional[float] = None
        self.pokes = 0
        self._callback: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self._callback = callback

    def stop(self):
        self._callback = None

    def poke(self):
        self.pokes += 1

    def fire(self):
        if self._callback is not None:
            self._callback()


class PublishQueue:
    """Hands callables from worker threads to the owning thread."""

    def __init__(self):
        self._queue = queue.SimpleQueue()

    def __call__(self, task: Callable[[], None]):
        self._queue.put(task)

    def __len__(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Run all pending tasks on the calling thread."""
        count = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return count
            task()
            count += 1


class ChangeTracker(LoggerMixin):
    r"""
    Keeps a section in sync with curves of an external document.

    While watching, every tick reads the current section of the analysis and
    compares the fingerprints of its tracked curves against the last known
    ones. Boundaries the owner assigned since the previous tick are
    fingerprinted as they are. Deleted curves are dropped from the section,
    changed curves are validated again and replaced. Hollows that failed
    validation stay watched and are added back once their curve is valid
    again. If anything changed the pipeline runs and the outcome is handed
    to ``dispatch``, which delivers it to the owning thread. Losing the
    outline invalidates the section and stops the tracker, and so does the
    owner removing the outline.

    Ticks that arrive while a previous tick is still running are dropped.
    While an outcome waits for delivery no new one is computed. An outcome
    the owner has outdated in the meantime is dropped by the analysis and
    the change is picked up again on the next tick.

    Parameters
    ----------
    analysis : SectionAnalysis
        Owner of the section. Its boundaries have to carry the ids of the
        document curves they were made from; boundaries without id are not
        tracked.
    document : CurveDocument
        The external geometry source.
    scheduler : Scheduler, optional
        Defaults to a :class:`PollScheduler`.
    dispatch : callable, optional
        Called with a zero-argument callable that must be run on the owning
        thread. Defaults to a :class:`PublishQueue`, drained by
        :meth:`process_pending`.

    Examples
    --------
    >>> doc = CurveDocument()
    >>> cid = doc.add(Curve([(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)]))
    >>> analysis = SectionAnalysis()
    >>> _ = analysis.assign_outline(doc.get(cid), source_id=cid)
    >>> tracker = ChangeTracker(analysis, doc, scheduler=ManualScheduler())
    >>> tracker.enable(); tracker.state
    <TrackerState.WATCHING: 'watching'>
    """

    # noinspection PyMissingConstructor
    def __init__(self, analysis: SectionAnalysis, document: CurveDocument,
                 scheduler: Optional[Scheduler] = None,
                 dispatch: Optional[Callable[[Callable[[], None]],
                                             None]] = None,
                 debug: bool = False):
        _ = debug
        self.analysis = analysis
        self.document = document
        self.scheduler = scheduler or PollScheduler()
        self.dispatch = dispatch or PublishQueue()
        self.last_error: Optional[BaseException] = None
        self.dropped_ticks = 0
        self._state = TrackerState.IDLE
        self._busy = threading.Lock()
        self._in_flight = False
        self._fingerprints: Dict[str, GeometryFingerprint] = {}
        self._rejected: Dict[str, GeometryFingerprint] = {}

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def tolerance(self) -> float:
        return self.analysis.settings.tolerance

    @property
    def rejected(self) -> Tuple[str, ...]:
        """Ids of hollow curves that are watched but not part of the
        section."""
        return tuple(self._rejected)

    def _fingerprint(self, curve: Curve) -> GeometryFingerprint:
        return GeometryFingerprint.of(curve, self.tolerance)

    def _baseline(self, section: Section
                  ) -> Dict[str, GeometryFingerprint]:
        """Known fingerprints of the tracked curves of a section.

        Curves seen for the first time are fingerprinted as they are now.
        """
        fingerprints = {}
        for boundary in section.boundaries():
            if boundary.source_id in self._fingerprints:
                fingerprints[boundary.source_id] = \
                    self._fingerprints[boundary.source_id]
                continue
            curve = self._tracked_curve(boundary)
            if curve is not None:
                fingerprints[boundary.source_id] = self._fingerprint(curve)
        return fingerprints

    def enable(self):
        """Start watching the curves of the current section.

        Raises
        ------
        TrackingError
            If the section has no valid outline. The tracker stays idle.
        """
        if self._state is not TrackerState.IDLE:
            return
        section = self.analysis.section
        if not section.is_valid:
            self.logger.error("Live tracking needs a valid outline.")
            raise TrackingError('Live tracking needs a valid outline.')
        self._fingerprints = {}
        self._fingerprints = self._baseline(section)
        self._rejected = {}
        self._in_flight = False
        self.last_error = None
        self.document.subscribe(self._on_document_event)
        self.analysis.subscribe(self._on_section_event)
        self._state = TrackerState.WATCHING
        self.scheduler.start(self.analysis.settings.tick_interval, self.tick)
        self.logger.info(
            "Watching %d curves every %g s.", len(self._fingerprints),
            self.analysis.settings.tick_interval
        )

    def disable(self):
        """Stop watching. Safe to call in any state."""
        self.scheduler.stop()
        self.document.unsubscribe(self._on_document_event)
        self.analysis.unsubscribe(self._on_section_event)
        if self._state is not TrackerState.IDLE:
            self.logger.info("Live tracking disabled.")
        self._state = TrackerState.IDLE

    @contextmanager
    def watching(self):
        """Enable tracking for the duration of a ``with`` block."""
        self.enable()
        try:
            yield self
        finally:
            self.disable()

    def process_pending(self) -> int:
        """Deliver queued results. Call from the owning thread."""
        if isinstance(self.dispatch, PublishQueue):
            return self.dispatch.drain()
        return 0

    def _on_document_event(self, event: str, curve_id: str):
        if curve_id in self._fingerprints or curve_id in self._rejected:
            self.logger.debug("Hint: curve %s %s.", curve_id, event)
            self.scheduler.poke()

    def _on_section_event(self, event: str):
        if event == 'removed':
            self.logger.info("Outline removed by the owner.")
            self.disable()
        else:
            self.scheduler.poke()

    def _tracked_curve(self, boundary: Boundary) -> Optional[Curve]:
        if boundary.source_id is None:
            return None
        return self.document.get(boundary.source_id)

    def tick(self):
        """Compare fingerprints once and recompute on change."""
        if self._state is TrackerState.IDLE:
            return
        if not self._busy.acquire(blocking=False):
            self.dropped_ticks += 1
            self.logger.debug("Tick dropped, previous tick still running.")
            return
        try:
            self._poll()
        except Exception as e:
            self.last_error = e
            self.logger.exception("Live tracking failed and was disabled.")
            self.disable()
        finally:
            self._busy.release()

    def _changed(self, boundary: Boundary,
                 fingerprints: Dict[str, GeometryFingerprint]
                 ) -> Tuple[bool, Optional[Curve]]:
        """Whether a boundary changed, and its current curve.

        A deleted curve is reported as changed with no curve.
        """
        if boundary.source_id not in fingerprints:
            return False, None
        curve = self.document.get(boundary.source_id)
        if curve is None:
            return True, None
        return self._fingerprint(curve) != \
            fingerprints[boundary.source_id], curve

    def _poll(self):
        if self._in_flight:
            self.logger.debug("Tick skipped, outcome not delivered yet.")
            return
        generation, section = self.analysis.snapshot()
        if not section.is_valid:
            self.logger.info("Section has no outline, live tracking stopped.")
            self.disable()
            return
        validator = self.analysis.validator
        outline = section.outline

        fingerprints = self._baseline(section)
        rejected = {}
        retry = {}
        for curve_id, fingerprint in self._rejected.items():
            curve = self.document.get(curve_id)
            if curve is None or curve_id in fingerprints:
                continue
            rejected[curve_id] = fingerprint
            if self._fingerprint(curve) != fingerprint:
                retry[curve_id] = curve

        outline_changed, outline_curve = self._changed(outline, fingerprints)
        hollow_changes = [self._changed(h, fingerprints)
                          for h in section.hollows]
        if not (outline_changed or retry
                or any(c for c, _ in hollow_changes)):
            self._fingerprints, self._rejected = fingerprints, rejected
            return

        self._state = TrackerState.RECOMPUTING
        if outline_changed:
            fingerprints.pop(outline.source_id)
            if outline_curve is None:
                self.logger.warning("Outline %s was deleted.",
                                    outline.source_id)
                self._lose_outline(generation)
                return
            result = validator.validate_outline(outline_curve,
                                                outline.source_id)
            if not result.ok:
                self.logger.warning("Changed outline %s is invalid: %s",
                                    outline.source_id, result.message)
                self._lose_outline(generation)
                return
            outline = result.boundary
            fingerprints[outline.source_id] = self._fingerprint(outline_curve)
            for curve_id in rejected:
                retry.setdefault(curve_id, self.document.get(curve_id))

        accepted = []
        for hollow, (changed, curve) in zip(section.hollows, hollow_changes):
            if not changed and not outline_changed:
                accepted.append(hollow)
                continue
            if changed and curve is None:
                self.logger.info("Hollow %s was deleted.", hollow.source_id)
                fingerprints.pop(hollow.source_id)
                continue
            points = hollow.points if curve is None else curve
            result = validator.validate_hollow(
                points, outline, accepted, source_id=hollow.source_id
            )
            if result.ok:
                accepted.append(result.boundary)
                if curve is not None:
                    fingerprints[hollow.source_id] = self._fingerprint(curve)
            elif curve is not None:
                fingerprints.pop(hollow.source_id, None)
                rejected[hollow.source_id] = self._fingerprint(curve)

        for curve_id, curve in retry.items():
            if curve is None:
                rejected.pop(curve_id, None)
                continue
            result = validator.validate_hollow(
                curve, outline, accepted, source_id=curve_id
            )
            if result.ok:
                self.logger.info("Hollow %s is valid again.", curve_id)
                accepted.append(result.boundary)
                rejected.pop(curve_id)
                fingerprints[curve_id] = self._fingerprint(curve)
            else:
                rejected[curve_id] = self._fingerprint(curve)

        try:
            outcome = self.analysis.evaluate(Section(outline, accepted),
                                             generation)
        except SectionError as e:
            self._fingerprints, self._rejected = fingerprints, rejected
            self.last_error = e
            self.logger.error("Recompute failed: %s", e)
        else:
            self._in_flight = True
            self.dispatch(
                lambda: self._deliver(outcome, fingerprints, rejected)
            )
            self.logger.info("Section recomputed after a change.")
        if self._state is TrackerState.RECOMPUTING:
            self._state = TrackerState.WATCHING

    def _deliver(self, outcome, fingerprints, rejected):
        if self.analysis.apply(outcome):
            self._fingerprints, self._rejected = fingerprints, rejected
        self._in_flight = False

    def _lose_outline(self, generation: int):
        self._fingerprints, self._rejected = {}, {}
        self.dispatch(lambda: self.analysis.remove_outline(generation))
        self.disable()
