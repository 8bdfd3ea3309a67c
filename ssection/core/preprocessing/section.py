from typing import Iterator, Optional, Sequence, Tuple

from ssection.core.preprocessing.geometry.objects import Boundary


class Section:
    r"""Outline and hollows of a cross-section.

    The section owns its boundaries by value: every boundary is copied on
    assignment, so the section never shares state with the curves it was
    created from. Removing the outline invalidates the whole section,
    including its hollows.

    Parameters
    ----------
    outline : Boundary, optional
        The outer boundary.
    hollows : sequence of Boundary, optional
        Validated interior voids.

    Examples
    --------
    >>> outer = Boundary([(0, 0), (4, 0), (4, 2), (0, 2)])
    >>> s = Section(outer)
    >>> s.is_valid, s.outline is outer
    (True, False)
    """

    def __init__(self, outline: Optional[Boundary] = None,
                 hollows: Sequence[Boundary] = ()):
        self._outline = None
        self._hollows: Tuple[Boundary, ...] = ()
        self.outline = outline
        self.hollows = hollows

    @property
    def outline(self) -> Optional[Boundary]:
        return self._outline

    @outline.setter
    def outline(self, value: Optional[Boundary]):
        if value is None:
            self._outline = None
            self._hollows = ()
        else:
            self._outline = value.copy()

    @property
    def hollows(self) -> Tuple[Boundary, ...]:
        return self._hollows

    @hollows.setter
    def hollows(self, value: Sequence[Boundary]):
        if value and self._outline is None:
            raise ValueError('Hollows need an outline.')
        self._hollows = tuple(h.copy() for h in value)

    @property
    def is_valid(self) -> bool:
        return self._outline is not None

    def boundaries(self) -> Iterator[Boundary]:
        """The outline followed by all hollows."""
        if self._outline is not None:
            yield self._outline
        yield from self._hollows

    def copy(self) -> 'Section':
        return Section(self._outline, self._hollows)

    def __repr__(self):
        return (f'Section(outline={self._outline is not None}, '
                f'hollows={len(self._hollows)})')
