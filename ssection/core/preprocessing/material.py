from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Mapping
from typing import Iterator, Optional, Union

from ssection.core.errors import InputError
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.utils import parse_number


@dataclass(frozen=True)
class Material:
    r"""Create a material of a profile.

    Parameters
    ----------
    name : :any:`str`
        Display name, e.g. ``'Steel'`` or ``'Custom'``.
    density : :any:`float`, optional
        Density in g/cm³. ``None`` if unknown; the mass is then reported as
        zero.
    yield_strength : :any:`float`, optional
        Yield strength in N/mm². ``None`` if unknown; no utilization is
        computed then.

    Raises
    ------
    InputError
        :py:attr:`density` and :py:attr:`yield_strength` have to be greater
        than zero if given.
    """

    name: str
    density: Optional[float]
    yield_strength: Optional[float]

    def __post_init__(self):
        if self.density is not None and not self.density > 0:
            raise InputError('density has to be greater than zero.')
        if self.yield_strength is not None and not self.yield_strength > 0:
            raise InputError('yield_strength has to be greater than zero.')


DEFAULT_MATERIALS = (
    Material('Steel', 7.85, 235.0),
    Material('Aluminum', 2.70, 160.0),
    Material('Wood', 0.50, 24.0),
    Material('Concrete', 2.40, 30.0),
    Material('Glass', 2.50, 45.0),
)


class MaterialCatalog(LoggerMixin, Mapping):
    r"""Read-only table of named materials.

    The catalog is configuration handed to the analysis; it is never
    modified after creation. Lookups ignore the case of the name.

    Parameters
    ----------
    materials : iterable of Material, optional
        Catalog entries, defaults to Steel, Aluminum, Wood, Concrete and
        Glass.

    Examples
    --------
    >>> catalog = MaterialCatalog()
    >>> catalog['steel'].density
    7.85
    >>> catalog.custom('1,5', 100).name
    'Custom'
    """

    # noinspection PyMissingConstructor
    def __init__(self, materials=DEFAULT_MATERIALS, debug: bool = False):
        _ = debug
        self._materials = MappingProxyType(
            {m.name.lower(): m for m in materials}
        )

    def __getitem__(self, name: str) -> Material:
        try:
            return self._materials[name.lower()]
        except KeyError:
            raise InputError(
                f'Unknown material {name!r}. Available: '
                f'{", ".join(m.name for m in self._materials.values())}.'
            ) from None

    def __iter__(self) -> Iterator[str]:
        return (m.name for m in self._materials.values())

    def __len__(self) -> int:
        return len(self._materials)

    def custom(self, density: Union[str, float],
               yield_strength: Union[str, float]) -> Material:
        r"""Create a user defined material.

        Parameters
        ----------
        density : :any:`str` or :any:`float`
            Density in g/cm³.
        yield_strength : :any:`str` or :any:`float`
            Yield strength in N/mm².

        Returns
        -------
        Material
            The material named ``'Custom'``.

        Raises
        ------
        InputError
            If a value cannot be parsed or the yield strength is not
            positive.

        Notes
        -----
        A non-positive density does not raise. It is dropped with a warning
        and the mass of the section is reported as zero.
        """
        rho = parse_number(density, 'density')
        fy = parse_number(yield_strength, 'yield_strength')
        if fy <= 0:
            raise InputError('yield_strength has to be greater than zero.')
        if rho <= 0:
            self.logger.warning(
                "Custom density %g is not positive; mass will be zero.", rho
            )
            return Material('Custom', None, fy)
        return Material('Custom', rho, fy)
