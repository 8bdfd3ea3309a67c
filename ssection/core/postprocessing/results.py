import csv
from dataclasses import dataclass
from enum import Enum
from math import degrees
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from ssection.core.errors import InputError
from ssection.core.logger_mixin import table_rows
from ssection.core.solution.properties import SectionProperties
from ssection.core.solution.utilization import UtilizationResult

CSV_HEADER = ('Property', 'Value', 'Unit')

_SUPERSCRIPT = {1: '', 2: '²', 3: '³', 4: '⁴'}


class LengthUnit(Enum):
    """Display units. Internally everything is computed in millimetres."""

    MM = ('mm', 1.0)
    CM = ('cm', 0.1)
    M = ('m', 0.001)

    @property
    def symbol(self) -> str:
        return self.value[0]

    @property
    def factor(self) -> float:
        """Conversion factor from millimetres to this unit."""
        return self.value[1]

    @classmethod
    def parse(cls, unit: Union[str, 'LengthUnit']) -> 'LengthUnit':
        if isinstance(unit, cls):
            return unit
        for u in cls:
            if u.symbol == str(unit).strip().lower():
                return u
        raise InputError(
            f'Unknown length unit {unit!r}, use one of '
            f'{[u.symbol for u in cls]}.'
        )


class QuantityKind(Enum):
    """Kinds of reported quantities and the power of length they carry."""

    LENGTH = ('length', 1)
    AREA = ('area', 2)
    MODULUS = ('modulus', 3)
    INERTIA = ('inertia', 4)
    MASS_MOMENT = ('mass moment', 2)
    MASS = ('mass', 0)
    STRESS = ('stress', 0)
    ANGLE = ('angle', 0)
    PERCENT = ('percent', 0)

    @property
    def power(self) -> int:
        return self.value[1]

    def unit(self, length_unit: LengthUnit) -> str:
        if self is QuantityKind.MASS_MOMENT:
            return f'kg·{length_unit.symbol}²'
        if self is QuantityKind.MASS:
            return 'kg'
        if self is QuantityKind.STRESS:
            return 'N/mm²'
        if self is QuantityKind.ANGLE:
            return '°'
        if self is QuantityKind.PERCENT:
            return '%'
        return length_unit.symbol + _SUPERSCRIPT[self.power]


def convert(value: float, kind: QuantityKind,
            unit: Union[str, LengthUnit]) -> float:
    r"""Convert a value from the base unit (mm) into a display unit.

    .. math::
        v_{unit} = v_{mm} \cdot f^k

    with the unit factor :math:`f` and the length power :math:`k` of the
    quantity kind.

    Examples
    --------
    >>> convert(2.0e6, QuantityKind.AREA, 'm')
    2.0
    """
    return value * LengthUnit.parse(unit).factor ** kind.power


@dataclass(frozen=True)
class ResultRow:
    label: str
    value: str
    unit: str

    def __iter__(self) -> Iterator[str]:
        return iter((self.label, self.value, self.unit))


def _property_rows(p: SectionProperties) -> List[Tuple[str, QuantityKind,
                                                        float]]:
    return [
        ('Area', QuantityKind.AREA, p.area),
        ('Centroid X', QuantityKind.LENGTH, p.centroid_x),
        ('Centroid Y', QuantityKind.LENGTH, p.centroid_y),
        ('Ix', QuantityKind.INERTIA, p.ixx),
        ('Iy', QuantityKind.INERTIA, p.iyy),
        ('Ixy', QuantityKind.INERTIA, p.ixy),
        ('Ip', QuantityKind.INERTIA, p.polar),
        ('I1', QuantityKind.INERTIA, p.i1),
        ('I2', QuantityKind.INERTIA, p.i2),
        ('Principal angle', QuantityKind.ANGLE, degrees(p.principal_angle)),
        ('Wx', QuantityKind.MODULUS, p.wx),
        ('Wy', QuantityKind.MODULUS, p.wy),
        ('ix', QuantityKind.LENGTH, p.rx),
        ('iy', QuantityKind.LENGTH, p.ry),
        ('Outline length', QuantityKind.LENGTH, p.outline_length),
        ('Mass', QuantityKind.MASS, p.mass),
        ('Jx (mass)', QuantityKind.MASS_MOMENT, p.mass_moment_x),
        ('Jy (mass)', QuantityKind.MASS_MOMENT, p.mass_moment_y),
    ]


def _utilization_rows(u: UtilizationResult) -> List[Tuple[str, QuantityKind,
                                                           float]]:
    return [
        ('σx', QuantityKind.STRESS, u.sigma_x),
        ('σy', QuantityKind.STRESS, u.sigma_y),
        ('τQx', QuantityKind.STRESS, u.tau_qx),
        ('τQy', QuantityKind.STRESS, u.tau_qy),
        ('τT', QuantityKind.STRESS, u.tau_t),
        ('τ', QuantityKind.STRESS, u.tau),
        ('σv', QuantityKind.STRESS, u.sigma_v),
        ('Utilization', QuantityKind.PERCENT, u.utilization),
    ]


class ResultTable:
    r"""Ordered (label, value, unit) rows of one computation.

    Values are formatted strings, so the table survives a CSV round trip
    verbatim.

    Parameters
    ----------
    rows : iterable of ResultRow or 3-tuples
        The table rows.

    Examples
    --------
    >>> t = ResultTable([('Area', '200', 'mm²')])
    >>> [tuple(r) for r in t]
    [('Area', '200', 'mm²')]
    """

    def __init__(self, rows: Iterable[Union[ResultRow, Tuple[str, str, str]]]):
        self.rows: Tuple[ResultRow, ...] = tuple(
            r if isinstance(r, ResultRow) else ResultRow(*r) for r in rows
        )

    @classmethod
    def from_results(cls, properties: SectionProperties,
                     utilization: Optional[UtilizationResult] = None,
                     unit: Union[str, LengthUnit] = LengthUnit.MM,
                     decimals: int = 6) -> 'ResultTable':
        """Build the table, converting lengths into the display unit.

        Parameters
        ----------
        properties : SectionProperties
            The section properties in base units.
        utilization : UtilizationResult, optional
            Appended as a block of stress rows if given.
        unit : :any:`str` or LengthUnit, default='mm'
            Display unit of length-like values.
        decimals : :any:`int`, default=6
            Significant digits.
        """
        unit = LengthUnit.parse(unit)
        entries = _property_rows(properties)
        if utilization is not None:
            entries += _utilization_rows(utilization)
        return cls(
            ResultRow(label, format(convert(value, kind, unit),
                                    f'.{decimals}g'), kind.unit(unit))
            for label, kind, value in entries
        )

    def __iter__(self) -> Iterator[ResultRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResultTable):
            return NotImplemented
        return self.rows == other.rows

    def __getitem__(self, label: str) -> ResultRow:
        for row in self.rows:
            if row.label == label:
                return row
        raise KeyError(label)

    def to_text(self) -> str:
        return table_rows(self.rows, CSV_HEADER)

    def to_csv(self, path: Union[str, Path]) -> Path:
        """Write the table with the header ``Property,Value,Unit``."""
        path = Path(path)
        with open(path, mode='w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            writer.writerows(tuple(r) for r in self.rows)
        return path

    @classmethod
    def read_csv(cls, path: Union[str, Path]) -> 'ResultTable':
        """Read a table written by :meth:`to_csv`.

        Raises
        ------
        InputError
            If the header or a row does not have the expected shape.
        """
        with open(path, mode='r', encoding='utf-8', newline='') as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None or tuple(header) != CSV_HEADER:
                raise InputError(
                    f'{path} does not start with the header '
                    f'{",".join(CSV_HEADER)}.'
                )
            rows = []
            for line, row in enumerate(reader, start=2):
                if len(row) != 3:
                    raise InputError(
                        f'{path}:{line} has {len(row)} fields, expected 3.'
                    )
                rows.append(ResultRow(*row))
        return cls(rows)
