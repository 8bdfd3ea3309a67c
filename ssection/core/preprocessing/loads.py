from dataclasses import dataclass, fields
from math import isfinite
from typing import Union

from ssection.core.errors import InputError
from ssection.core.utils import parse_number


@dataclass(frozen=True)
class LoadCase:
    r"""Internal forces acting on the section.

    Parameters
    ----------
    mx : :any:`float`, default=0.0
        Bending moment about the x-axis in kN·m.
    my : :any:`float`, default=0.0
        Bending moment about the y-axis in kN·m.
    qx : :any:`float`, default=0.0
        Shear force in x-direction in kN.
    qy : :any:`float`, default=0.0
        Shear force in y-direction in kN.
    t : :any:`float`, default=0.0
        Torsional moment in kN·m.
    safety_factor : :any:`float`, default=1.0
        Partial safety factor dividing the yield strength.

    Raises
    ------
    InputError
        If a value is not finite or the safety factor is not positive.
    """

    mx: float = 0.0
    my: float = 0.0
    qx: float = 0.0
    qy: float = 0.0
    t: float = 0.0
    safety_factor: float = 1.0

    def __post_init__(self):
        for f in fields(self):
            if not isfinite(getattr(self, f.name)):
                raise InputError(f'{f.name} must be finite.')
        if self.safety_factor <= 0:
            raise InputError('safety_factor has to be greater than zero.')

    @property
    def is_loaded(self) -> bool:
        """Whether at least one load component is nonzero."""
        return any((self.mx, self.my, self.qx, self.qy, self.t))

    @classmethod
    def parse(cls, **values: Union[str, float]) -> 'LoadCase':
        """Create a load case from raw form fields.

        Examples
        --------
        >>> LoadCase.parse(mx='12,5', safety_factor='1.5')
        LoadCase(mx=12.5, my=0.0, qx=0.0, qy=0.0, t=0.0, safety_factor=1.5)
        """
        names = {f.name for f in fields(cls)}
        unknown = set(values) - names
        if unknown:
            raise InputError(f'Unknown load fields: {sorted(unknown)}.')
        return cls(**{k: parse_number(v, k) for k, v in values.items()})
