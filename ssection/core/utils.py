from math import isfinite
from typing import Union

from ssection.core.errors import InputError


def parse_number(value: Union[str, float, int], name: str) -> float:
    r"""Convert a user supplied field into a finite float.

    Strings may use a comma as decimal separator and surrounding blanks.

    Parameters
    ----------
    value : :any:`str`, :any:`float` or :any:`int`
        The raw field value.
    name : :any:`str`
        Field name used in the error message.

    Raises
    ------
    InputError
        If the value cannot be parsed or is not finite.

    Examples
    --------
    >>> parse_number(' 7,85 ', 'density')
    7.85
    """
    if isinstance(value, bool):
        raise InputError(f'{name} must be a number, got {value!r}.')
    if isinstance(value, str):
        text = value.strip().replace(',', '.')
        try:
            number = float(text)
        except ValueError:
            raise InputError(
                f'{name} must be a number, got {value!r}.'
            ) from None
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        raise InputError(f'{name} must be a number, got {value!r}.')
    if not isfinite(number):
        raise InputError(f'{name} must be finite, got {value!r}.')
    return number
