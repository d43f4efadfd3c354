"""Tolerance lengths held as integer nanometres."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator

NM_PER_MM = 1_000_000

# Nanometres per unit suffix accepted in config files.
_SUFFIX_NM = {"nm": 1, "um": 1_000, "mm": NM_PER_MM, "mil": 25_400, "in": 25_400_000, "inch": 25_400_000}

_LENGTH_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*([a-z]*)")


def parse_length_nm(value: object) -> int:
    """Convert ``1000``, ``"1000"`` or ``"0.05mm"`` style values to nanometres.

    Bare numbers are nanometres. The result must be a whole number of
    nanometres.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Unsupported length value: {value!r}")
    if isinstance(value, int):
        return value

    match = _LENGTH_RE.fullmatch(str(value).strip().lower())
    if match is None:
        raise ValueError(f"Length must look like '0.05mm', '2mil' or '20um', got {value!r}")
    number, suffix = match.groups()
    if suffix not in _SUFFIX_NM and suffix:
        raise ValueError(f"Unknown length unit: {suffix!r}")
    nm = Decimal(number) * _SUFFIX_NM.get(suffix, 1)
    if nm != nm.to_integral_value():
        raise ValueError(f"Length {value!r} is not an integer number of nanometers")
    return int(nm)


def nm_to_mm(value_nm: int) -> float:
    return value_nm / NM_PER_MM


LengthNM = Annotated[int, BeforeValidator(parse_length_nm)]
