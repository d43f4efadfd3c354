"""Typed command model shared by the Gerber and Excellon parsers.

Coordinates are stored as absolute integers in the file's own resolution
(``10 ** -decimal_digits`` of the file unit), so an unmodified value always
formats back to the digits it was parsed from. Every statement keeps its
source text in ``raw`` and the whitespace that followed it in ``trailer``;
strategies that change a statement drop ``raw`` and the serializer renders it
from the fields instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from enum import Enum
from typing import Union


class FileFormat(str, Enum):
    GERBER = "gerber"
    EXCELLON = "excellon"


class Units(str, Enum):
    MM = "mm"
    INCH = "inch"

    @property
    def mm_per_unit(self) -> float:
        return 1.0 if self is Units.MM else 25.4


class ZeroSuppression(str, Enum):
    """Which zeros a fixed-point coordinate omits."""

    LEADING = "leading"
    TRAILING = "trailing"
    NONE = "none"


class LayerKind(str, Enum):
    COPPER = "copper"
    SILKSCREEN = "silkscreen"
    SOLDERMASK = "soldermask"
    PASTE = "paste"
    OUTLINE = "outline"
    DRILL = "drill"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class CoordinateFormat:
    units: Units
    integer_digits: int
    decimal_digits: int
    zeros: ZeroSuppression = ZeroSuppression.LEADING
    incremental: bool = False
    decimal_point: bool = False

    @property
    def resolution_mm(self) -> float:
        """Size of one coordinate step in millimetres."""
        return self.units.mm_per_unit / 10**self.decimal_digits

    def to_mm(self, value: int) -> float:
        return value * self.resolution_mm

    def from_mm(self, value_mm: float) -> int:
        return int(round(value_mm / self.resolution_mm))

    def parse_number(self, token: str) -> int:
        """Parse a coordinate word value into file resolution units.

        Raises:
            ValueError: If the token is not a number in this format.
        """
        text = token.strip()
        if not text:
            raise ValueError("empty coordinate value")
        negative = text[0] == "-"
        digits = text[1:] if text[0] in "+-" else text
        if not digits:
            raise ValueError(f"invalid coordinate value {token!r}")
        if "." in digits:
            try:
                scaled = Decimal(digits).scaleb(self.decimal_digits)
            except InvalidOperation as exc:
                raise ValueError(f"invalid coordinate value {token!r}") from exc
            value = int(scaled.to_integral_value(rounding=ROUND_HALF_EVEN))
        elif not digits.isdigit():
            raise ValueError(f"invalid coordinate value {token!r}")
        elif self.zeros is ZeroSuppression.TRAILING:
            total = self.integer_digits + self.decimal_digits
            value = int(digits.ljust(total, "0"))
        else:
            value = int(digits)
        return -value if negative else value

    def format_number(self, value: int) -> str:
        sign = "-" if value < 0 else ""
        magnitude = abs(value)
        if self.decimal_point:
            # NONE keeps a fixed count of decimals; otherwise trailing zeros go.
            whole, frac = divmod(magnitude, 10**self.decimal_digits)
            frac_text = f"{frac:0{self.decimal_digits}d}" if self.decimal_digits else ""
            if self.zeros is not ZeroSuppression.NONE:
                frac_text = frac_text.rstrip("0")
            return f"{sign}{whole}.{frac_text or '0'}"
        if self.zeros is ZeroSuppression.LEADING:
            return f"{sign}{magnitude}"
        digits = str(magnitude).rjust(self.integer_digits + self.decimal_digits, "0")
        if self.zeros is ZeroSuppression.TRAILING:
            digits = digits.rstrip("0") or "0"
        return f"{sign}{digits}"


@dataclass(frozen=True, slots=True, kw_only=True)
class _Statement:
    raw: str | None = None
    trailer: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class Comment(_Statement):
    text: str


@dataclass(frozen=True, slots=True, kw_only=True)
class HeaderDirective(_Statement):
    key: str
    value: str = ""
    separator: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class ApertureDefinition(_Statement):
    code: int
    shape: str
    params: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ToolSelect(_Statement):
    code: int
    prefix: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class ModeSet(_Statement):
    """A bare G-code that changes interpreter state (G01, G36, G75, G90, G05...)."""

    code: int


@dataclass(frozen=True, slots=True)
class ArcParams:
    """Arc centre offset relative to the segment start point."""

    i: int
    j: int
    has_i: bool = True
    has_j: bool = True


@dataclass(frozen=True, slots=True)
class SlotEnd:
    x: int
    y: int
    has_x: bool = True
    has_y: bool = True


@dataclass(frozen=True, slots=True, kw_only=True)
class _Positioned(_Statement):
    x: int
    y: int
    has_x: bool = True
    has_y: bool = True
    g_prefix: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class Move(_Positioned):
    interpolation: int = 1
    d_text: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class FlashOrDraw(_Positioned):
    operation: int
    interpolation: int = 1
    arc: ArcParams | None = None
    d_text: str = ""

    @property
    def is_flash(self) -> bool:
        return self.operation == 3


@dataclass(frozen=True, slots=True, kw_only=True)
class DrillHit(_Positioned):
    tool: int | None = None
    slot_end: SlotEnd | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class EndOfFile(_Statement):
    pass


@dataclass(frozen=True, slots=True, kw_only=True)
class Passthrough(_Statement):
    """Opaque statement kept verbatim."""

    def __post_init__(self) -> None:
        if self.raw is None:
            raise ValueError("Passthrough requires its source text")


Command = Union[
    Comment,
    HeaderDirective,
    ApertureDefinition,
    ToolSelect,
    ModeSet,
    Move,
    FlashOrDraw,
    DrillHit,
    EndOfFile,
    Passthrough,
]

Positioned = Union[Move, FlashOrDraw, DrillHit]
POSITIONED_TYPES = (Move, FlashOrDraw, DrillHit)


def end_point(command: Positioned) -> tuple[int, int]:
    """Current point after ``command`` executes."""
    if isinstance(command, DrillHit) and command.slot_end is not None:
        return command.slot_end.x, command.slot_end.y
    return command.x, command.y


def moved(command: Positioned, x: int, y: int) -> Positioned:
    """Return ``command`` relocated to ``(x, y)``, marked for re-rendering."""
    if x == command.x and y == command.y:
        return command
    return replace(command, x=x, y=y, raw=None)


@dataclass(frozen=True, slots=True)
class LayerFile:
    name: str
    format: FileFormat
    kind: LayerKind
    coordinate_format: CoordinateFormat
    commands: tuple[Command, ...]
    preamble: str = ""
    encoding: str = "utf-8"
    newline: str = "\n"

    def with_commands(self, commands: Iterable[Command]) -> LayerFile:
        return replace(self, commands=tuple(commands))

    def positioned(self) -> Iterator[Positioned]:
        for command in self.commands:
            if isinstance(command, POSITIONED_TYPES):
                yield command
