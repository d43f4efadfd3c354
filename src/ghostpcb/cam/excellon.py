"""Excellon drill file reader.

Excellon is line oriented: a header between ``M48`` and ``%`` (or ``M95``)
declares units, zero handling and tools, and the body selects tools and lists
hit coordinates. Number formats are resolved once from the header (and from
the shape of the coordinate tokens when they carry explicit decimal points)
before the body is read.
"""

from __future__ import annotations

import re
from dataclasses import replace

from ..errors import ParseError
from .detect import dominant_newline
from .model import (
    ApertureDefinition,
    ArcParams,
    Command,
    Comment,
    CoordinateFormat,
    DrillHit,
    EndOfFile,
    FileFormat,
    FlashOrDraw,
    HeaderDirective,
    LayerFile,
    LayerKind,
    ModeSet,
    Move,
    Passthrough,
    SlotEnd,
    ToolSelect,
    Units,
    ZeroSuppression,
)

DEFAULT_DIGITS = {Units.INCH: (2, 4), Units.MM: (3, 3)}

_UNITS_RE = re.compile(r"^(METRIC|INCH)(?:,(LZ|TZ))?(?:,(0*)\.(0*))?$")
_FILE_FORMAT_RE = re.compile(r"FILE_FORMAT\s*=\s*(\d+)\s*:\s*(\d+)")
_KICAD_FORMAT_RE = re.compile(r"FORMAT\s*=\s*\{\s*([\d-]+)\s*:\s*([\d-]+)\s*/([^}]*)\}")
_TOOL_DEF_RE = re.compile(r"^T(\d+)(?:[A-BD-Z][+-]?[\d.]*)*C([\d.]+)")
_TOOL_SELECT_RE = re.compile(r"^T(\d+)$")
_COORD_LOOK_RE = re.compile(r"^(?:G0?[0-3])?[XY]")
_HIT_RE = re.compile(
    r"^(?P<g>G0?[0-3])?"
    r"(?:X(?P<x>[+-]?[\d.]+))?"
    r"(?:Y(?P<y>[+-]?[\d.]+))?"
    r"(?:I(?P<i>[+-]?[\d.]+))?"
    r"(?:J(?P<j>[+-]?[\d.]+))?"
    r"(?P<slot>G85(?:X(?P<x2>[+-]?[\d.]+))?(?:Y(?P<y2>[+-]?[\d.]+))?)?$"
)
_NUMBER_RE = re.compile(r"[XYIJ]([+-]?[\d.]+)")
_G_MODE_RE = re.compile(r"^G(\d+)$")
_EOF_RE = re.compile(r"^M(?:30|00)$")
_DIRECTIVE_RE = re.compile(r"^([A-Z]+\d*)(?:(,)(.*))?$")
_LINE_END_RE = re.compile(r"[\r\n]")
_WHITESPACE_RE = re.compile(r"\s+")


def parse_excellon(text: str, *, name: str = "", encoding: str = "utf-8") -> LayerFile:
    """Parse Excellon text into a drill layer file.

    Raises:
        ParseError: If a coordinate line is malformed or the units or
            coordinate mode change after coordinate data.
    """
    statements, preamble = _split_lines(text)
    fmt = scan_format([raw for raw, _, _ in statements])
    reader = _ExcellonReader(text, fmt)
    commands = [reader.statement(raw, trailer, pos) for raw, trailer, pos in statements]
    return LayerFile(
        name=name,
        format=FileFormat.EXCELLON,
        kind=LayerKind.DRILL,
        coordinate_format=fmt,
        commands=tuple(commands),
        preamble=preamble,
        encoding=encoding,
        newline=dominant_newline(text),
    )


def _split_lines(text: str) -> tuple[list[tuple[str, str, int]], str]:
    """Split into ``(raw, trailer, offset)`` statements plus leading whitespace."""
    match = _WHITESPACE_RE.match(text)
    pos = match.end() if match else 0
    preamble = text[:pos]
    statements: list[tuple[str, str, int]] = []
    while pos < len(text):
        eol = _LINE_END_RE.search(text, pos)
        line_end = eol.start() if eol else len(text)
        raw = text[pos:line_end].rstrip()
        stop = pos + len(raw)
        match = _WHITESPACE_RE.match(text, stop)
        trail = match.end() if match else stop
        statements.append((raw, text[stop:trail], pos))
        pos = trail
    return statements, preamble


def scan_format(lines: list[str]) -> CoordinateFormat:
    """Resolve the coordinate format from header lines and coordinate tokens.

    Units, zero handling and digit counts are taken from declarations that
    precede the first coordinate line. When most coordinate tokens carry a
    decimal point the format switches to decimal mode; a fixed count of
    decimals across all tokens is kept on output.
    """
    units: Units | None = None
    zeros: ZeroSuppression | None = None
    digits: tuple[int, int] | None = None
    incremental = False
    in_body = False
    fractions: list[int] = []
    plain_tokens = 0

    for line in lines:
        if not line:
            continue
        if line.startswith(";"):
            if in_body:
                continue
            match = _FILE_FORMAT_RE.search(line)
            if match:
                digits = (int(match.group(1)), int(match.group(2)))
            match = _KICAD_FORMAT_RE.search(line)
            if match:
                if match.group(1).isdigit() and match.group(2).isdigit():
                    digits = (int(match.group(1)), int(match.group(2)))
                detail = match.group(3).lower()
                if zeros is None:
                    if "suppress trailing" in detail:
                        zeros = ZeroSuppression.TRAILING
                    elif "suppress leading" in detail:
                        zeros = ZeroSuppression.LEADING
                    elif "keep zeros" in detail:
                        zeros = ZeroSuppression.NONE
            continue

        if _COORD_LOOK_RE.match(line):
            in_body = True
            for token in _NUMBER_RE.findall(line):
                if "." in token:
                    fractions.append(len(token.split(".", 1)[1]))
                else:
                    plain_tokens += 1
            continue
        if in_body:
            continue

        match = _UNITS_RE.match(line)
        if match:
            units = Units.MM if match.group(1) == "METRIC" else Units.INCH
            # LZ keeps leading zeros, so trailing ones are the suppressed kind.
            if match.group(2) == "LZ":
                zeros = ZeroSuppression.TRAILING
            elif match.group(2) == "TZ":
                zeros = ZeroSuppression.LEADING
            if match.group(3) is not None:
                digits = (len(match.group(3)), len(match.group(4)))
        elif line in ("M71", "M72"):
            units = Units.MM if line == "M71" else Units.INCH
        elif line in ("G90", "G91"):
            incremental = line == "G91"
        elif line.startswith("ICI,"):
            incremental = line == "ICI,ON"

    units = units or Units.INCH
    integer_digits, decimal_digits = digits or DEFAULT_DIGITS[units]
    zeros = zeros or ZeroSuppression.LEADING
    decimal_point = len(fractions) > plain_tokens
    if decimal_point:
        if len(set(fractions)) == 1:
            decimal_digits = fractions[0]
            zeros = ZeroSuppression.NONE
        else:
            decimal_digits = max(max(fractions), DEFAULT_DIGITS[units][1])
            if zeros is ZeroSuppression.NONE:
                zeros = ZeroSuppression.LEADING
    return CoordinateFormat(
        units=units,
        integer_digits=integer_digits,
        decimal_digits=decimal_digits,
        zeros=zeros,
        incremental=incremental,
        decimal_point=decimal_point,
    )


class _ExcellonReader:
    def __init__(self, text: str, fmt: CoordinateFormat) -> None:
        self.text = text
        self.fmt = fmt
        self.in_header = False
        self.seen_coordinates = False
        self.ended = False
        self.x = 0
        self.y = 0
        self.tool: int | None = None
        self.rout_code: int | None = None

    def _line(self, pos: int) -> int:
        return self.text.count("\n", 0, pos) + 1

    def _require_unchanged(self, fmt: CoordinateFormat, pos: int) -> None:
        if fmt == self.fmt:
            return
        if self.seen_coordinates:
            raise ParseError("unit or coordinate mode change after coordinate data", line=self._line(pos))
        self.fmt = fmt

    def statement(self, raw: str, trailer: str, pos: int) -> Command:
        if self.ended:
            return Passthrough(raw=raw, trailer=trailer)
        if raw.startswith(";"):
            return Comment(text=raw[1:], raw=raw, trailer=trailer)

        word = raw.strip()
        if word == "M48":
            self.in_header = True
            return HeaderDirective(key="M48", raw=raw, trailer=trailer)
        if self.in_header and word in ("%", "M95"):
            self.in_header = False
            return HeaderDirective(key=word, raw=raw, trailer=trailer)
        if _EOF_RE.match(word):
            self.ended = True
            return EndOfFile(raw=raw, trailer=trailer)

        match = _TOOL_DEF_RE.match(word)
        if match:
            return ApertureDefinition(
                code=int(match.group(1)), shape="C", params=(match.group(2),), raw=raw, trailer=trailer
            )
        match = _TOOL_SELECT_RE.match(word)
        if match:
            self.tool = int(match.group(1))
            return ToolSelect(code=self.tool, raw=raw, trailer=trailer)

        if _COORD_LOOK_RE.match(word):
            return self._coordinate(word, raw, trailer, pos)

        match = _UNITS_RE.match(word)
        if match or word in ("M71", "M72"):
            metric = word == "M71" or (match is not None and match.group(1) == "METRIC")
            self._require_unchanged(replace(self.fmt, units=Units.MM if metric else Units.INCH), pos)
        elif word in ("G90", "G91") or word.startswith("ICI,"):
            incremental = word in ("G91", "ICI,ON")
            self._require_unchanged(replace(self.fmt, incremental=incremental), pos)

        match = _G_MODE_RE.match(word)
        if match:
            code = int(match.group(1))
            if code == 5:
                self.rout_code = None
            elif code in (0, 1, 2, 3):
                self.rout_code = code
            return ModeSet(code=code, raw=raw, trailer=trailer)
        if self.in_header:
            match = _DIRECTIVE_RE.match(word)
            if match:
                return HeaderDirective(
                    key=match.group(1),
                    separator=match.group(2) or "",
                    value=match.group(3) or "",
                    raw=raw,
                    trailer=trailer,
                )
        return Passthrough(raw=raw, trailer=trailer)

    def _number(self, token: str | None, pos: int) -> int | None:
        if token is None:
            return None
        try:
            return self.fmt.parse_number(token)
        except ValueError as exc:
            raise ParseError(str(exc), line=self._line(pos)) from exc

    def _resolve(self, vx: int | None, vy: int | None, base: tuple[int, int]) -> tuple[int, int]:
        if self.fmt.incremental:
            return base[0] + (vx or 0), base[1] + (vy or 0)
        return (base[0] if vx is None else vx), (base[1] if vy is None else vy)

    def _coordinate(self, word: str, raw: str, trailer: str, pos: int) -> Command:
        match = _HIT_RE.match(word)
        if not match or (match.group("x") is None and match.group("y") is None):
            raise ParseError(f"malformed coordinate line {word!r}", line=self._line(pos))
        vx = self._number(match.group("x"), pos)
        vy = self._number(match.group("y"), pos)
        x, y = self._resolve(vx, vy, (self.x, self.y))
        self.seen_coordinates = True

        g_prefix = match.group("g") or ""
        if g_prefix:
            self.rout_code = int(g_prefix[1:])
        common = dict(x=x, y=y, has_x=vx is not None, has_y=vy is not None, g_prefix=g_prefix, raw=raw, trailer=trailer)

        if self.rout_code is None:
            slot_end = None
            if match.group("slot"):
                vx2 = self._number(match.group("x2"), pos)
                vy2 = self._number(match.group("y2"), pos)
                x2, y2 = self._resolve(vx2, vy2, (x, y))
                slot_end = SlotEnd(x=x2, y=y2, has_x=vx2 is not None, has_y=vy2 is not None)
                self.x, self.y = x2, y2
            else:
                self.x, self.y = x, y
            return DrillHit(tool=self.tool, slot_end=slot_end, **common)

        if match.group("slot"):
            raise ParseError("slot command inside a routed path", line=self._line(pos))
        self.x, self.y = x, y
        if self.rout_code == 0:
            return Move(interpolation=0, **common)
        vi = self._number(match.group("i"), pos)
        vj = self._number(match.group("j"), pos)
        arc = None
        if vi is not None or vj is not None:
            arc = ArcParams(i=vi or 0, j=vj or 0, has_i=vi is not None, has_j=vj is not None)
        return FlashOrDraw(operation=1, interpolation=self.rout_code, arc=arc, **common)
