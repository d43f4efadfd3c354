"""Gerber RS-274X reader.

Turns layer text into a :class:`~ghostpcb.cam.model.LayerFile`. The reader is
a small state machine over ``*``-terminated words and ``%``-delimited extended
commands; it resolves modal coordinates to absolute positions and keeps every
statement's source text so an unmodified file serializes back byte-for-byte.

Parse failures raise :class:`~ghostpcb.errors.ParseError` carrying the line
number. Statements the reader does not understand become ``Passthrough``.
"""

from __future__ import annotations

import re
from dataclasses import replace

from ..errors import ParseError
from .detect import classify_layer, dominant_newline
from .model import (
    ApertureDefinition,
    ArcParams,
    Command,
    Comment,
    CoordinateFormat,
    EndOfFile,
    FileFormat,
    FlashOrDraw,
    HeaderDirective,
    LayerFile,
    ModeSet,
    Move,
    Passthrough,
    ToolSelect,
    Units,
    ZeroSuppression,
)

DEFAULT_GERBER_FORMAT = CoordinateFormat(units=Units.INCH, integer_digits=2, decimal_digits=4)

_FS_RE = re.compile(r"^FS([LTD])([AI])(?:N\d)?(?:G\d)?X(\d)(\d)Y(\d)(\d)(?:Z\d\d?)?(?:D\d)?(?:M\d)?$")
_MO_RE = re.compile(r"^MO(MM|IN)$")
_AD_RE = re.compile(r"^ADD(\d+)([A-Za-z_.$][\w.$-]*)(?:,(.*))?$")
_COMMENT_RE = re.compile(r"^G0?4(?!\d)")
_EOF_RE = re.compile(r"^M0?[02]$")
_SELECT_RE = re.compile(r"^(G54)?D(\d+)$")
_MODE_RE = re.compile(r"^G(\d+)$")
_COORD_START_RE = re.compile(r"^(?:G0?[123])?(?:[XYIJ]|D0?[123]$)")
_COORD_RE = re.compile(
    r"^(?P<g>G0?[123])?"
    r"(?:X(?P<x>[+-]?[\d.]+))?"
    r"(?:Y(?P<y>[+-]?[\d.]+))?"
    r"(?:I(?P<i>[+-]?[\d.]+))?"
    r"(?:J(?P<j>[+-]?[\d.]+))?"
    r"(?P<d>D0?[123])?$"
)
_WHITESPACE_RE = re.compile(r"\s+")

_ZEROS = {"L": ZeroSuppression.LEADING, "T": ZeroSuppression.TRAILING, "D": ZeroSuppression.NONE}
_ATTRIBUTE_KEYS = frozenset({"TF", "TA", "TO", "TD"})


def parse_gerber(text: str, *, name: str = "", encoding: str = "utf-8") -> LayerFile:
    """Parse Gerber text into a layer file.

    Args:
        text: Decoded file contents.
        name: Archive member name, used for layer classification.
        encoding: Encoding the text was decoded with; kept for serialization.

    Returns:
        LayerFile with absolute coordinates and per-statement source text.

    Raises:
        ParseError: If the file cannot be tokenized.
    """
    reader = _GerberReader(text)
    preamble, commands = reader.read()
    return LayerFile(
        name=name,
        format=FileFormat.GERBER,
        kind=classify_layer(name, FileFormat.GERBER, text),
        coordinate_format=reader.fmt,
        commands=tuple(commands),
        preamble=preamble,
        encoding=encoding,
        newline=dominant_newline(text),
    )


class _GerberReader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.fmt = DEFAULT_GERBER_FORMAT
        self.seen_coordinates = False
        self.x = 0
        self.y = 0
        self.interpolation = 1
        self.modal_d: int | None = None
        self.ended = False

    def read(self) -> tuple[str, list[Command]]:
        text = self.text
        pos = self._skip_whitespace(0)
        preamble = text[:pos]
        commands: list[Command] = []
        while pos < len(text):
            if self.ended:
                # Anything after M02 is kept as opaque text.
                commands.append(Passthrough(raw=text[pos:]))
                break
            if text[pos] == "%":
                end = text.find("%", pos + 1)
                if end < 0:
                    raise ParseError("unterminated extended command", line=self._line(pos))
            else:
                end = text.find("*", pos)
                if end < 0:
                    raise ParseError("unterminated statement", line=self._line(pos))
            stop = end + 1
            trail = self._skip_whitespace(stop)
            raw = text[pos:stop]
            trailer = text[stop:trail]
            if raw.startswith("%"):
                commands.append(self._extended(raw, trailer, pos))
            else:
                commands.append(self._word(raw, trailer, pos))
            pos = trail
        return preamble, commands

    def _skip_whitespace(self, pos: int) -> int:
        match = _WHITESPACE_RE.match(self.text, pos)
        return match.end() if match else pos

    def _line(self, pos: int) -> int:
        return self.text.count("\n", 0, pos) + 1

    def _extended(self, raw: str, trailer: str, pos: int) -> Command:
        body = raw[1:-1]
        words = [_WHITESPACE_RE.sub("", piece) for piece in body.split("*")]
        words = [word for word in words if word]
        if not words or words[0].startswith("AM"):
            return Passthrough(raw=raw, trailer=trailer)
        for word in words:
            self._apply_format_word(word, pos)
        if len(words) != 1:
            return Passthrough(raw=raw, trailer=trailer)

        word = words[0]
        key = word[:2]
        if key == "AD":
            match = _AD_RE.match(word)
            if not match:
                raise ParseError(f"malformed aperture definition {word!r}", line=self._line(pos))
            params = tuple(match.group(3).split("X")) if match.group(3) else ()
            return ApertureDefinition(
                code=int(match.group(1)), shape=match.group(2), params=params, raw=raw, trailer=trailer
            )
        if key in ("FS", "MO") or key in _ATTRIBUTE_KEYS or (key.isalpha() and key.isupper()):
            value = body.strip()
            if value.endswith("*"):
                value = value[:-1]
            return HeaderDirective(key=key, value=value[2:], raw=raw, trailer=trailer)
        return Passthrough(raw=raw, trailer=trailer)

    def _apply_format_word(self, word: str, pos: int) -> None:
        if word.startswith("FS"):
            match = _FS_RE.match(word)
            if not match:
                raise ParseError(f"malformed format specification {word!r}", line=self._line(pos))
            zeros, mode, x_int, x_dec, y_int, y_dec = match.groups()
            if (x_int, x_dec) != (y_int, y_dec):
                raise ParseError("X and Y coordinate formats differ", line=self._line(pos))
            self._set_format(
                replace(
                    self.fmt,
                    integer_digits=int(x_int),
                    decimal_digits=int(x_dec),
                    zeros=_ZEROS[zeros],
                    incremental=mode == "I",
                ),
                pos,
            )
        elif word.startswith("MO"):
            match = _MO_RE.match(word)
            if not match:
                raise ParseError(f"malformed unit mode {word!r}", line=self._line(pos))
            units = Units.MM if match.group(1) == "MM" else Units.INCH
            self._set_format(replace(self.fmt, units=units), pos)

    def _set_format(self, fmt: CoordinateFormat, pos: int) -> None:
        if fmt != self.fmt and self.seen_coordinates:
            raise ParseError("unit or format change after coordinate data", line=self._line(pos))
        self.fmt = fmt

    def _word(self, raw: str, trailer: str, pos: int) -> Command:
        comment = _COMMENT_RE.match(raw)
        if comment:
            return Comment(text=raw[comment.end() : -1], raw=raw, trailer=trailer)

        word = _WHITESPACE_RE.sub("", raw[:-1])
        if _EOF_RE.match(word):
            self.ended = True
            return EndOfFile(raw=raw, trailer=trailer)
        if _COORD_START_RE.match(word):
            return self._coordinate(word, raw, trailer, pos)
        match = _SELECT_RE.match(word)
        if match and int(match.group(2)) >= 10:
            return ToolSelect(code=int(match.group(2)), prefix=match.group(1) or "", raw=raw, trailer=trailer)
        match = _MODE_RE.match(word)
        if match:
            code = int(match.group(1))
            self._apply_mode(code, pos)
            return ModeSet(code=code, raw=raw, trailer=trailer)
        return Passthrough(raw=raw, trailer=trailer)

    def _apply_mode(self, code: int, pos: int) -> None:
        if code in (1, 2, 3):
            self.interpolation = code
        elif code in (70, 71):
            self._set_format(replace(self.fmt, units=Units.INCH if code == 70 else Units.MM), pos)
        elif code in (90, 91):
            self._set_format(replace(self.fmt, incremental=code == 91), pos)

    def _coordinate(self, word: str, raw: str, trailer: str, pos: int) -> Command:
        match = _COORD_RE.match(word)
        if not match:
            raise ParseError(f"malformed coordinate word {word!r}", line=self._line(pos))
        try:
            values = {
                axis: self.fmt.parse_number(match.group(axis)) if match.group(axis) is not None else None
                for axis in ("x", "y", "i", "j")
            }
        except ValueError as exc:
            raise ParseError(str(exc), line=self._line(pos)) from exc

        g_prefix = match.group("g") or ""
        if g_prefix:
            self.interpolation = int(g_prefix[1:])
        d_text = match.group("d") or ""
        if d_text:
            operation = int(d_text[1:])
            self.modal_d = operation
        elif self.modal_d is None:
            raise ParseError("coordinate data without a D-code", line=self._line(pos))
        else:
            operation = self.modal_d

        vx, vy = values["x"], values["y"]
        if self.fmt.incremental:
            x = self.x + (vx or 0)
            y = self.y + (vy or 0)
        else:
            x = self.x if vx is None else vx
            y = self.y if vy is None else vy
        self.x, self.y = x, y
        self.seen_coordinates = True

        common = dict(
            x=x,
            y=y,
            has_x=vx is not None,
            has_y=vy is not None,
            g_prefix=g_prefix,
            d_text=d_text,
            interpolation=self.interpolation,
            raw=raw,
            trailer=trailer,
        )
        if operation == 2:
            return Move(**common)
        arc = None
        if values["i"] is not None or values["j"] is not None:
            arc = ArcParams(
                i=values["i"] or 0,
                j=values["j"] or 0,
                has_i=values["i"] is not None,
                has_j=values["j"] is not None,
            )
        return FlashOrDraw(operation=operation, arc=arc, **common)
