"""Render layer files back to text in their own dialect.

Statements that still carry their source text are emitted verbatim. Changed
statements are rendered from their fields using the file's coordinate format.
Coordinates left out through modal notation stay out unless the value they
would inherit has changed; incremental files are rendered as deltas from the
new previous point.
"""

from __future__ import annotations

from .model import (
    ApertureDefinition,
    Command,
    Comment,
    CoordinateFormat,
    DrillHit,
    EndOfFile,
    FileFormat,
    FlashOrDraw,
    HeaderDirective,
    LayerFile,
    ModeSet,
    Move,
    Passthrough,
    ToolSelect,
    end_point,
)


def serialize_layer(layer: LayerFile) -> bytes:
    return render_text(layer).encode(layer.encoding)


def render_text(layer: LayerFile) -> str:
    fmt = layer.coordinate_format
    gerber = layer.format is FileFormat.GERBER
    parts = [layer.preamble]
    current = (0, 0)
    previous_intact = True
    for command in layer.commands:
        if isinstance(command, (Move, FlashOrDraw, DrillHit)):
            if _can_reuse(command, current, previous_intact, fmt):
                parts.append(command.raw)
            else:
                parts.append(_render_positioned(command, current, fmt, gerber))
            previous_intact = command.raw is not None
            current = end_point(command)
        elif command.raw is not None:
            parts.append(command.raw)
        else:
            parts.append(_render_statement(command, gerber))
        parts.append(command.trailer)
    return "".join(parts)


def _can_reuse(command: Move | FlashOrDraw | DrillHit, current: tuple[int, int], previous_intact: bool, fmt: CoordinateFormat) -> bool:
    if command.raw is None:
        return False
    if fmt.incremental:
        return previous_intact
    if not command.has_x and command.x != current[0]:
        return False
    if not command.has_y and command.y != current[1]:
        return False
    return True


def _axis(letter: str, value: int, explicit: bool, base: int, fmt: CoordinateFormat) -> str:
    if not explicit and value == base:
        return ""
    return letter + fmt.format_number(value - base if fmt.incremental else value)


def _render_positioned(
    command: Move | FlashOrDraw | DrillHit, current: tuple[int, int], fmt: CoordinateFormat, gerber: bool
) -> str:
    text = command.g_prefix
    text += _axis("X", command.x, command.has_x, current[0], fmt)
    text += _axis("Y", command.y, command.has_y, current[1], fmt)

    if isinstance(command, FlashOrDraw) and command.arc is not None:
        arc = command.arc
        if arc.has_i or arc.i:
            text += "I" + fmt.format_number(arc.i)
        if arc.has_j or arc.j:
            text += "J" + fmt.format_number(arc.j)

    if isinstance(command, DrillHit) and command.slot_end is not None:
        end = command.slot_end
        text += "G85"
        text += _axis("X", end.x, end.has_x, command.x, fmt)
        text += _axis("Y", end.y, end.has_y, command.y, fmt)

    if gerber:
        return text + getattr(command, "d_text", "") + "*"
    return text


def _render_statement(command: Command, gerber: bool) -> str:
    if isinstance(command, Comment):
        return f"G04{command.text}*" if gerber else f";{command.text}"
    if isinstance(command, HeaderDirective):
        body = f"{command.key}{command.separator}{command.value}"
        return f"%{body}*%" if gerber else body
    if isinstance(command, ApertureDefinition):
        if not gerber:
            return f"T{command.code:02d}C{command.params[0]}"
        params = "," + "X".join(command.params) if command.params else ""
        return f"%ADD{command.code}{command.shape}{params}*%"
    if isinstance(command, ToolSelect):
        return f"{command.prefix}D{command.code}*" if gerber else f"T{command.code:02d}"
    if isinstance(command, ModeSet):
        return f"G{command.code:02d}*" if gerber else f"G{command.code:02d}"
    if isinstance(command, EndOfFile):
        return "M02*" if gerber else "M30"
    if isinstance(command, Passthrough):
        return command.raw or ""
    raise TypeError(f"Cannot render {type(command).__name__}")
