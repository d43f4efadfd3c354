"""Jitter silkscreen strokes by a bounded offset per connected group.

A stroke is a D02 move and the D01 draws that follow it, or a D03 flash and
the draws that follow it. Strokes that touch at a coordinate are merged into
one group, and every group moves rigidly by a single offset. Junctions, closed
contours and arcs therefore keep their exact shape.
"""

from __future__ import annotations

import math

import numpy as np

from ..cam.model import Command, FileFormat, FlashOrDraw, LayerFile, LayerKind, Move, moved
from .params import PerturbationParams, draw_offset, ensure_within

# Draws before the first move start at the implicit origin, which stays put.
_ORIGIN_STROKE = 0


def _find(parent: list[int], stroke: int) -> int:
    while parent[stroke] != stroke:
        parent[stroke] = parent[parent[stroke]]
        stroke = parent[stroke]
    return stroke


def _union(parent: list[int], a: int, b: int) -> None:
    root_a, root_b = _find(parent, a), _find(parent, b)
    if root_a != root_b:
        # The lower stroke stays the root so the origin group remains pinned.
        parent[max(root_a, root_b)] = min(root_a, root_b)


def group_strokes(commands: tuple[Command, ...]) -> tuple[list[int | None], list[int]]:
    """Assign each Move/FlashOrDraw a stroke and merge strokes sharing a point.

    Returns the stroke of every command (``None`` for unpositioned ones) and
    the union-find parent table over strokes.
    """
    parent = [_ORIGIN_STROKE]
    owners: dict[tuple[int, int], int] = {}
    strokes: list[int | None] = []
    stroke = _ORIGIN_STROKE

    def touch(point: tuple[int, int]) -> None:
        other = owners.setdefault(point, stroke)
        if other != stroke:
            _union(parent, other, stroke)

    for command in commands:
        if isinstance(command, Move) or (isinstance(command, FlashOrDraw) and command.is_flash):
            stroke = len(parent)
            parent.append(stroke)
        elif isinstance(command, FlashOrDraw):
            if stroke == _ORIGIN_STROKE:
                touch((0, 0))
        else:
            strokes.append(None)
            continue
        touch((command.x, command.y))
        strokes.append(stroke)
    return strokes, parent


def obfuscate_silkscreen(layer: LayerFile, params: PerturbationParams, rng: np.random.Generator) -> LayerFile:
    if layer.format is not FileFormat.GERBER or layer.kind is not LayerKind.SILKSCREEN:
        return layer

    fmt = layer.coordinate_format
    bound_mm = params.tolerances.silkscreen_max_mm
    strokes, parent = group_strokes(layer.commands)
    offsets: dict[int, tuple[int, int]] = {_ORIGIN_STROKE: (0, 0)}

    commands: list[Command] = []
    for command, stroke in zip(layer.commands, strokes):
        if stroke is None or not isinstance(command, (Move, FlashOrDraw)):
            commands.append(command)
            continue
        group = _find(parent, stroke)
        if group not in offsets:
            offset = draw_offset(rng, bound_mm, fmt)
            ensure_within("silkscreen", math.hypot(*offset) * fmt.resolution_mm, bound_mm)
            offsets[group] = offset
        dx, dy = offsets[group]
        commands.append(moved(command, command.x + dx, command.y + dy))
    return layer.with_commands(commands)
