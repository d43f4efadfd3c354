"""Offset every Excellon drill hit by its own bounded vector."""

from __future__ import annotations

import math
from dataclasses import replace

import numpy as np

from ..cam.model import Command, DrillHit, FileFormat, LayerFile
from .params import PerturbationParams, draw_offset, ensure_within


def obfuscate_drills(layer: LayerFile, params: PerturbationParams, rng: np.random.Generator) -> LayerFile:
    if layer.format is not FileFormat.EXCELLON:
        return layer

    fmt = layer.coordinate_format
    bound_mm = params.tolerances.drill_max_mm
    commands: list[Command] = []
    for command in layer.commands:
        if not isinstance(command, DrillHit):
            commands.append(command)
            continue
        dx, dy = draw_offset(rng, bound_mm, fmt)
        ensure_within("geometry", math.hypot(dx, dy) * fmt.resolution_mm, bound_mm)
        if dx == 0 and dy == 0:
            commands.append(command)
            continue
        slot_end = command.slot_end
        if slot_end is not None:
            # Both ends of a slot move together.
            slot_end = replace(slot_end, x=slot_end.x + dx, y=slot_end.y + dy)
        commands.append(replace(command, x=command.x + dx, y=command.y + dy, slot_end=slot_end, raw=None))
    return layer.with_commands(commands)
