"""Apply the variant's outline transform to every outline layer."""

from __future__ import annotations

import math
from dataclasses import replace

import numpy as np

from ..cam.model import POSITIONED_TYPES, Command, FlashOrDraw, LayerFile, LayerKind
from .params import PerturbationParams, ensure_within


def obfuscate_outline(layer: LayerFile, params: PerturbationParams, rng: np.random.Generator) -> LayerFile:
    transform = params.physical
    if layer.kind is not LayerKind.OUTLINE or transform.is_identity:
        return layer

    fmt = layer.coordinate_format
    bound_mm = params.tolerances.outline_max_mm
    commands: list[Command] = []
    for command in layer.commands:
        if not isinstance(command, POSITIONED_TYPES):
            commands.append(command)
            continue
        new_x_mm, new_y_mm = transform.apply_mm(fmt.to_mm(command.x), fmt.to_mm(command.y))
        x, y = fmt.from_mm(new_x_mm), fmt.from_mm(new_y_mm)
        ensure_within("physical", math.hypot(x - command.x, y - command.y) * fmt.resolution_mm, bound_mm)

        updates: dict[str, object] = {}
        if (x, y) != (command.x, command.y):
            updates.update(x=x, y=y)
        if isinstance(command, FlashOrDraw) and command.arc is not None:
            arc = command.arc
            scaled = replace(arc, i=round(arc.i * transform.scale), j=round(arc.j * transform.scale))
            if scaled != arc:
                updates["arc"] = scaled
        commands.append(replace(command, raw=None, **updates) if updates else command)
    return layer.with_commands(commands)
