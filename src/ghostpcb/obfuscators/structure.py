"""Insert no-op statements: comments and redundant aperture re-selections.

Gerber files get ``G04`` comments anywhere outside a G36/G37 region and before
end-of-file, plus re-selections of the active aperture once one is selected.
Files that rely on modal D-codes never get re-selections, since an aperture
select there ends the modal operation. Excellon files only get ``;`` comments,
and only inside the M48 header.
"""

from __future__ import annotations

import numpy as np

from ..cam.model import (
    POSITIONED_TYPES,
    Command,
    Comment,
    EndOfFile,
    FileFormat,
    HeaderDirective,
    LayerFile,
    ModeSet,
    ToolSelect,
)
from .params import PerturbationParams

_COMMENT_TEMPLATES = ("Build ID: {token}", "Rev {token}", "Job {token}", "{token}")


def _comment_text(rng: np.random.Generator) -> str:
    token = f"{int(rng.integers(0, 2**32)):08X}"
    template = _COMMENT_TEMPLATES[int(rng.integers(0, len(_COMMENT_TEMPLATES)))]
    return " " + template.format(token=token)


def _gerber_slots(commands: tuple[Command, ...]) -> list[tuple[int, ToolSelect | None]]:
    """Positions where a statement may be inserted, with the active aperture there.

    Position ``i`` means "before ``commands[i]``".
    """
    modal_d = any(isinstance(c, POSITIONED_TYPES) and not getattr(c, "d_text", "D") for c in commands)
    slots: list[tuple[int, ToolSelect | None]] = []
    in_region = False
    active: ToolSelect | None = None
    for index, command in enumerate(commands):
        if index > 0 and not in_region:
            slots.append((index, None if modal_d else active))
        if isinstance(command, EndOfFile):
            break
        if isinstance(command, ModeSet) and command.code in (36, 37):
            in_region = command.code == 36
        elif isinstance(command, ToolSelect):
            active = command
    return slots


def _excellon_slots(commands: tuple[Command, ...]) -> list[tuple[int, ToolSelect | None]]:
    slots: list[tuple[int, ToolSelect | None]] = []
    in_header = False
    for index, command in enumerate(commands):
        if isinstance(command, HeaderDirective) and command.key == "M48":
            in_header = True
            continue
        if not in_header:
            continue
        slots.append((index, None))
        if isinstance(command, HeaderDirective) and command.key in ("%", "M95"):
            break
    return slots


def obfuscate_structure(layer: LayerFile, params: PerturbationParams, rng: np.random.Generator) -> LayerFile:
    config = params.structure
    wanted = int(rng.integers(config.min_insertions, config.max_insertions, endpoint=True))
    if layer.format is FileFormat.GERBER:
        slots = _gerber_slots(layer.commands)
    else:
        slots = _excellon_slots(layer.commands)
    if wanted == 0 or not slots:
        return layer

    chosen = rng.choice(len(slots), size=min(wanted, len(slots)), replace=False)
    inserts: dict[int, Command] = {}
    for slot_index in sorted(int(i) for i in chosen):
        position, active = slots[slot_index]
        if active is not None and rng.random() < 0.5:
            inserts[position] = ToolSelect(
                code=active.code, prefix=active.prefix, raw=active.raw, trailer=layer.newline
            )
        else:
            inserts[position] = Comment(text=_comment_text(rng), trailer=layer.newline)

    commands: list[Command] = []
    for index, command in enumerate(layer.commands):
        if index in inserts:
            commands.append(inserts[index])
        commands.append(command)
    return layer.with_commands(commands)
