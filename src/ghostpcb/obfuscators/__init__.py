"""Perturbation strategies.

Each strategy is a pure function ``(LayerFile, PerturbationParams, Generator)
-> LayerFile`` that leaves layers it does not apply to untouched.
"""

from __future__ import annotations

from .geometry import obfuscate_drills
from .params import (
    PerturbationParams,
    PhysicalTransform,
    draw_offset,
    draw_params,
    draw_physical_transform,
    draw_timestamp,
    ensure_within,
)
from .physical import obfuscate_outline
from .pipeline import STRATEGIES, Strategy, apply_pipeline, build_pipeline
from .silkscreen import obfuscate_silkscreen
from .structure import obfuscate_structure
from .timestamp import obfuscate_timestamps, rewrite_text

__all__ = [
    "STRATEGIES",
    "PerturbationParams",
    "PhysicalTransform",
    "Strategy",
    "apply_pipeline",
    "build_pipeline",
    "draw_offset",
    "draw_params",
    "draw_physical_transform",
    "draw_timestamp",
    "ensure_within",
    "obfuscate_drills",
    "obfuscate_outline",
    "obfuscate_silkscreen",
    "obfuscate_structure",
    "obfuscate_timestamps",
    "rewrite_text",
]
