from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np

from ..cam.model import LayerFile
from ..contract import ObfuscateOptions
from .geometry import obfuscate_drills
from .params import PerturbationParams
from .physical import obfuscate_outline
from .silkscreen import obfuscate_silkscreen
from .structure import obfuscate_structure
from .timestamp import obfuscate_timestamps

Strategy = Callable[[LayerFile, PerturbationParams, np.random.Generator], LayerFile]

# Composition order.
STRATEGIES: dict[str, Strategy] = {
    "timestamp": obfuscate_timestamps,
    "silkscreen": obfuscate_silkscreen,
    "geometry": obfuscate_drills,
    "physical": obfuscate_outline,
    "structure": obfuscate_structure,
}


def build_pipeline(options: ObfuscateOptions) -> tuple[Strategy, ...]:
    enabled = set(options.enabled)
    return tuple(strategy for name, strategy in STRATEGIES.items() if name in enabled)


def apply_pipeline(
    layer: LayerFile,
    strategies: Sequence[Strategy],
    params: PerturbationParams,
    rng: np.random.Generator,
) -> LayerFile:
    for strategy in strategies:
        layer = strategy(layer, params, rng)
    return layer
