"""Per-variant perturbation parameters.

Everything random that must stay consistent across the layers of one variant
(the replacement timestamp, generator name spellings and the outline
transform) is drawn once here and threaded to each strategy.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import numpy as np

from ..cam.model import CoordinateFormat, DrillHit, LayerFile
from ..config import EngineConfig, StructureConfig, TimestampConfig, ToleranceConfig
from ..errors import ToleranceViolation

# Alternative spellings a generator name may be rewritten to.
GENERATOR_SPELLINGS: dict[str, tuple[str, ...]] = {
    "kicad": ("KiCad", "KICAD", "Kicad"),
    "pcbnew": ("Pcbnew", "PCBNEW", "pcbnew"),
    "easyeda": ("EasyEDA", "EASYEDA", "Easyeda"),
    "altium": ("Altium", "ALTIUM"),
    "eagle": ("EAGLE", "Eagle"),
}

# Slack for float comparisons on millimetre bounds.
_BOUND_EPSILON_MM = 1e-9


@dataclass(frozen=True, slots=True)
class PhysicalTransform:
    """Shift plus uniform scale about ``(cx_mm, cy_mm)``, in millimetres."""

    dx_mm: float = 0.0
    dy_mm: float = 0.0
    scale: float = 1.0
    cx_mm: float = 0.0
    cy_mm: float = 0.0

    @property
    def is_identity(self) -> bool:
        return self.dx_mm == 0.0 and self.dy_mm == 0.0 and self.scale == 1.0

    def apply_mm(self, x_mm: float, y_mm: float) -> tuple[float, float]:
        return (
            self.cx_mm + (x_mm - self.cx_mm) * self.scale + self.dx_mm,
            self.cy_mm + (y_mm - self.cy_mm) * self.scale + self.dy_mm,
        )


@dataclass(frozen=True, slots=True)
class PerturbationParams:
    timestamp: datetime
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)
    physical: PhysicalTransform = field(default_factory=PhysicalTransform)
    generator_spellings: Mapping[str, str] = field(default_factory=dict)

    @property
    def zip_date_time(self) -> tuple[int, int, int, int, int, int]:
        ts = self.timestamp
        return (ts.year, ts.month, ts.day, ts.hour, ts.minute, ts.second)


def ensure_within(strategy: str, value_mm: float, bound_mm: float) -> None:
    """Raise :class:`ToleranceViolation` if ``value_mm`` exceeds ``bound_mm``."""
    if value_mm > bound_mm + _BOUND_EPSILON_MM:
        raise ToleranceViolation(strategy, value_mm, bound_mm)


def draw_offset(
    rng: np.random.Generator, bound_mm: float, fmt: CoordinateFormat, *, max_tries: int = 64
) -> tuple[int, int]:
    """Draw an offset in file units whose length is at most ``bound_mm``.

    Each axis is drawn uniformly from ``[-bound, +bound]`` and the pair is
    redrawn until the offset, snapped to the file grid, lies in the disc.
    Falls back to no offset when the grid is too coarse for the bound.
    """
    resolution = fmt.resolution_mm
    for _ in range(max_tries):
        dx_mm, dy_mm = rng.uniform(-bound_mm, bound_mm, size=2)
        dx, dy = fmt.from_mm(float(dx_mm)), fmt.from_mm(float(dy_mm))
        if math.hypot(dx, dy) * resolution <= bound_mm:
            return dx, dy
    return 0, 0


def draw_timestamp(rng: np.random.Generator, config: TimestampConfig, now: datetime) -> datetime:
    """Pick a working-hours moment between ``min_days_ago`` and ``max_days_ago``."""
    days = int(rng.integers(config.min_days_ago, config.max_days_ago, endpoint=True))
    start_hour, end_hour = config.work_hours
    hour = int(rng.integers(start_hour, end_hour))
    minute = int(rng.integers(0, 60))
    second = int(rng.integers(0, 60))
    day = now - timedelta(days=days)
    return day.replace(hour=hour, minute=minute, second=second, microsecond=0)


def draw_spellings(rng: np.random.Generator) -> dict[str, str]:
    return {
        family: spellings[int(rng.integers(0, len(spellings)))]
        for family, spellings in GENERATOR_SPELLINGS.items()
    }


def outline_bounds_mm(layers: Iterable[LayerFile]) -> tuple[float, float, float, float] | None:
    """Bounding box ``(min_x, min_y, max_x, max_y)`` of all outline vertices."""
    xs: list[float] = []
    ys: list[float] = []
    for layer in layers:
        fmt = layer.coordinate_format
        for command in layer.positioned():
            xs.append(fmt.to_mm(command.x))
            ys.append(fmt.to_mm(command.y))
            if isinstance(command, DrillHit) and command.slot_end is not None:
                xs.append(fmt.to_mm(command.slot_end.x))
                ys.append(fmt.to_mm(command.slot_end.y))
    if not xs:
        return None
    return min(xs), min(ys), max(xs), max(ys)


def draw_physical_transform(
    rng: np.random.Generator, outline_layers: Iterable[LayerFile], bound_mm: float
) -> PhysicalTransform:
    """Draw one outline transform whose largest vertex displacement fits ``bound_mm``.

    Half of the budget goes to the shift and half to the scale, after
    reserving the worst-case grid rounding of the coarsest outline layer.
    """
    layers = list(outline_layers)
    bounds = outline_bounds_mm(layers)
    if bounds is None:
        return PhysicalTransform()
    rounding = max(layer.coordinate_format.resolution_mm for layer in layers) * math.sqrt(2) / 2
    budget = (bound_mm - rounding) / 2
    if budget <= 0:
        return PhysicalTransform()

    min_x, min_y, max_x, max_y = bounds
    cx, cy = (min_x + max_x) / 2, (min_y + max_y) / 2
    half_diagonal = math.hypot(max_x - min_x, max_y - min_y) / 2

    radius = budget * math.sqrt(float(rng.random()))
    angle = float(rng.uniform(0.0, 2 * math.pi))
    scale = 1.0
    if half_diagonal > 0:
        max_deviation = budget / half_diagonal
        scale = 1.0 + float(rng.uniform(-max_deviation, max_deviation))
    return PhysicalTransform(
        dx_mm=radius * math.cos(angle),
        dy_mm=radius * math.sin(angle),
        scale=scale,
        cx_mm=cx,
        cy_mm=cy,
    )


def draw_params(
    rng: np.random.Generator,
    config: EngineConfig,
    outline_layers: Iterable[LayerFile],
    *,
    now: datetime,
    physical: bool = True,
) -> PerturbationParams:
    timestamp = draw_timestamp(rng, config.timestamp, now)
    spellings = draw_spellings(rng)
    transform = PhysicalTransform()
    if physical:
        transform = draw_physical_transform(rng, outline_layers, config.tolerances.outline_max_mm)
    return PerturbationParams(
        timestamp=timestamp,
        tolerances=config.tolerances,
        structure=config.structure,
        physical=transform,
        generator_spellings=spellings,
    )
