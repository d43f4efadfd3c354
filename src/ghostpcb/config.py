"""Engine configuration: tolerance bounds and tunables.

Bounds are lengths in integer nanometres (see :data:`ghostpcb.units.LengthNM`)
so a YAML file may say ``silkscreen_max: 0.03mm`` or ``drill_max: 0.5mil``.
Each bound is capped by a hard ceiling that keeps every variant
fabrication-equivalent to its source.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .units import LengthNM, nm_to_mm

SILKSCREEN_CEILING_NM = 50_000
DRILL_CEILING_NM = 20_000
OUTLINE_CEILING_NM = 10_000

DEFAULT_MAX_WORKERS = 4
DEFAULT_MAX_ATTEMPTS = 8


class _ConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class ToleranceConfig(_ConfigBase):
    silkscreen_max: LengthNM = SILKSCREEN_CEILING_NM
    drill_max: LengthNM = DRILL_CEILING_NM
    outline_max: LengthNM = OUTLINE_CEILING_NM
    min_annular_ring: LengthNM = 100_000

    @model_validator(mode="after")
    def _check_bounds(self) -> ToleranceConfig:
        limits = {
            "silkscreen_max": (self.silkscreen_max, SILKSCREEN_CEILING_NM),
            "drill_max": (self.drill_max, DRILL_CEILING_NM),
            "outline_max": (self.outline_max, OUTLINE_CEILING_NM),
        }
        for name, (value, ceiling) in limits.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value} nm")
            if value > ceiling:
                raise ValueError(f"{name} of {value} nm exceeds the {ceiling} nm ceiling")
        if self.min_annular_ring <= 0:
            raise ValueError("min_annular_ring must be positive")
        # A drilled hole may move at most half the ring before it breaks out.
        if self.drill_max * 2 > self.min_annular_ring:
            raise ValueError(
                f"drill_max of {self.drill_max} nm would consume more than half of the "
                f"{self.min_annular_ring} nm annular ring"
            )
        return self

    @property
    def silkscreen_max_mm(self) -> float:
        return nm_to_mm(self.silkscreen_max)

    @property
    def drill_max_mm(self) -> float:
        return nm_to_mm(self.drill_max)

    @property
    def outline_max_mm(self) -> float:
        return nm_to_mm(self.outline_max)


class StructureConfig(_ConfigBase):
    min_insertions: int = Field(2, ge=0)
    max_insertions: int = Field(6, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> StructureConfig:
        if self.max_insertions < self.min_insertions:
            raise ValueError("max_insertions must be >= min_insertions")
        return self


class TimestampConfig(_ConfigBase):
    min_days_ago: int = Field(1, ge=0)
    max_days_ago: int = Field(30, ge=1)
    work_hours: tuple[int, int] = (8, 18)

    @model_validator(mode="after")
    def _check_window(self) -> TimestampConfig:
        if self.max_days_ago <= self.min_days_ago:
            raise ValueError("max_days_ago must be greater than min_days_ago")
        start, end = self.work_hours
        if not 0 <= start < end <= 24:
            raise ValueError(f"work_hours must satisfy 0 <= start < end <= 24, got {self.work_hours}")
        return self


class EngineConfig(_ConfigBase):
    tolerances: ToleranceConfig = Field(default_factory=ToleranceConfig)
    structure: StructureConfig = Field(default_factory=StructureConfig)
    timestamp: TimestampConfig = Field(default_factory=TimestampConfig)
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1)
    max_workers: int = Field(DEFAULT_MAX_WORKERS, ge=1)
    verify_outputs: bool = True


def load_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Validate and load an EngineConfig from a dictionary.

    Raises:
        pydantic.ValidationError: If the data fails validation.
    """
    return EngineConfig.model_validate(data)


def load_engine_config_from_file(path: Path | str) -> EngineConfig:
    """Load and validate an EngineConfig from a YAML or JSON file.

    Args:
        path: Path to the YAML (.yaml, .yml) or JSON (.json) file.

    Returns:
        Validated EngineConfig with all lengths normalized to integer nm.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file extension is not supported.
        pydantic.ValidationError: If the data fails validation.
        yaml.YAMLError: If YAML parsing fails.
        json.JSONDecodeError: If JSON parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Engine config file not found: {path}")

    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix in (".yaml", ".yml"):
        import yaml

        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported file extension: {suffix}. Use .yaml, .yml, or .json")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Engine config file must contain a mapping, got {type(data).__name__}")

    return load_engine_config(data)
