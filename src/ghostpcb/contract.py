"""Request/result contract exchanged with the host application."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

STRATEGY_NAMES: tuple[str, ...] = ("timestamp", "silkscreen", "geometry", "structure", "physical")


class _ContractBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ObfuscateOptions(_ContractBase):
    timestamp: bool = True
    silkscreen: bool = True
    geometry: bool = True
    structure: bool = True
    physical: bool = True

    @property
    def enabled(self) -> tuple[str, ...]:
        """Names of the enabled strategies, in composition order."""
        return tuple(name for name in STRATEGY_NAMES if getattr(self, name))

    @property
    def any_enabled(self) -> bool:
        return bool(self.enabled)


class ProcessRequest(_ContractBase):
    input_path: str = Field(..., min_length=1)
    output_dir: str | None = None
    count: int = Field(1, ge=1)
    options: ObfuscateOptions = Field(default_factory=ObfuscateOptions)


class ProcessResult(_ContractBase):
    success: bool
    output_files: list[str] = Field(default_factory=list)
    message: str = ""
