from __future__ import annotations

import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .archive import load
from .cam.parsing import parse_member
from .config import EngineConfig
from .contract import ProcessRequest, ProcessResult
from .engine import ObfuscationEngine
from .errors import ParseError


def process(
    request: ProcessRequest | Mapping[str, Any],
    *,
    config: EngineConfig | None = None,
    seed: int | None = None,
    cancel_event: threading.Event | None = None,
) -> ProcessResult:
    """Generate obfuscated variants of a fabrication archive.

    Args:
        request: The request, or a mapping validated into one.
        config: Engine configuration (defaults if None).
        seed: Base seed for reproducible output; the clock is used if None.
        cancel_event: Set it to stop pending variants and skip unwritten ones.

    Returns:
        ProcessResult describing the written variants. Archive, parse, tolerance
        and write failures are reported in the result rather than raised.

    Raises:
        pydantic.ValidationError: If ``request`` is a mapping that fails validation.
    """
    if not isinstance(request, ProcessRequest):
        request = ProcessRequest.model_validate(request)
    engine = ObfuscationEngine(config, seed=seed, cancel_event=cancel_event)
    return engine.run(request)


def inspect_archive(path: Path | str) -> list[dict[str, Any]]:
    """Describe how each member of an archive is recognized.

    Raises:
        ArchiveError: If the archive cannot be loaded.
    """
    entries: list[dict[str, Any]] = []
    for member in load(path).members:
        entry: dict[str, Any] = {"name": member.name, "size_bytes": len(member.data)}
        try:
            layer = parse_member(member.name, member.data)
        except ParseError as exc:
            entry.update(status="parse_error", error=exc.reason, line=exc.line)
            entries.append(entry)
            continue
        if layer is None:
            entry["status"] = "passthrough"
        else:
            fmt = layer.coordinate_format
            entry.update(
                status="parsed",
                format=layer.format.value,
                kind=layer.kind.value,
                units=fmt.units.value,
                coordinate_format={
                    "integer_digits": fmt.integer_digits,
                    "decimal_digits": fmt.decimal_digits,
                    "zeros": fmt.zeros.value,
                    "incremental": fmt.incremental,
                    "decimal_point": fmt.decimal_point,
                },
                commands=len(layer.commands),
            )
        entries.append(entry)
    return entries
