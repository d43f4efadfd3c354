"""Equivalence check between a source archive and one of its variants.

A variant is equivalent when every CAM member re-parses, keeps its coordinate
format and apertures, and has the same sequence of positioned operations with
each point moved no further than the bound for its layer role. Members that
were not obfuscated must be byte-identical.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from .archive import Archive
from .cam.model import ApertureDefinition, DrillHit, FileFormat, FlashOrDraw, LayerFile, LayerKind, end_point
from .cam.parsing import ParsedArchive, parse_archive, parse_member
from .config import ToleranceConfig
from .errors import ParseError

logger = logging.getLogger(__name__)

_SLACK_MM = 1e-9


@dataclass(slots=True)
class VerificationReport:
    problems: list[str] = field(default_factory=list)
    max_displacement_mm: dict[str, float] = field(default_factory=dict)

    @property
    def equivalent(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict[str, Any]:
        return {
            "equivalent": self.equivalent,
            "problems": list(self.problems),
            "max_displacement_mm": dict(sorted(self.max_displacement_mm.items())),
        }


def displacement_bound_mm(layer: LayerFile, tolerances: ToleranceConfig) -> float:
    """Largest distance any point of ``layer`` may move."""
    if layer.format is FileFormat.EXCELLON:
        return tolerances.drill_max_mm
    if layer.kind is LayerKind.SILKSCREEN:
        return tolerances.silkscreen_max_mm
    if layer.kind is LayerKind.OUTLINE:
        return tolerances.outline_max_mm
    return 0.0


def compare_layers(source: LayerFile, variant: LayerFile, tolerances: ToleranceConfig) -> tuple[list[str], float]:
    """Compare two parses of the same member.

    Returns:
        Tuple of (problems, largest point displacement in mm).
    """
    name = source.name
    problems: list[str] = []
    old_fmt, new_fmt = source.coordinate_format, variant.coordinate_format
    if variant.format is not source.format or (old_fmt.units, old_fmt.incremental) != (
        new_fmt.units,
        new_fmt.incremental,
    ):
        return [f"{name}: coordinate format changed"], 0.0

    apertures = [(c.code, c.shape, c.params) for c in source.commands if isinstance(c, ApertureDefinition)]
    new_apertures = [(c.code, c.shape, c.params) for c in variant.commands if isinstance(c, ApertureDefinition)]
    if apertures != new_apertures:
        problems.append(f"{name}: aperture definitions changed")

    ops = list(source.positioned())
    new_ops = list(variant.positioned())
    if len(ops) != len(new_ops):
        return problems + [f"{name}: {len(ops)} operations became {len(new_ops)}"], 0.0

    bound = displacement_bound_mm(source, tolerances)
    worst = 0.0
    for index, (old, new) in enumerate(zip(ops, new_ops)):
        if type(old) is not type(new) or (
            isinstance(old, FlashOrDraw) and isinstance(new, FlashOrDraw) and old.operation != new.operation
        ):
            problems.append(f"{name}: operation {index} changed kind")
            continue
        points = [((old.x, old.y), (new.x, new.y))]
        if isinstance(old, DrillHit) and isinstance(new, DrillHit):
            if (old.slot_end is None) != (new.slot_end is None):
                problems.append(f"{name}: operation {index} changed slot shape")
                continue
            if old.slot_end is not None:
                points.append((end_point(old), end_point(new)))
        for (ox, oy), (nx, ny) in points:
            distance = math.hypot(
                new_fmt.to_mm(nx) - old_fmt.to_mm(ox),
                new_fmt.to_mm(ny) - old_fmt.to_mm(oy),
            )
            worst = max(worst, distance)
            if distance > bound + _SLACK_MM:
                problems.append(
                    f"{name}: operation {index} moved {distance:.6f} mm (bound {bound:.6f} mm)"
                )
    return problems, worst


def verify_variant(source: ParsedArchive, variant: Archive, tolerances: ToleranceConfig) -> VerificationReport:
    report = VerificationReport()
    if sorted(source.archive.names) != sorted(variant.names):
        report.problems.append("member names differ")
        return report

    for member in source.archive.members:
        data = variant.get(member.name).data
        layer = source.layers.get(member.name)
        if layer is None:
            if data != member.data:
                report.problems.append(f"{member.name}: verbatim member changed")
            continue
        try:
            reparsed = parse_member(member.name, data)
        except ParseError as exc:
            report.problems.append(f"{member.name}: does not re-parse: {exc.reason}")
            continue
        if reparsed is None:
            report.problems.append(f"{member.name}: no longer recognized as {layer.format.value}")
            continue
        problems, worst = compare_layers(layer, reparsed, tolerances)
        report.problems.extend(problems)
        report.max_displacement_mm[member.name] = worst

    for problem in report.problems:
        logger.debug("Verification problem: %s", problem)
    return report


def verify_archives(source: Archive, variant: Archive, tolerances: ToleranceConfig | None = None) -> VerificationReport:
    """Parse ``source`` and check ``variant`` against it.

    Raises:
        ArchiveError: If no member of ``source`` can be parsed.
    """
    return verify_variant(parse_archive(source), variant, tolerances or ToleranceConfig())
