"""Assemble the ProcessResult returned to the host."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .contract import ProcessResult
from .errors import ParseError


class VariantStatus(str, Enum):
    """Final status of one requested variant."""

    PRODUCED = "produced"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class VariantOutcome:
    """Result of generating one variant.

    Attributes:
        index: 1-based variant number, also used in the output file name.
        status: Final status.
        path: Absolute path of the written archive when produced.
        fingerprint: Content fingerprint of the accepted archive.
        attempts: Number of generation attempts used.
        error: Failure reason when not produced.
    """

    index: int
    status: VariantStatus
    path: Path | None = None
    fingerprint: str | None = None
    attempts: int = 0
    error: str | None = None

    @property
    def produced(self) -> bool:
        return self.status is VariantStatus.PRODUCED


def build_result(
    outcomes: Sequence[VariantOutcome],
    parse_failures: Sequence[ParseError] = (),
    requested: int | None = None,
) -> ProcessResult:
    """Summarize variant outcomes.

    ``success`` is true when at least one variant was written. Output paths
    are listed in variant order. The message gives the counts, the first
    failure and any member copied unobfuscated after a parse error.
    """
    ordered = sorted(outcomes, key=lambda outcome: outcome.index)
    produced = [outcome for outcome in ordered if outcome.produced]
    failed = [outcome for outcome in ordered if not outcome.produced]
    total = requested if requested is not None else len(ordered)

    parts = [f"Generated {len(produced)} of {total} variant(s)"]
    if failed:
        first = failed[0]
        parts.append(f"{len(failed)} failed; first failure (variant {first.index}): {first.error}")
    if parse_failures:
        members = "; ".join(f"{exc.member} ({exc.reason})" for exc in parse_failures)
        parts.append(f"Copied unobfuscated after parse errors: {members}")

    return ProcessResult(
        success=bool(produced),
        output_files=[str(outcome.path) for outcome in produced],
        message=". ".join(parts),
    )


def aborted_result(reason: str) -> ProcessResult:
    return ProcessResult(success=False, output_files=[], message=reason)
