"""Exception taxonomy for the obfuscation engine.

Only :class:`ArchiveError` aborts a request. The other errors are recovered at
member granularity (:class:`ParseError`) or variant granularity
(:class:`ToleranceViolation`, :class:`WriteError`) and surface in the
``ProcessResult`` message.
"""

from __future__ import annotations

from pathlib import Path


class GhostPcbError(Exception):
    """Base class for all engine errors."""


class ArchiveError(GhostPcbError):
    """Raised when the input archive is unreadable or holds no CAM content."""


class ParseError(GhostPcbError):
    """Raised when a member looks like Gerber/Excellon but cannot be tokenized."""

    def __init__(self, reason: str, *, member: str | None = None, line: int | None = None) -> None:
        self.reason = reason
        self.member = member
        self.line = line
        location = ""
        if member is not None:
            location = member if line is None else f"{member}:{line}"
        elif line is not None:
            location = f"line {line}"
        super().__init__(f"{location}: {reason}" if location else reason)

    def for_member(self, member: str) -> ParseError:
        """Return a copy of this error attributed to ``member``."""
        return ParseError(self.reason, member=member, line=self.line)


class ToleranceViolation(GhostPcbError):
    """Raised when a strategy computes a perturbation beyond its bound.

    Bounds are fixed configuration, so this signals a regression rather than a
    runtime condition.
    """

    def __init__(self, strategy: str, value_mm: float, bound_mm: float) -> None:
        self.strategy = strategy
        self.value_mm = value_mm
        self.bound_mm = bound_mm
        super().__init__(
            f"{strategy} perturbation of {value_mm:.6f} mm exceeds bound of {bound_mm:.6f} mm"
        )


class WriteError(GhostPcbError):
    """Raised when one variant archive cannot be written."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to write {self.path}: {reason}")
