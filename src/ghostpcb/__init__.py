"""ghostpcb: Gerber/Excellon fabrication package obfuscation.

Given a ZIP of Gerber RS-274X layers and Excellon drill files, ghostpcb
produces variant packages that differ byte-for-byte (timestamps, coordinates,
structural noise) while staying within a fabrication-negligible distance of
the original geometry.

Public API
----------
- :func:`process` - Generate variants for a :class:`ProcessRequest`
- :func:`inspect_archive` - Report how each archive member is recognized
- :func:`verify_archives` - Check a variant against its source
- :func:`load_engine_config_from_file` - Load tolerances and tunables from YAML/JSON

Example
-------
>>> from ghostpcb import ProcessRequest, process
>>> result = process(ProcessRequest(input_path="board.zip", count=3), seed=7)
>>> result.success, len(result.output_files)
(True, 3)
"""

from __future__ import annotations

from .api import inspect_archive, process
from .config import EngineConfig, ToleranceConfig, load_engine_config, load_engine_config_from_file
from .contract import ObfuscateOptions, ProcessRequest, ProcessResult
from .engine import ObfuscationEngine, RequestState
from .errors import ArchiveError, GhostPcbError, ParseError, ToleranceViolation, WriteError
from .verify import VerificationReport, verify_archives

__version__ = "0.1.0"

__all__ = [
    "ArchiveError",
    "EngineConfig",
    "GhostPcbError",
    "ObfuscateOptions",
    "ObfuscationEngine",
    "ParseError",
    "ProcessRequest",
    "ProcessResult",
    "RequestState",
    "ToleranceConfig",
    "ToleranceViolation",
    "VerificationReport",
    "WriteError",
    "__version__",
    "inspect_archive",
    "load_engine_config",
    "load_engine_config_from_file",
    "process",
    "verify_archives",
]
