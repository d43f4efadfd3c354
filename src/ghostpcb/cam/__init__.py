"""CAM file handling for Gerber RS-274X and Excellon drill data.

This module provides:
- Typed command model shared by both dialects (model)
- Content sniffing and layer role classification (detect)
- Gerber and Excellon readers (gerber, excellon)
- Dialect-preserving serializer (serializer)

Archive-level parsing lives in :mod:`ghostpcb.cam.parsing`.
"""

from __future__ import annotations

from .detect import classify_layer, decode_text, detect_format, is_cam_candidate
from .excellon import parse_excellon
from .gerber import parse_gerber
from .model import (
    ApertureDefinition,
    ArcParams,
    Command,
    Comment,
    CoordinateFormat,
    DrillHit,
    EndOfFile,
    FileFormat,
    FlashOrDraw,
    HeaderDirective,
    LayerFile,
    LayerKind,
    ModeSet,
    Move,
    Passthrough,
    SlotEnd,
    ToolSelect,
    Units,
    ZeroSuppression,
)
from .serializer import render_text, serialize_layer

__all__ = [
    "ApertureDefinition",
    "ArcParams",
    "Command",
    "Comment",
    "CoordinateFormat",
    "DrillHit",
    "EndOfFile",
    "FileFormat",
    "FlashOrDraw",
    "HeaderDirective",
    "LayerFile",
    "LayerKind",
    "ModeSet",
    "Move",
    "Passthrough",
    "SlotEnd",
    "ToolSelect",
    "Units",
    "ZeroSuppression",
    "classify_layer",
    "decode_text",
    "detect_format",
    "is_cam_candidate",
    "parse_excellon",
    "parse_gerber",
    "render_text",
    "serialize_layer",
]
