"""Content sniffing and layer role classification for archive members."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from .model import FileFormat, LayerKind

GERBER_EXTENSIONS = frozenset(
    {"gbr", "ger", "pho", "art", "gtl", "gbl", "gto", "gbo", "gts", "gbs", "gtp", "gbp", "gko", "gml"}
    | {f"gm{n}" for n in range(1, 33)}
    | {f"g{n}" for n in range(1, 31)}
    | {f"gp{n}" for n in range(1, 31)}
)
EXCELLON_EXTENSIONS = frozenset({"drl", "xln", "exc", "drd", "nc", "txt"})

_EXCELLON_HEADER_RE = re.compile(r"^\s*M48\s*$", re.MULTILINE)
_EXCELLON_TOOL_RE = re.compile(r"^\s*T\d+(?:[FSB][\d.]+)*C[\d.]+", re.MULTILINE)
_GERBER_EXTENDED_RE = re.compile(r"%\s*(?:FS|MO|AD)")
_GERBER_GCODE_RE = re.compile(r"G0?[123](?=[*XYIJD])")
_GERBER_OPERATION_RE = re.compile(r"X[+-]?\d+Y[+-]?\d+D0?[123]\*")

_FILE_FUNCTION_RE = re.compile(r"(?:%|G04\s*#@!\s*)TF\.FileFunction,([^,*%]+)")
_LAYER_COMMENT_RE = re.compile(r"(?:G04|;)\s*Layer\s*:\s*([^*\r\n]+)", re.IGNORECASE)

_FILE_FUNCTION_KINDS = {
    "copper": LayerKind.COPPER,
    "plane": LayerKind.COPPER,
    "legend": LayerKind.SILKSCREEN,
    "soldermask": LayerKind.SOLDERMASK,
    "paste": LayerKind.PASTE,
    "profile": LayerKind.OUTLINE,
    "plated": LayerKind.DRILL,
    "nonplated": LayerKind.DRILL,
}

_EXTENSION_KINDS = {
    "gtl": LayerKind.COPPER,
    "gbl": LayerKind.COPPER,
    "gto": LayerKind.SILKSCREEN,
    "gbo": LayerKind.SILKSCREEN,
    "gts": LayerKind.SOLDERMASK,
    "gbs": LayerKind.SOLDERMASK,
    "gtp": LayerKind.PASTE,
    "gbp": LayerKind.PASTE,
    "gko": LayerKind.OUTLINE,
    "gml": LayerKind.OUTLINE,
    "gm1": LayerKind.OUTLINE,
}

# KiCad layer suffixes such as ``board-F_Cu`` or ``board-Edge_Cuts``.
_KICAD_SUFFIX_RE = re.compile(r"(?:^|[-_.])(?:(?:f|b|in\d+)[_.](cu|silks|silkscreen|mask|paste)|(edge[_.]cuts))$")
_KICAD_SUFFIX_KINDS = {
    "cu": LayerKind.COPPER,
    "silks": LayerKind.SILKSCREEN,
    "silkscreen": LayerKind.SILKSCREEN,
    "mask": LayerKind.SOLDERMASK,
    "paste": LayerKind.PASTE,
}

_WORD_SPLIT_RE = re.compile(r"[-_. ]+")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Whole words, checked in order; the first hit wins.
_WORD_RULES: tuple[tuple[re.Pattern[str], LayerKind], ...] = (
    (re.compile(r"silks?(creen)?|symbols?|legend|overlay"), LayerKind.SILKSCREEN),
    (re.compile(r"(solder)?paste|metalmask"), LayerKind.PASTE),
    (re.compile(r"(solder)?(mask|resist)"), LayerKind.SOLDERMASK),
    (re.compile(r"drills?|npth|pth"), LayerKind.DRILL),
    (re.compile(r"outline|edgecuts|profile|boardgeom(etry)?|keepout"), LayerKind.OUTLINE),
    (re.compile(r"cu|copper|top|bot(tom)?|inner\d*|signal\d*|in\d+"), LayerKind.COPPER),
)


def decode_text(data: bytes) -> tuple[str, str]:
    """Decode member bytes, returning ``(text, encoding)``.

    UTF-8 is tried first; anything else decodes losslessly as latin-1.
    """
    if data.startswith(b"\xef\xbb\xbf"):
        try:
            return data.decode("utf-8-sig"), "utf-8-sig"
        except UnicodeDecodeError:
            pass
    try:
        return data.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return data.decode("latin-1"), "latin-1"


def extension_of(name: str) -> str:
    return PurePosixPath(name).suffix.lower().lstrip(".")


def detect_format(data: bytes) -> FileFormat | None:
    """Sniff whether ``data`` is Excellon, Gerber or neither."""
    if b"\x00" in data:
        return None
    text, _ = decode_text(data)
    if _EXCELLON_HEADER_RE.search(text) or _EXCELLON_TOOL_RE.search(text):
        return FileFormat.EXCELLON
    if (
        _GERBER_EXTENDED_RE.search(text)
        or _GERBER_GCODE_RE.search(text)
        or _GERBER_OPERATION_RE.search(text)
    ):
        return FileFormat.GERBER
    return None


def is_cam_candidate(name: str, data: bytes) -> bool:
    """True when a member plausibly holds Gerber or Excellon data."""
    ext = extension_of(name)
    if ext in GERBER_EXTENSIONS or (ext in EXCELLON_EXTENSIONS and ext != "txt"):
        return True
    return detect_format(data) is not None


def classify_layer(name: str, file_format: FileFormat, text: str) -> LayerKind:
    """Guess the role of a layer file.

    Excellon files are always drill layers. For Gerber the X2 file function
    attribute wins, then a generator ``Layer:`` comment, then file name
    conventions (Protel extensions, KiCad layer suffixes, generic words).
    """
    if file_format is FileFormat.EXCELLON:
        return LayerKind.DRILL

    match = _FILE_FUNCTION_RE.search(text)
    if match:
        kind = _FILE_FUNCTION_KINDS.get(match.group(1).strip().lower())
        if kind is not None:
            return kind

    match = _LAYER_COMMENT_RE.search(text)
    if match:
        kind = _kind_from_words(match.group(1))
        if kind is not None:
            return kind

    ext = extension_of(name)
    if ext in _EXTENSION_KINDS:
        return _EXTENSION_KINDS[ext]
    if re.fullmatch(r"g\d+|gp\d+", ext):
        return LayerKind.COPPER

    stem = PurePosixPath(name).stem
    match = _KICAD_SUFFIX_RE.search(stem.lower())
    if match:
        return LayerKind.OUTLINE if match.group(2) else _KICAD_SUFFIX_KINDS[match.group(1)]
    kind = _kind_from_words(stem)
    return kind if kind is not None else LayerKind.OTHER


def _words(text: str) -> list[str]:
    """Split ``text`` into lower-case words, joining each adjacent pair too.

    CamelCase runs are split first, so ``TopSilkscreenLayer`` yields ``top``,
    ``silkscreen`` and ``layer``. Pairs catch spellings like ``Edge_Cuts`` or
    ``solder-mask``.
    """
    words = [word for word in _WORD_SPLIT_RE.split(_CAMEL_RE.sub(" ", text).lower()) if word]
    return words + [a + b for a, b in zip(words, words[1:])]


def _kind_from_words(text: str) -> LayerKind | None:
    words = _words(text)
    for pattern, kind in _WORD_RULES:
        if any(pattern.fullmatch(word) for word in words):
            return kind
    return None


def dominant_newline(text: str) -> str:
    crlf = text.count("\r\n")
    return "\r\n" if crlf and crlf * 2 >= text.count("\n") else "\n"
