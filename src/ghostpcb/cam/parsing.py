from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from ..archive import Archive
from ..errors import ArchiveError, ParseError
from .detect import decode_text, detect_format
from .excellon import parse_excellon
from .gerber import parse_gerber
from .model import FileFormat, LayerFile, LayerKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ParsedArchive:
    """An archive with its CAM members parsed.

    Members absent from ``layers`` are copied verbatim into every variant,
    whether they were never CAM data or failed to parse (``failures``).
    """

    archive: Archive
    layers: Mapping[str, LayerFile]
    failures: tuple[ParseError, ...] = ()

    def layers_of_kind(self, kind: LayerKind) -> list[LayerFile]:
        return [layer for layer in self.layers.values() if layer.kind is kind]


def parse_member(name: str, data: bytes) -> LayerFile | None:
    """Parse one member, returning None when it is not Gerber or Excellon.

    Raises:
        ParseError: If the member looks like CAM data but cannot be tokenized.
    """
    file_format = detect_format(data)
    if file_format is None:
        return None
    text, encoding = decode_text(data)
    try:
        if file_format is FileFormat.GERBER:
            return parse_gerber(text, name=name, encoding=encoding)
        return parse_excellon(text, name=name, encoding=encoding)
    except ParseError as exc:
        raise exc.for_member(name) from exc


def parse_archive(archive: Archive) -> ParsedArchive:
    """Parse every CAM member of ``archive``.

    Raises:
        ArchiveError: If no member could be parsed.
    """
    layers: dict[str, LayerFile] = {}
    failures: list[ParseError] = []
    for member in archive.members:
        try:
            layer = parse_member(member.name, member.data)
        except ParseError as exc:
            logger.warning("Copying %s unobfuscated: %s", member.name, exc.reason)
            failures.append(exc)
            continue
        if layer is not None:
            logger.debug("Parsed %s as %s %s layer", member.name, layer.format.value, layer.kind.value)
            layers[member.name] = layer

    if not layers:
        detail = f" ({len(failures)} failed to parse: {failures[0]})" if failures else ""
        raise ArchiveError(f"No Gerber or Excellon member could be parsed{detail}")
    return ParsedArchive(archive=archive, layers=layers, failures=tuple(failures))
