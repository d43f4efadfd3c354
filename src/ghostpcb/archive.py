"""Archive I/O: read a fabrication ZIP into memory and write variant ZIPs."""

from __future__ import annotations

import io
import logging
import os
import tempfile
import zipfile
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from .cam.detect import is_cam_candidate
from .errors import ArchiveError, WriteError
from .hashing import content_fingerprint

logger = logging.getLogger(__name__)

DateTime = tuple[int, int, int, int, int, int]

ZIP_EPOCH: DateTime = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True, slots=True)
class ArchiveMember:
    name: str
    data: bytes
    date_time: DateTime = ZIP_EPOCH


@dataclass(frozen=True, slots=True)
class Archive:
    """Ordered, name-unique set of archive members."""

    members: tuple[ArchiveMember, ...]

    def __iter__(self) -> Iterator[ArchiveMember]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(member.name for member in self.members)

    def get(self, name: str) -> ArchiveMember:
        for member in self.members:
            if member.name == name:
                return member
        raise KeyError(name)

    def with_contents(self, contents: Mapping[str, bytes], date_time: DateTime | None = None) -> Archive:
        """Return a copy with replaced member data, keeping member order.

        When ``date_time`` is given every member is restamped with it.
        """
        members = []
        for member in self.members:
            updated = replace(member, data=contents.get(member.name, member.data))
            if date_time is not None:
                updated = replace(updated, date_time=date_time)
            members.append(updated)
        return Archive(members=tuple(members))

    def fingerprint(self, *, with_dates: bool = False) -> str:
        """Content hash; entry dates count only when ``with_dates`` is set."""
        return content_fingerprint(
            (member.name, member.data, member.date_time if with_dates else None) for member in self.members
        )


def load(path: Path | str) -> Archive:
    """Load a fabrication archive into memory.

    Args:
        path: Path to the input ZIP file.

    Returns:
        Archive with members in their stored order.

    Raises:
        ArchiveError: If the file is missing, is not a readable ZIP, is empty,
            has duplicate member names, or holds no Gerber/Excellon member.
    """
    path = Path(path)
    if not path.is_file():
        raise ArchiveError(f"Input archive not found: {path}")
    try:
        with zipfile.ZipFile(path) as zf:
            infos = [info for info in zf.infolist() if not info.is_dir()]
            seen: set[str] = set()
            members = []
            for info in infos:
                if info.filename in seen:
                    raise ArchiveError(f"Duplicate member name in archive: {info.filename}")
                seen.add(info.filename)
                members.append(ArchiveMember(name=info.filename, data=zf.read(info), date_time=info.date_time))
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Not a valid ZIP archive: {path} ({exc})") from exc
    except (OSError, RuntimeError, NotImplementedError) as exc:
        raise ArchiveError(f"Cannot read archive {path}: {exc}") from exc

    if not members:
        raise ArchiveError(f"Archive is empty: {path}")
    if not any(is_cam_candidate(member.name, member.data) for member in members):
        raise ArchiveError(f"Archive contains no Gerber or Excellon files: {path}")
    logger.debug("Loaded %d members from %s", len(members), path)
    return Archive(members=tuple(members))


def archive_bytes(archive: Archive) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for member in archive.members:
            info = zipfile.ZipInfo(member.name, date_time=member.date_time)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, member.data)
    return buffer.getvalue()


def variant_path(destination_dir: Path | str, base_name: str, index: int) -> Path:
    return Path(destination_dir) / f"{base_name}_obf{index}.zip"


def write_variant(archive: Archive, path: Path | str) -> Path:
    """Write one variant archive atomically.

    Raises:
        WriteError: If the archive cannot be written.
    """
    path = Path(path)
    try:
        atomic_write_bytes(path, archive_bytes(archive))
    except (OSError, ValueError) as exc:
        raise WriteError(path, str(exc)) from exc
    return path.resolve()


def save(
    archives: Sequence[Archive], destination_dir: Path | str, base_name: str
) -> tuple[list[Path], list[WriteError]]:
    """Write ``<base_name>_obf<N>.zip`` for each archive, numbering from 1.

    A failed write is recorded and the remaining archives are still written.
    """
    written: list[Path] = []
    failures: list[WriteError] = []
    for index, archive in enumerate(archives, start=1):
        try:
            written.append(write_variant(archive, variant_path(destination_dir, base_name, index)))
        except WriteError as exc:
            logger.warning("%s", exc)
            failures.append(exc)
    return written, failures


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".tmp-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
